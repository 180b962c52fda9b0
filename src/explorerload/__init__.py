"""explorerload: load test the Dora the Explorer service from Python."""

from __future__ import annotations

from explorerload.dsl.checks import check
from explorerload.dsl.decorators import scenario, setup, task, teardown
from explorerload.dsl.http_client import HttpClient, RequestMetric, Response
from explorerload.metrics.custom import Counter, Rate
from explorerload.patterns.base import LoadPattern
from explorerload.patterns.constant import ConstantPattern
from explorerload.patterns.ramp import RampPattern
from explorerload.patterns.stages import StagesPattern

__version__ = "0.1.0"

__all__ = [
    "ConstantPattern",
    "Counter",
    "HttpClient",
    "LoadPattern",
    "RampPattern",
    "Rate",
    "RequestMetric",
    "Response",
    "StagesPattern",
    "check",
    "scenario",
    "setup",
    "task",
    "teardown",
]
