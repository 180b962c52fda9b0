"""Load patterns for explorerload.

Each pattern maps elapsed time to a virtual-user count; the session samples
it once per tick through :meth:`LoadPattern.iter_concurrency`.
"""

from __future__ import annotations

from explorerload.patterns.base import LoadPattern
from explorerload.patterns.constant import ConstantPattern
from explorerload.patterns.ramp import RampPattern
from explorerload.patterns.stages import Stage, StagesPattern, parse_duration, parse_stage

__all__ = [
    "ConstantPattern",
    "LoadPattern",
    "RampPattern",
    "Stage",
    "StagesPattern",
    "parse_duration",
    "parse_stage",
]
