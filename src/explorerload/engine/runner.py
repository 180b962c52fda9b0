"""Blocking entry point: load a scenario file and run it on its own event loop."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from explorerload._internal.config import load_config
from explorerload._internal.errors import EngineError
from explorerload._internal.logging import get_logger, setup_logging
from explorerload.dsl.loader import load_scenario
from explorerload.dsl.scenario import registry
from explorerload.engine.session import TestSession
from explorerload.metrics.custom import metric_registry

if sys.platform != "win32":
    import uvloop

if TYPE_CHECKING:
    from collections.abc import Callable

    from explorerload._internal.config import ExplorerLoadConfig
    from explorerload.metrics.models import MetricSnapshot, TestResult
    from explorerload.patterns.base import LoadPattern

logger = get_logger("engine.runner")


def _loop_factory() -> Callable[[], asyncio.AbstractEventLoop] | None:
    """Return uvloop's loop factory, or None for the default loop on Windows."""
    if sys.platform == "win32":
        return None
    return uvloop.new_event_loop


class LoadTestRunner:
    """Runs one scenario file to completion from synchronous code.

    Each :meth:`run` configures logging, empties the scenario and metric
    registries, imports the file again and drives a ``TestSession`` on a
    fresh event loop, uvloop outside Windows. It returns when the pattern
    ends or on SIGINT or SIGTERM. Assign :attr:`on_snapshot` before
    ``run()`` to watch ticks.
    """

    def __init__(
        self,
        scenario_path: str | Path,
        pattern: LoadPattern,
        duration_seconds: float,
        *,
        tick_interval: float = 1.0,
        config: ExplorerLoadConfig | None = None,
        on_snapshot: Callable[[MetricSnapshot], None] | None = None,
        log_level: int = logging.INFO,
        json_logs: bool | None = None,
    ) -> None:
        """*config* defaults to ``load_config()``. *json_logs* of None
        follows ``config.json_logs``.

        Raises:
            EngineError: If *scenario_path* does not exist.
            ConfigError: If *config* is omitted and the environment is invalid.
        """
        self.scenario_path = str(Path(scenario_path).resolve())
        self.on_snapshot = on_snapshot
        self._pattern = pattern
        self._duration_seconds = duration_seconds
        self._tick_interval = tick_interval
        self._config = config or load_config()
        self._log_level = log_level
        self._json_logs = self._config.json_logs if json_logs is None else json_logs

        if not Path(self.scenario_path).exists():
            msg = f"Scenario file not found: {self.scenario_path}"
            raise EngineError(msg)

    def run(self) -> TestResult:
        """Run the test and return its ``TestResult``.

        Raises:
            ScenarioError: If the scenario file cannot be loaded.
            EngineError: If the test fails while running.
        """
        setup_logging(level=self._log_level, json_format=self._json_logs)

        # Importing the file below registers its scenario and metrics afresh
        registry.clear()
        metric_registry.clear()
        scenario = load_scenario(self.scenario_path)

        logger.info(
            "Loaded scenario %r from %s (timeout=%.1fs)",
            scenario.name,
            self.scenario_path,
            self._config.request_timeout,
        )

        session = TestSession(
            scenario=scenario,
            pattern=self._pattern,
            duration_seconds=self._duration_seconds,
            tick_interval=self._tick_interval,
            config=self._config,
            metrics=metric_registry,
            on_snapshot=self.on_snapshot,
        )

        with asyncio.Runner(loop_factory=_loop_factory()) as loop_runner:
            return loop_runner.run(session.run())
