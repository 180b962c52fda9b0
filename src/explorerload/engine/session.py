"""Test session lifecycle: virtual users, ticks, and signal handling."""

from __future__ import annotations

import asyncio
import contextlib
import signal
import sys
import time
from dataclasses import replace
from enum import Enum, auto
from typing import TYPE_CHECKING

from explorerload._internal.config import ExplorerLoadConfig
from explorerload._internal.errors import EngineError
from explorerload._internal.logging import get_logger
from explorerload.dsl.http_client import HttpClient
from explorerload.engine._user_utils import (
    pick_weighted_task,
    shutdown_all_users,
    think_time_seconds,
)
from explorerload.engine.scheduler import ScaleDirection, Scheduler
from explorerload.metrics.collector import MetricCollector
from explorerload.metrics.custom import metric_registry
from explorerload.metrics.models import MetricSnapshot, TestResult
from explorerload.metrics.store import MetricStore

if TYPE_CHECKING:
    from collections.abc import Callable

    from explorerload.dsl.scenario import AsyncScenarioMethod, ScenarioDefinition
    from explorerload.metrics.custom import MetricRegistry
    from explorerload.patterns.base import LoadPattern

logger = get_logger("engine.session")

_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)
_RETIRE_WAIT_SECONDS = 2.0


class SessionState(Enum):
    """Lifecycle of a :class:`TestSession`."""

    CREATED = auto()
    STARTING = auto()
    RUNNING = auto()
    STOPPING = auto()
    COMPLETED = auto()
    FAILED = auto()


class TestSession:
    """Drives one scenario with as many virtual users as the pattern asks for.

    Virtual users are asyncio tasks in the current loop, each with its own
    ``HttpClient``, looping over the scenario's tasks until told to stop.
    Once per tick the session resizes that pool, snapshots the interval
    into :attr:`store` (with the cumulative custom metrics and checks
    attached) and hands the snapshot to ``on_snapshot``.

    A session runs once. Its :attr:`state` goes CREATED, STARTING, RUNNING,
    STOPPING and then COMPLETED, or FAILED if the tick loop raises.
    """

    __test__ = False

    def __init__(
        self,
        scenario: ScenarioDefinition,
        pattern: LoadPattern,
        duration_seconds: float,
        *,
        tick_interval: float = 1.0,
        config: ExplorerLoadConfig | None = None,
        metrics: MetricRegistry | None = None,
        on_snapshot: Callable[[MetricSnapshot], None] | None = None,
        handle_signals: bool = True,
        worker_id: int = 0,
    ) -> None:
        """Set up a session; nothing starts until :meth:`run`.

        *duration_seconds* is ignored by patterns with their own timeline,
        such as stages. *config* supplies the request timeout and pool size.
        *metrics* is where custom metrics and checks are read from, the
        global ``metric_registry`` by default. Pass ``handle_signals=False``
        when running off the main thread or inside tests.
        """
        self.scenario = scenario
        self._pattern = pattern
        self._duration_seconds = duration_seconds
        self._tick_interval = tick_interval
        self._config = config or ExplorerLoadConfig()
        self._metrics = metrics if metrics is not None else metric_registry
        self._on_snapshot = on_snapshot
        self._handle_signals = handle_signals
        self._worker_id = worker_id

        self._state = SessionState.CREATED
        self._collector = MetricCollector(worker_id=worker_id)
        self.store = MetricStore()
        self._user_tasks: list[tuple[int, asyncio.Task[None]]] = []
        self._next_user_id = 0
        self._stop_event = asyncio.Event()
        self._signals_installed = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def active_user_count(self) -> int:
        return len(self._user_tasks)

    async def run(self) -> TestResult:
        """Execute the full session and return its result.

        Raises:
            EngineError: If the session cannot start or fails while running.
        """
        if self._state is not SessionState.CREATED:
            msg = f"A test session can only run once (state: {self._state.name})"
            raise EngineError(msg)

        self._state = SessionState.STARTING
        scheduler = Scheduler(self._pattern, self._duration_seconds, self._tick_interval)
        logger.info(
            "Session %r starting: %.1fs of %s",
            self.scenario.name,
            scheduler.duration_seconds,
            self._pattern.describe(),
        )

        if self._handle_signals:
            self._install_signal_handlers()

        start_time = time.monotonic()
        self._state = SessionState.RUNNING

        try:
            for command in scheduler.iter_commands():
                if self._stop_event.is_set():
                    break

                delay = start_time + command.elapsed_seconds - time.monotonic()
                if delay > 0 and await self._wait_for_stop(delay):
                    break

                if command.direction is not ScaleDirection.HOLD:
                    logger.debug(
                        "Scaling %s by %d to %d users",
                        command.direction.name.lower(),
                        command.delta,
                        command.target_concurrency,
                    )
                await self._scale_users(command.target_concurrency)
                self._publish(self._snapshot_tick(time.monotonic() - start_time))

        except Exception as exc:
            self._state = SessionState.FAILED
            logger.exception("Session %r aborted", self.scenario.name)
            msg = f"Test session failed: {exc}"
            raise EngineError(msg) from exc
        finally:
            if self._state is not SessionState.FAILED:
                self._state = SessionState.STOPPING
            await shutdown_all_users(self._user_tasks, self._stop_event)
            self._remove_signal_handlers()

        end_time = time.monotonic()
        total_duration = end_time - start_time

        # Capture iterations and requests that finished during shutdown
        self._collector.flush(elapsed_seconds=total_duration, active_users=0)
        custom_metrics, checks = self._metrics.summarize(total_duration)
        final_summary = replace(
            self._collector.get_cumulative_snapshot(
                elapsed_seconds=total_duration,
                active_users=0,
            ),
            custom_metrics=custom_metrics,
            checks=checks,
        )

        self._state = SessionState.COMPLETED
        logger.info(
            "Session finished in %.1fs: %d iterations, %d requests, "
            "%.1f req/s, p95 %.1fms, %.2f%% HTTP errors",
            total_duration,
            final_summary.iterations,
            final_summary.total_requests,
            final_summary.requests_per_second,
            final_summary.latency_p95,
            final_summary.error_rate * 100,
        )

        return TestResult(
            scenario_name=self.scenario.name,
            start_time=start_time,
            end_time=end_time,
            duration_seconds=total_duration,
            pattern_description=self._pattern.describe(),
            snapshots=self.store.get_all(),
            final_summary=final_summary,
        )

    async def stop(self) -> None:
        """Request a graceful shutdown; the tick loop exits promptly."""
        if self._state is SessionState.RUNNING:
            logger.info("Stop requested, letting virtual users finish")
            self._state = SessionState.STOPPING
            self._stop_event.set()

    async def _wait_for_stop(self, timeout: float) -> bool:
        """Sleep up to *timeout* seconds; return True if a stop was requested."""
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
        return self._stop_event.is_set()

    def _snapshot_tick(self, elapsed: float) -> MetricSnapshot:
        snapshot = self._collector.flush(
            elapsed_seconds=elapsed,
            active_users=self.active_user_count,
        )
        custom_metrics, checks = self._metrics.summarize(elapsed)
        snapshot.custom_metrics = custom_metrics
        snapshot.checks = checks
        logger.debug(
            "Tick %.1fs: users=%d, iterations=%d, rps=%.1f, p95=%.1fms, errors=%d",
            elapsed,
            snapshot.active_users,
            snapshot.iterations,
            snapshot.requests_per_second,
            snapshot.latency_p95,
            snapshot.total_errors,
        )
        return snapshot

    def _publish(self, snapshot: MetricSnapshot) -> None:
        self.store.append(snapshot)
        if self._on_snapshot is not None:
            self._on_snapshot(snapshot)

    async def _run_virtual_user(self, user_id: int) -> None:
        """One virtual user: setup once, iterate until stopped, teardown always."""
        scenario = self.scenario
        instance = scenario.cls()
        async with HttpClient(
            base_url=scenario.base_url,
            headers=dict(scenario.default_headers),
            metric_callback=self._collector.record,
            worker_id=self._worker_id,
            timeout=self._config.request_timeout,
            pool_size=self._config.connection_pool_size,
        ) as client:
            try:
                if not await self._call_hook(scenario.setup_func, instance, client, user_id):
                    return
                while not self._stop_event.is_set():
                    await self._iterate(instance, client, user_id)
                    # Zero think time still yields to the loop
                    await asyncio.sleep(think_time_seconds(scenario.think_time))
            except asyncio.CancelledError:
                pass
            finally:
                await self._call_hook(scenario.teardown_func, instance, client, user_id)

    async def _iterate(self, instance: object, client: HttpClient, user_id: int) -> None:
        chosen = pick_weighted_task(self.scenario.tasks)
        try:
            await chosen.func(instance, client)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.debug("User %d: task %s raised", user_id, chosen.name, exc_info=True)
            self._collector.record_iteration(interrupted=True)
        else:
            self._collector.record_iteration()

    @staticmethod
    async def _call_hook(
        hook: AsyncScenarioMethod | None,
        instance: object,
        client: HttpClient,
        user_id: int,
    ) -> bool:
        """Await a setup or teardown hook; False if it raised."""
        if hook is None:
            return True
        try:
            await hook(instance, client)
        except Exception:
            name = getattr(hook, "__name__", "hook")
            logger.warning("User %d: %s raised", user_id, name, exc_info=True)
            return False
        return True

    async def _scale_users(self, target: int) -> None:
        """Start or stop virtual users until *target* are running."""
        self._user_tasks = [(uid, t) for uid, t in self._user_tasks if not t.done()]
        missing = target - self.active_user_count

        for _ in range(missing):
            user_id = self._next_user_id
            self._next_user_id += 1
            task = asyncio.create_task(
                self._run_virtual_user(user_id),
                name=f"virtual-user-{user_id}",
            )
            self._user_tasks.append((user_id, task))

        # Newest users go first
        for _ in range(-missing):
            _uid, task = self._user_tasks.pop()
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, TimeoutError):
                await asyncio.wait_for(asyncio.shield(task), timeout=_RETIRE_WAIT_SECONDS)

    def _request_stop_from_signal(self) -> None:
        logger.info("Interrupted, stopping virtual users")
        self._state = SessionState.STOPPING
        self._stop_event.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            for sig in _STOP_SIGNALS:
                if sys.platform == "win32":
                    signal.signal(sig, lambda _s, _f: self._request_stop_from_signal())
                else:
                    loop.add_signal_handler(sig, self._request_stop_from_signal)
        except (RuntimeError, ValueError):
            # Signal handlers need the main thread
            logger.debug("Running without signal handlers")
            return
        self._signals_installed = True

    def _remove_signal_handlers(self) -> None:
        if not self._signals_installed:
            return
        self._signals_installed = False
        if sys.platform == "win32":
            signal.signal(signal.SIGINT, signal.default_int_handler)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)
            return
        loop = asyncio.get_running_loop()
        for sig in _STOP_SIGNALS:
            loop.remove_signal_handler(sig)
