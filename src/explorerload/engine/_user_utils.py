"""Helpers for the virtual-user loop: task choice, pauses, and shutdown."""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING

from explorerload._internal.logging import get_logger

if TYPE_CHECKING:
    from explorerload.dsl.scenario import TaskDefinition

logger = get_logger("engine.user_utils")

_CANCEL_WAIT_SECONDS = 2.0


def pick_weighted_task(tasks: list[TaskDefinition]) -> TaskDefinition:
    # Single-task scenarios, such as the Dora journey, skip the draw
    if len(tasks) == 1:
        return tasks[0]
    (chosen,) = random.choices(tasks, weights=[t.weight for t in tasks])  # noqa: S311
    return chosen


def think_time_seconds(think_time: tuple[float, float]) -> float:
    low, high = think_time
    return random.uniform(low, high) if high > 0 else 0.0  # noqa: S311


async def shutdown_all_users(
    user_tasks: list[tuple[int, asyncio.Task[None]]],
    stop_event: asyncio.Event,
    *,
    grace_period: float = 5.0,
) -> None:
    """Ask every virtual user to stop, then cancel the stragglers.

    Users see *stop_event* at the end of their current iteration. Any user
    still running after *grace_period* seconds is cancelled, which still
    runs its teardown hook. *user_tasks* is emptied before returning.
    """
    stop_event.set()
    running = [task for _uid, task in user_tasks]
    user_tasks.clear()
    if not running:
        return

    _finished, stragglers = await asyncio.wait(running, timeout=grace_period)
    if stragglers:
        logger.debug("Cancelling %d virtual users still running", len(stragglers))
        for task in stragglers:
            task.cancel()
        await asyncio.wait(stragglers, timeout=_CANCEL_WAIT_SECONDS)
    logger.debug("Stopped %d virtual users", len(running))
