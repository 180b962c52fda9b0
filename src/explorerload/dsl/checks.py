"""Named boolean assertions against responses."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from explorerload._internal.logging import get_logger
from explorerload.metrics.custom import metric_registry

if TYPE_CHECKING:
    from collections.abc import Mapping

    from explorerload._internal.types import CheckPredicate
    from explorerload.metrics.custom import MetricRegistry

logger = get_logger("dsl.checks")


def check(
    value: Any,
    checks: Mapping[str, CheckPredicate],
    *,
    registry: MetricRegistry | None = None,
) -> bool:
    """Evaluate named predicates against *value* and record each outcome.

    Every predicate is evaluated, even after one fails, so each check name
    gets a pass or fail recorded for this call. A predicate that raises
    counts as failed. Failed checks are data for the run summary; they never
    stop the iteration.

    Example::

        passed = check(res, {"status is 200": lambda r: r.status == 200})

    Args:
        value: Usually a ``Response``.
        checks: Mapping of check name to predicate.
        registry: Where results are recorded. Defaults to the global
            ``metric_registry``.

    Returns:
        True if every predicate returned a truthy value.
    """
    stats = (registry if registry is not None else metric_registry).checks
    all_passed = True

    for name, predicate in checks.items():
        try:
            passed = bool(predicate(value))
        except Exception:
            logger.debug("Check %r raised, counting it as failed", name, exc_info=True)
            passed = False
        stats.record(name, passed=passed)
        all_passed = all_passed and passed

    return all_passed
