"""Class and method decorators that turn a plain class into a scenario."""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any

from explorerload._internal.errors import ScenarioError
from explorerload.dsl.scenario import (
    AsyncScenarioMethod,
    ScenarioDefinition,
    TaskDefinition,
    registry,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from explorerload._internal.types import Headers, ThinkTime

# Decorated methods carry their role, and task options, on this attribute.
_ROLE_ATTR = "__explorerload_role__"
_TASK_OPTIONS_ATTR = "__explorerload_task_options__"

_HOOK_ROLES = ("setup", "teardown")


def _mark(func: AsyncScenarioMethod, role: str, **options: Any) -> AsyncScenarioMethod:
    setattr(func, _ROLE_ATTR, role)
    if options:
        setattr(func, _TASK_OPTIONS_ATTR, options)
    return func


def _marked_members(cls: type) -> list[tuple[str, str, Any]]:
    """Return ``(attr_name, role, member)`` for every decorated method of *cls*."""
    found = []
    for attr_name in dir(cls):
        if attr_name.startswith("__"):
            continue
        member = getattr(cls, attr_name, None)
        role = getattr(member, _ROLE_ATTR, None)
        if role is None or not callable(member):
            continue
        if not inspect.iscoroutinefunction(member):
            msg = f"{role.capitalize()} method {cls.__name__}.{attr_name} must be an async function"
            raise ScenarioError(msg)
        found.append((attr_name, role, member))
    return found


def _build_definition(
    cls: type,
    *,
    name: str,
    base_url: str,
    default_headers: Headers | None,
    think_time: ThinkTime,
) -> ScenarioDefinition:
    tasks: list[TaskDefinition] = []
    hooks: dict[str, AsyncScenarioMethod] = {}

    for attr_name, role, member in _marked_members(cls):
        if role in _HOOK_ROLES:
            if role in hooks:
                msg = f"Scenario {cls.__name__} has multiple @{role} methods"
                raise ScenarioError(msg)
            hooks[role] = member
            continue
        options = getattr(member, _TASK_OPTIONS_ATTR, {})
        tasks.append(
            TaskDefinition(
                name=options.get("name") or attr_name,
                func=member,
                weight=options.get("weight", 1),
            )
        )

    if not tasks:
        msg = f"Scenario {cls.__name__} has no @task methods. At least one @task is required."
        raise ScenarioError(msg)

    return ScenarioDefinition(
        name=name,
        cls=cls,
        base_url=base_url,
        default_headers=dict(default_headers or {}),
        tasks=tasks,
        setup_func=hooks.get("setup"),
        teardown_func=hooks.get("teardown"),
        think_time=think_time,
    )


def scenario(
    *,
    name: str,
    base_url: str,
    default_headers: Headers | None = None,
    think_time: ThinkTime = (0.0, 0.0),
) -> Callable[[type], ScenarioDefinition]:
    """Register the decorated class as a scenario.

    The decorator replaces the class with its ``ScenarioDefinition``. A
    virtual user instantiates the original class once and calls one of its
    ``@task`` methods per iteration, with no pause unless *think_time* asks
    for one.

    Raises:
        ScenarioError: On an invalid think_time, a missing ``@task``, a
            non-async hook or task, or a second ``@setup``/``@teardown``.
    """
    low, high = think_time
    if low < 0 or high < low:
        msg = f"think_time must satisfy 0 <= min <= max, got {think_time}"
        raise ScenarioError(msg)

    def decorator(cls: type) -> ScenarioDefinition:
        definition = _build_definition(
            cls,
            name=name,
            base_url=base_url,
            default_headers=default_headers,
            think_time=think_time,
        )
        registry.register(definition)
        return definition

    return decorator


def task(
    *,
    weight: int = 1,
    name: str | None = None,
) -> Callable[[AsyncScenarioMethod], AsyncScenarioMethod]:
    """Mark a method as one scenario iteration.

    When a scenario has several tasks each iteration draws one, with
    probability proportional to *weight*. *name* is what logs show and
    defaults to the method name.
    """
    if weight < 1:
        msg = f"Task weight must be >= 1, got {weight}"
        raise ScenarioError(msg)

    def decorator(func: AsyncScenarioMethod) -> AsyncScenarioMethod:
        return _mark(func, "task", weight=weight, name=name)

    return decorator


def setup(func: AsyncScenarioMethod) -> AsyncScenarioMethod:
    """Run *func* once per virtual user before its first iteration."""
    return _mark(func, "setup")


def teardown(func: AsyncScenarioMethod) -> AsyncScenarioMethod:
    """Run *func* once per virtual user on exit, cancellation included."""
    return _mark(func, "teardown")
