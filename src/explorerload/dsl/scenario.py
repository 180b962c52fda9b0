"""Scenario and task definitions and the global scenario registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from explorerload._internal.errors import ScenarioError
from explorerload._internal.types import Headers, ThinkTime


class AsyncScenarioMethod(Protocol):
    """An unbound ``async def method(self, client) -> None``.

    Used for tasks as well as setup and teardown hooks.
    """

    @property
    def __name__(self) -> str: ...

    async def __call__(self, instance: object, client: object) -> None: ...


@dataclass
class TaskDefinition:
    """One ``@task`` method of a scenario.

    Attributes:
        name: Name used in logs.
        func: The unbound coroutine function.
        weight: Relative selection weight; higher runs more often.
    """

    name: str
    func: AsyncScenarioMethod
    weight: int = 1


@dataclass
class ScenarioDefinition:
    """A scenario as the engine sees it; ``@scenario`` swaps the class for this.

    Each virtual user builds one ``cls()`` instance and passes it, with its
    own ``HttpClient``, to the hooks and tasks. ``think_time`` is a
    ``(min, max)`` pause in seconds after every iteration, none by default.
    """

    name: str
    cls: type
    base_url: str
    default_headers: Headers = field(default_factory=dict)
    tasks: list[TaskDefinition] = field(default_factory=list)
    setup_func: AsyncScenarioMethod | None = None
    teardown_func: AsyncScenarioMethod | None = None
    think_time: ThinkTime = (0.0, 0.0)


class ScenarioRegistry:
    """Scenarios by name. ``@scenario`` registers into the module-level ``registry``."""

    def __init__(self) -> None:
        self._scenarios: dict[str, ScenarioDefinition] = {}

    def register(self, definition: ScenarioDefinition) -> None:
        """Add *definition*; a duplicate name raises ``ScenarioError``."""
        if definition.name in self._scenarios:
            msg = f"Scenario {definition.name!r} is already registered"
            raise ScenarioError(msg)
        self._scenarios[definition.name] = definition

    def get(self, name: str) -> ScenarioDefinition | None:
        return self._scenarios.get(name)

    def get_all(self) -> list[ScenarioDefinition]:
        return list(self._scenarios.values())

    def clear(self) -> None:
        self._scenarios.clear()

    def __len__(self) -> int:
        return len(self._scenarios)


registry = ScenarioRegistry()
