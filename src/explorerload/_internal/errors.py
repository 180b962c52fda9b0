"""Exception hierarchy for explorerload."""

from __future__ import annotations


class ExplorerLoadError(Exception):
    """Base exception for all explorerload errors.

    Catch this to handle any failure raised by the runtime itself. Failed
    HTTP requests are never raised; they show up as failed checks.
    """


class ScenarioError(ExplorerLoadError):
    """Raised when a scenario definition is invalid.

    Examples:
        - A class decorated with @scenario has no @task methods.
        - A @task method is not a coroutine function.
        - A scenario file cannot be loaded or parsed.
    """


class ConfigError(ExplorerLoadError):
    """Raised when configuration is invalid.

    Examples:
        - An environment variable holds a value that does not parse.
        - A load pattern argument is out of range.
    """


class EngineError(ExplorerLoadError):
    """Raised when a test run cannot be started or fails while running."""


class MetricError(ExplorerLoadError):
    """Raised when a custom metric is misused.

    Examples:
        - A negative value is added to a Counter.
        - Two metrics of different kinds share one name.
    """
