"""Runtime configuration for explorerload."""

from __future__ import annotations

import os
from dataclasses import dataclass

from explorerload._internal.errors import ConfigError

DEFAULT_TIMEOUT = 60.0
DEFAULT_POOL_SIZE = 100

_LOG_FORMATS = ("text", "json")


@dataclass(frozen=True)
class ExplorerLoadConfig:
    """Global runtime configuration.

    Attributes:
        request_timeout: Total timeout for one HTTP request, in seconds.
            Requests that exceed it fail their checks instead of hanging the
            virtual user.
        connection_pool_size: Maximum open connections per virtual user.
        log_format: ``"text"`` for human-readable logs, ``"json"`` for one
            JSON object per line.
    """

    request_timeout: float = DEFAULT_TIMEOUT
    connection_pool_size: int = DEFAULT_POOL_SIZE
    log_format: str = "text"

    @property
    def json_logs(self) -> bool:
        """Return True when structured JSON logs were requested."""
        return self.log_format == "json"


def load_config() -> ExplorerLoadConfig:
    """Load configuration from environment variables with defaults.

    Environment variables:
        EXPLORERLOAD_TIMEOUT: Request timeout in seconds (default: 60.0).
        EXPLORERLOAD_POOL_SIZE: Connection pool size (default: 100).
        EXPLORERLOAD_LOG_FORMAT: ``text`` or ``json`` (default: text).

    Returns:
        Populated ExplorerLoadConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    timeout_str = os.environ.get("EXPLORERLOAD_TIMEOUT", str(DEFAULT_TIMEOUT))
    pool_size_str = os.environ.get("EXPLORERLOAD_POOL_SIZE", str(DEFAULT_POOL_SIZE))
    log_format = os.environ.get("EXPLORERLOAD_LOG_FORMAT", "text").strip().lower()

    try:
        timeout = float(timeout_str)
    except ValueError:
        msg = f"EXPLORERLOAD_TIMEOUT must be a number, got: {timeout_str!r}"
        raise ConfigError(msg) from None

    if timeout <= 0:
        msg = f"EXPLORERLOAD_TIMEOUT must be positive, got: {timeout}"
        raise ConfigError(msg)

    try:
        pool_size = int(pool_size_str)
    except ValueError:
        msg = f"EXPLORERLOAD_POOL_SIZE must be an integer, got: {pool_size_str!r}"
        raise ConfigError(msg) from None

    if pool_size < 1:
        msg = f"EXPLORERLOAD_POOL_SIZE must be >= 1, got: {pool_size}"
        raise ConfigError(msg)

    if log_format not in _LOG_FORMATS:
        msg = f"EXPLORERLOAD_LOG_FORMAT must be one of {_LOG_FORMATS}, got: {log_format!r}"
        raise ConfigError(msg)

    return ExplorerLoadConfig(
        request_timeout=timeout,
        connection_pool_size=pool_size,
        log_format=log_format,
    )
