"""Package-wide logging configuration."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

_ROOT_LOGGER = "explorerload"
_HANDLER_NAME = "explorerload-stderr"
_TEXT_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
_TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _JsonFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def _make_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return _JsonFormatter()
    return logging.Formatter(_TEXT_FORMAT, _TEXT_DATEFMT)


def _package_handler(logger: logging.Logger) -> logging.Handler | None:
    """Return the handler ``setup_logging`` installed, ignoring any others."""
    for handler in logger.handlers:
        if handler.get_name() == _HANDLER_NAME:
            return handler
    return None


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Configure and return the ``explorerload`` logger.

    Installs one named stderr handler on the first call. Later calls reuse
    that handler, updating its level and format, so the CLI and
    ``LoadTestRunner`` can both call this. Handlers attached by other code
    are left alone.

    Args:
        level: Logging level for the logger and its handler.
        json_format: Emit one JSON object per line instead of text.

    Returns:
        The ``explorerload`` logger.
    """
    root = logging.getLogger(_ROOT_LOGGER)
    root.setLevel(level)

    handler = _package_handler(root)
    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.set_name(_HANDLER_NAME)
        root.addHandler(handler)
        # Keep records out of the root logger's handlers
        root.propagate = False

    handler.setLevel(level)
    handler.setFormatter(_make_formatter(json_format))
    return root


def get_logger(name: str) -> logging.Logger:
    """Return the child logger ``explorerload.<name>``, e.g. ``get_logger("engine.session")``."""
    return logging.getLogger(f"{_ROOT_LOGGER}.{name}")
