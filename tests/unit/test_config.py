"""Tests for configuration loading and logging setup."""

from __future__ import annotations

import json
import logging

import pytest

from explorerload._internal.config import ExplorerLoadConfig, load_config
from explorerload._internal.errors import ConfigError
from explorerload._internal.logging import (
    _HANDLER_NAME,
    _JsonFormatter,
    _package_handler,
    get_logger,
    setup_logging,
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in ("EXPLORERLOAD_TIMEOUT", "EXPLORERLOAD_POOL_SIZE", "EXPLORERLOAD_LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestExplorerLoadConfig:
    """Tests for the ExplorerLoadConfig dataclass."""

    def test_defaults(self):
        config = ExplorerLoadConfig()
        assert config.request_timeout == 60.0
        assert config.connection_pool_size == 100
        assert config.log_format == "text"
        assert config.json_logs is False

    def test_json_logs(self):
        assert ExplorerLoadConfig(log_format="json").json_logs is True

    def test_frozen(self):
        """ExplorerLoadConfig is immutable."""
        config = ExplorerLoadConfig()
        with pytest.raises(AttributeError):
            config.request_timeout = 1.0  # type: ignore[misc]


class TestLoadConfig:
    """Tests for the load_config function."""

    def test_defaults_from_env(self, clean_env: pytest.MonkeyPatch):
        config = load_config()
        assert config == ExplorerLoadConfig()

    def test_timeout_from_env(self, clean_env: pytest.MonkeyPatch):
        clean_env.setenv("EXPLORERLOAD_TIMEOUT", "10.5")
        assert load_config().request_timeout == 10.5

    def test_pool_size_from_env(self, clean_env: pytest.MonkeyPatch):
        clean_env.setenv("EXPLORERLOAD_POOL_SIZE", "50")
        assert load_config().connection_pool_size == 50

    def test_log_format_is_case_insensitive(self, clean_env: pytest.MonkeyPatch):
        clean_env.setenv("EXPLORERLOAD_LOG_FORMAT", " JSON ")
        assert load_config().json_logs is True

    def test_invalid_pool_size_raises_error(self, clean_env: pytest.MonkeyPatch):
        clean_env.setenv("EXPLORERLOAD_POOL_SIZE", "not_a_number")
        with pytest.raises(ConfigError, match="must be an integer"):
            load_config()

    def test_zero_pool_size_raises_error(self, clean_env: pytest.MonkeyPatch):
        clean_env.setenv("EXPLORERLOAD_POOL_SIZE", "0")
        with pytest.raises(ConfigError, match="must be >= 1"):
            load_config()

    def test_invalid_timeout_raises_error(self, clean_env: pytest.MonkeyPatch):
        clean_env.setenv("EXPLORERLOAD_TIMEOUT", "abc")
        with pytest.raises(ConfigError, match="must be a number"):
            load_config()

    @pytest.mark.parametrize("value", ["0", "-5.0"])
    def test_non_positive_timeout_raises_error(
        self, clean_env: pytest.MonkeyPatch, value: str
    ):
        clean_env.setenv("EXPLORERLOAD_TIMEOUT", value)
        with pytest.raises(ConfigError, match="must be positive"):
            load_config()

    def test_unknown_log_format_raises_error(self, clean_env: pytest.MonkeyPatch):
        clean_env.setenv("EXPLORERLOAD_LOG_FORMAT", "xml")
        with pytest.raises(ConfigError, match="EXPLORERLOAD_LOG_FORMAT"):
            load_config()


class TestLogging:
    """Tests for the explorerload logger setup."""

    @pytest.fixture(autouse=True)
    def _reset_logger(self):
        logger = logging.getLogger("explorerload")
        saved_handlers = list(logger.handlers)
        saved_level, saved_propagate = logger.level, logger.propagate
        for handler in saved_handlers:
            if handler.get_name() == _HANDLER_NAME:
                logger.removeHandler(handler)
        yield
        logger.handlers[:] = saved_handlers
        logger.setLevel(saved_level)
        logger.propagate = saved_propagate

    @staticmethod
    def _installed(logger: logging.Logger) -> list[logging.Handler]:
        return [h for h in logger.handlers if h.get_name() == _HANDLER_NAME]

    def test_setup_is_idempotent(self):
        first = setup_logging(logging.INFO)
        second = setup_logging(logging.DEBUG)
        assert first is second
        assert len(self._installed(second)) == 1
        handler = _package_handler(second)
        assert handler is not None
        assert second.level == logging.DEBUG
        assert handler.level == logging.DEBUG
        assert second.propagate is False

    def test_json_format(self):
        logger = setup_logging(json_format=True)
        handler = _package_handler(logger)
        assert handler is not None
        assert isinstance(handler.formatter, _JsonFormatter)

    def test_foreign_handler_does_not_block_setup(self):
        logger = logging.getLogger("explorerload")
        foreign = logging.NullHandler()
        logger.addHandler(foreign)

        setup_logging(json_format=True)

        handler = _package_handler(logger)
        assert handler is not None
        assert handler is not foreign
        assert isinstance(handler.formatter, _JsonFormatter)
        assert foreign in logger.handlers

    def test_later_call_switches_format(self):
        logger = setup_logging(json_format=True)
        setup_logging(json_format=False)

        handler = _package_handler(logger)
        assert handler is not None
        assert not isinstance(handler.formatter, _JsonFormatter)
        assert len(self._installed(logger)) == 1

    def test_get_logger_is_child(self):
        assert get_logger("engine.session").name == "explorerload.engine.session"

    def test_json_formatter_output(self):
        record = logging.LogRecord(
            name="explorerload.test",
            level=logging.WARNING,
            pathname=__file__,
            lineno=1,
            msg="%d checks failed",
            args=(3,),
            exc_info=None,
        )
        entry = json.loads(_JsonFormatter().format(record))
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "explorerload.test"
        assert entry["message"] == "3 checks failed"
        assert "exception" not in entry
