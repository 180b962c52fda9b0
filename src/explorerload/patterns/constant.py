"""Fixed virtual-user count, k6's ``--vus N --duration D``."""

from __future__ import annotations

from explorerload._internal.errors import ConfigError
from explorerload.patterns.base import LoadPattern


class ConstantPattern(LoadPattern):
    def __init__(self, users: int) -> None:
        if users < 1:
            msg = f"users must be >= 1, got {users}"
            raise ConfigError(msg)
        self._users = users

    @property
    def users(self) -> int:
        return self._users

    def users_at(self, elapsed: float) -> int:  # noqa: ARG002
        return self._users

    def describe(self) -> str:
        return f"Constant: {self._users} users"
