from __future__ import annotations

from typing import Any


class SessionCoreError(Exception):
    code = "SESSION_CORE_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})


class SessionStorageError(SessionCoreError):
    code = "STORAGE_ERROR"


class ConfigError(SessionCoreError):
    code = "CONFIG_ERROR"


class ProviderError(SessionCoreError):
    code = "PROVIDER_ERROR"

    def __init__(self, message: str, provider: str, details: dict[str, Any] | None = None):
        super().__init__(message, {"provider": provider, **(details or {})})


class ToolError(SessionCoreError):
    code = "TOOL_ERROR"

    def __init__(self, message: str, tool_name: str, details: dict[str, Any] | None = None):
        super().__init__(message, {"tool_name": tool_name, **(details or {})})


def format_error(error: BaseException | object) -> str:
    if isinstance(error, SessionCoreError):
        return f"[{error.code}] {error.message}"
    return str(error)
