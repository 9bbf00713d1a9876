from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Protocol, runtime_checkable

from session_core.session.models import ToolResult

PermissionLevel = Literal["auto", "prompt", "deny"]


@dataclass(frozen=True)
class ToolContext:
    cwd: str
    project_root: str | None = None

    def resolve_path(self, path: str) -> Path:
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return Path(self.project_root or self.cwd) / candidate


@dataclass(frozen=True)
class ToolExecutionResult:
    success: bool
    output: str | None = None
    error: str | None = None

    def to_tool_result(self, call_id: str) -> ToolResult:
        if self.success:
            return ToolResult(id=call_id, output=self.output or "")
        return ToolResult(id=call_id, output=self.error or "Tool failed", is_error=True)


@runtime_checkable
class Tool(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    @property
    def input_schema(self) -> dict[str, Any]: ...

    @property
    def permission(self) -> PermissionLevel: ...

    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolExecutionResult: ...
