from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

Role = Literal["system", "user", "assistant", "tool"]

ROLES: frozenset[str] = frozenset({"system", "user", "assistant", "tool"})


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "input": self.input}

    @classmethod
    def from_dict(cls, data: dict) -> ToolCall:
        return cls(id=str(data["id"]), name=str(data["name"]), input=dict(data.get("input") or {}))


@dataclass(frozen=True)
class ToolResult:
    id: str
    output: str
    is_error: bool = False

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"id": self.id, "output": self.output}
        if self.is_error:
            data["isError"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict) -> ToolResult:
        return cls(
            id=str(data["id"]),
            output=str(data.get("output", "")),
            is_error=bool(data.get("isError", False)),
        )


@dataclass(frozen=True)
class Message:
    """One turn in the dialogue.

    ``content`` is plain text or a list of content parts such as
    ``{"type": "text", "text": "..."}``.
    """

    role: Role
    content: str | list[dict]
    tool_calls: list[ToolCall] | None = None
    tool_results: list[ToolResult] | None = None

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role: {self.role!r}")
        if self.tool_calls is not None and self.role != "assistant":
            raise ValueError(f"tool_calls are only allowed on assistant messages, got role {self.role!r}")
        if self.tool_results is not None and self.role != "tool":
            raise ValueError(f"tool_results are only allowed on tool messages, got role {self.role!r}")

    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return " ".join(
            str(part["text"])
            for part in self.content
            if isinstance(part, dict) and part.get("text")
        )

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls is not None:
            data["toolCalls"] = [c.to_dict() for c in self.tool_calls]
        if self.tool_results is not None:
            data["toolResults"] = [r.to_dict() for r in self.tool_results]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Message:
        raw_calls = data.get("toolCalls")
        raw_results = data.get("toolResults")
        content = data.get("content") or ""
        return cls(
            role=data["role"],
            content=copy.deepcopy(content) if isinstance(content, list) else str(content),
            tool_calls=[ToolCall.from_dict(c) for c in raw_calls] if raw_calls is not None else None,
            tool_results=[ToolResult.from_dict(r) for r in raw_results] if raw_results is not None else None,
        )


@dataclass
class Session:
    id: str
    created_at: datetime
    updated_at: datetime
    provider: str
    model: str
    messages: list[Message]
    total_tokens: int = 0
    total_cost: float = 0.0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "provider": self.provider,
            "model": self.model,
            "messages": [m.to_dict() for m in self.messages],
            "totalTokens": self.total_tokens,
            "totalCost": self.total_cost,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Session:
        return cls(
            id=str(data["id"]),
            created_at=parse_timestamp(data["createdAt"]),
            updated_at=parse_timestamp(data["updatedAt"]),
            provider=str(data.get("provider", "")),
            model=str(data.get("model", "")),
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            total_tokens=int(data.get("totalTokens", 0)),
            total_cost=float(data.get("totalCost", 0.0)),
        )


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
