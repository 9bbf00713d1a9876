from __future__ import annotations

import copy
from collections.abc import Iterable

from loguru import logger

from session_core.session.models import Message, ToolCall, ToolResult

DEFAULT_MAX_MESSAGES = 100
COMPACT_TAIL_MESSAGES = 10


class ConversationHistory:
    """Ordered dialogue log with a retention cap on non-system messages.

    System messages sit at the front, never count against ``max_messages``
    and survive ``clear`` and ``compact``.
    """

    def __init__(self, max_messages: int = DEFAULT_MAX_MESSAGES):
        self._messages: list[Message] = []
        self._max_messages = max_messages

    @property
    def max_messages(self) -> int:
        return self._max_messages

    def add_user_message(self, content: str | list[dict]) -> None:
        self._messages.append(Message(role="user", content=copy.deepcopy(content)))
        self._trim()

    def add_assistant_message(self, content: str | list[dict], tool_calls: list[ToolCall] | None = None) -> None:
        self._messages.append(Message(
            role="assistant",
            content=copy.deepcopy(content),
            tool_calls=copy.deepcopy(tool_calls),
        ))
        self._trim()

    def add_tool_results(self, results: list[ToolResult]) -> None:
        self._messages.append(Message(role="tool", content="", tool_results=copy.deepcopy(list(results))))
        self._trim()

    def add_system_message(self, content: str) -> None:
        self._messages.insert(0, Message(role="system", content=content))

    def get_messages(self) -> list[Message]:
        return copy.deepcopy(self._messages)

    def get_last_message(self) -> Message | None:
        if not self._messages:
            return None
        return copy.deepcopy(self._messages[-1])

    def get_message_count(self) -> int:
        return len(self._messages)

    def clear(self) -> None:
        self._messages = [m for m in self._messages if m.role == "system"]

    def compact(self, summary: str) -> None:
        system_messages = [m for m in self._messages if m.role == "system"]
        # The tail may repeat system messages already in the prefix.
        recent = self._messages[-COMPACT_TAIL_MESSAGES:]
        before = len(self._messages)
        self._messages = [
            *system_messages,
            Message(role="assistant", content=f"[Previous conversation summary: {summary}]"),
            *recent,
        ]
        logger.debug(f"History compacted: {before} -> {len(self._messages)} messages")

    def undo_last(self) -> bool:
        if not self._messages:
            return False

        last = self._messages[-1]
        if last.role == "system":
            return False

        self._messages.pop()
        removed = 1
        if last.role in ("assistant", "tool") and self._messages and self._messages[-1].role == "user":
            self._messages.pop()
            removed += 1

        logger.debug(f"Undo removed {removed} message(s)")
        return True

    def to_json(self) -> list[dict]:
        return [m.to_dict() for m in self._messages]

    def from_json(self, messages: Iterable[Message | dict]) -> None:
        self._messages = [
            copy.deepcopy(m) if isinstance(m, Message) else Message.from_dict(m)
            for m in messages
        ]
        self._trim()

    def _trim(self) -> None:
        system_messages = [m for m in self._messages if m.role == "system"]
        other_messages = [m for m in self._messages if m.role != "system"]

        if len(other_messages) > self._max_messages:
            dropped = len(other_messages) - self._max_messages
            kept = other_messages[-self._max_messages:] if self._max_messages > 0 else []
            self._messages = [*system_messages, *kept]
            logger.debug(f"History trimmed {dropped} message(s) to cap {self._max_messages}")


_default_history: ConversationHistory | None = None


def get_conversation_history() -> ConversationHistory:
    global _default_history
    if _default_history is None:
        _default_history = ConversationHistory()
    return _default_history


def reset_conversation_history() -> None:
    if _default_history is not None:
        _default_history.clear()
