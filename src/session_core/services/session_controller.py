from __future__ import annotations

from loguru import logger

from session_core.compaction import HistoryCompactor
from session_core.errors import SessionCoreError, format_error
from session_core.session import (
    ConversationHistory,
    SessionStore,
    format_session_summary,
    restore_history,
)
from session_core.usage import TokenUsage, format_cost, format_token_count

HELP_LINES = [
    "/help            Show this help message",
    "/clear           Clear conversation history",
    "/history         Show conversation history",
    "/undo            Undo the last turn",
    "/session         Session management (list, load, save, delete)",
    "/compact         Summarize older messages to save context space",
    "/cost            Show session token usage and cost",
    "/exit            Exit",
]

_SESSION_USAGE = [
    "Session commands:",
    "  /session list        - List saved sessions",
    "  /session load <id>   - Load a session",
    "  /session save        - Save current session",
    "  /session delete <id> - Delete a saved session",
]


class SessionController:
    """Handlers behind the slash commands. Each returns the lines to show the user."""

    def __init__(
        self,
        *,
        history: ConversationHistory,
        store: SessionStore,
        provider_name: str,
        model: str,
        compactor: HistoryCompactor | None = None,
        session_id: str | None = None,
        line_prefix: str = "",
        list_limit: int = 10,
    ):
        self._history = history
        self._store = store
        self._provider_name = provider_name
        self._model = model
        self._compactor = compactor
        self._line_prefix = line_prefix
        self._list_limit = list_limit
        self.session_id = session_id
        self.total_tokens = 0
        self.total_cost = 0.0

    @property
    def history(self) -> ConversationHistory:
        return self._history

    def record_usage(self, usage: TokenUsage, cost: float = 0.0) -> None:
        self.total_tokens += usage.total_tokens
        self.total_cost += cost

    async def save(self) -> str:
        self.session_id = await self._store.save_session(
            self._history,
            self._provider_name,
            self._model,
            self.total_tokens,
            self.total_cost,
            self.session_id,
        )
        return self.session_id

    async def handle_session_command(self, command: str) -> list[str]:
        parts = command.strip().split()
        args = parts[1:] if parts and parts[0].lower() == "/session" else parts
        sub = args[0].lower() if args else ""

        if sub in ("list", "ls"):
            sessions = await self._store.list_sessions(self._list_limit)
            if not sessions:
                return self._lines(["No saved sessions"])
            lines = ["Recent sessions:"]
            for session in sessions:
                marker = "*" if session.id == self.session_id else " "
                lines.append(f"{marker} {format_session_summary(session)}")
            return self._lines(lines)

        if sub == "load":
            if len(args) < 2:
                return self._lines(["Usage: /session load <session-id>"])
            lookup = await self._store.find_session(args[1])
            if lookup.session is None:
                if lookup.status == "error":
                    return self._lines([f"Session could not be read: {args[1]} ({lookup.error})"])
                return self._lines([f"Session not found: {args[1]}"])
            restore_history(lookup.session, self._history)
            self.session_id = lookup.session.id
            self.total_tokens = lookup.session.total_tokens
            self.total_cost = lookup.session.total_cost
            logger.info(f"Loaded session {lookup.session.id}")
            return self._lines([f"Loaded session: {lookup.session.id}"])

        if sub == "save":
            try:
                sid = await self.save()
            except SessionCoreError as ex:
                return self._lines([f"Save failed: {format_error(ex)}"])
            return self._lines([f"Session saved: {sid}"])

        if sub in ("delete", "rm"):
            if len(args) < 2:
                return self._lines(["Usage: /session delete <session-id>"])
            if await self._store.delete_session(args[1]):
                if args[1] == self.session_id:
                    self.session_id = None
                return self._lines([f"Deleted session: {args[1]}"])
            return self._lines([f"Session not found: {args[1]}"])

        return self._lines(_SESSION_USAGE)

    def handle_help(self) -> list[str]:
        return self._lines(HELP_LINES)

    def handle_undo(self) -> list[str]:
        if self._history.undo_last():
            return self._lines(["Undid last turn"])
        return self._lines(["Nothing to undo"])

    def handle_clear(self) -> list[str]:
        self._history.clear()
        return self._lines(["Conversation cleared"])

    def handle_history(self) -> list[str]:
        messages = [m for m in self._history.get_messages() if m.role != "system"]
        if not messages:
            return self._lines(["No conversation history"])

        lines = ["Conversation history:"]
        for msg in messages:
            if msg.role == "tool":
                text = f"{len(msg.tool_results or [])} tool result(s)"
            else:
                text = msg.content if isinstance(msg.content, str) else "[complex content]"
            preview = text[:100] + ("..." if len(text) > 100 else "")
            lines.append(f"[{msg.role}] {preview}")
            if msg.tool_calls:
                lines.append(f"  ({len(msg.tool_calls)} tool call(s))")
        return self._lines(lines)

    async def handle_compact(self) -> list[str]:
        if self._compactor is None:
            return self._lines(["Compaction is not enabled"])
        before = self._history.get_message_count()
        try:
            await self._compactor.compact(self._history)
        except Exception as ex:
            logger.warning(f"Manual compaction failed: {ex}")
            return self._lines([f"Compaction failed: {format_error(ex)}"])
        after = self._history.get_message_count()
        return self._lines([f"Compacted conversation: {before} -> {after} messages"])

    def handle_cost(self) -> list[str]:
        return self._lines([
            f"Tokens: {format_token_count(self.total_tokens)}",
            f"Cost: {format_cost(self.total_cost)}",
            f"Messages: {self._history.get_message_count()}",
        ])

    def _lines(self, lines: list[str]) -> list[str]:
        return [f"{self._line_prefix}{line}" for line in lines]
