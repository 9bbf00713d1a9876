from __future__ import annotations

from collections.abc import Awaitable, Callable

_EXIT_COMMANDS = {"/exit", "/quit", "/q"}
_HELP_COMMANDS = {"/help", "/h", "/?"}


class CommandRouter:
    def __init__(
        self,
        *,
        on_help: Callable[[], Awaitable[None]],
        on_clear: Callable[[], Awaitable[None]],
        on_history: Callable[[], Awaitable[None]],
        on_undo: Callable[[], Awaitable[None]],
        on_session: Callable[[str], Awaitable[None]],
        on_compact: Callable[[], Awaitable[None]],
        on_cost: Callable[[], Awaitable[None]],
        on_exit: Callable[[], Awaitable[None]],
        on_unknown: Callable[[str], None],
    ) -> None:
        self._on_help = on_help
        self._on_clear = on_clear
        self._on_history = on_history
        self._on_undo = on_undo
        self._on_session = on_session
        self._on_compact = on_compact
        self._on_cost = on_cost
        self._on_exit = on_exit
        self._on_unknown = on_unknown

    async def try_handle(self, user_message: str) -> bool:
        trimmed = user_message.strip()
        if not trimmed.startswith("/"):
            return False

        command = trimmed.split()[0].lower()

        if command in _HELP_COMMANDS:
            await self._on_help()
            return True
        if command == "/clear":
            await self._on_clear()
            return True
        if command == "/history":
            await self._on_history()
            return True
        if command == "/undo":
            await self._on_undo()
            return True
        if command == "/session":
            await self._on_session(trimmed)
            return True
        if command == "/compact":
            await self._on_compact()
            return True
        if command == "/cost":
            await self._on_cost()
            return True
        if command in _EXIT_COMMANDS:
            await self._on_exit()
            return True

        self._on_unknown(trimmed)
        return True
