from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger

from session_core.session.models import ToolCall, ToolResult
from session_core.tool import Tool, ToolContext

Approver = Callable[[ToolCall], Awaitable[bool]]


class ToolRunner:
    """Runs an assistant message's tool calls and collects their results in call order."""

    def __init__(
        self,
        tools: list[Tool],
        context: ToolContext,
        *,
        approver: Approver | None = None,
        max_result_chars: int = 40_000,
    ):
        self._tool_map = {t.name: t for t in tools}
        self._context = context
        self._approver = approver
        self._max_result_chars = max_result_chars

    @property
    def tool_names(self) -> list[str]:
        return list(self._tool_map)

    def get(self, name: str) -> Tool | None:
        return self._tool_map.get(name)

    async def run(self, tool_calls: list[ToolCall]) -> list[ToolResult]:
        return list(await asyncio.gather(*(self._run_one(call) for call in tool_calls)))

    async def _run_one(self, call: ToolCall) -> ToolResult:
        tool = self._tool_map.get(call.name)
        if tool is None:
            return ToolResult(id=call.id, output=f'Error: unknown tool "{call.name}"', is_error=True)

        if tool.permission == "deny":
            logger.info(f"Tool {call.name} is denied by its permission level")
            return ToolResult(id=call.id, output=f'Error: tool "{call.name}" is not permitted', is_error=True)

        if tool.permission == "prompt":
            approved = await self._approver(call) if self._approver is not None else False
            if not approved:
                logger.info(f"Tool {call.name} was not approved")
                return ToolResult(id=call.id, output=f'Error: tool "{call.name}" was not approved', is_error=True)

        try:
            result = await tool.execute(call.input, self._context)
        except Exception as ex:
            logger.warning(f"Tool {call.name} raised: {ex}")
            return ToolResult(id=call.id, output=f'Error executing tool "{call.name}": {ex}', is_error=True)

        tool_result = result.to_tool_result(call.id)
        return ToolResult(
            id=tool_result.id,
            output=self._truncate(tool_result.output, call.name),
            is_error=tool_result.is_error,
        )

    def _truncate(self, output: str, tool_name: str) -> str:
        if self._max_result_chars <= 0 or len(output) <= self._max_result_chars:
            return output

        original_length = len(output)
        logger.warning(
            f"{tool_name} output truncated from {original_length:,} "
            f"to {self._max_result_chars:,} chars"
        )
        return (
            output[: self._max_result_chars]
            + f"\n\n[OUTPUT TRUNCATED: Showing {self._max_result_chars:,} "
            f"of {original_length:,} characters from {tool_name}]"
        )
