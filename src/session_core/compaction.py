import json
import math

from loguru import logger

from session_core.provider import SummaryProvider
from session_core.session.history import COMPACT_TAIL_MESSAGES, ConversationHistory
from session_core.session.models import Message

CHARS_PER_TOKEN = 4


class HistoryCompactor:
    def __init__(
        self,
        provider: SummaryProvider,
        model: str,
        threshold_tokens: int = 80_000,
        max_summary_tokens: int = 4096,
    ):
        self._provider = provider
        self._model = model
        self._threshold_tokens = threshold_tokens
        self._max_summary_tokens = max_summary_tokens

    async def compact(self, history: ConversationHistory) -> str:
        """Summarize the conversation and fold it into ``history``. Returns the summary."""
        messages = [m for m in history.get_messages() if m.role != "system"]
        before = estimate_tokens(history.get_messages())
        summary = await _summarize(self._provider, self._model, messages, self._max_summary_tokens)
        history.compact(summary)
        freed = before - estimate_tokens(history.get_messages())
        logger.info(
            f"Compaction: summarized {len(messages)} messages into ~{estimate_text_tokens(summary):,} tokens,"
            f" freed ~{freed:,} estimated tokens"
        )
        return summary

    async def maybe_compact(self, history: ConversationHistory) -> bool:
        messages = history.get_messages()
        estimated = estimate_tokens(messages)
        if estimated < self._threshold_tokens:
            return False

        non_system = sum(1 for m in messages if m.role != "system")
        if non_system <= COMPACT_TAIL_MESSAGES:
            return False

        logger.info(
            f"Compaction: estimated ~{estimated:,} tokens, threshold {self._threshold_tokens:,}"
            f" - compacting {non_system} messages"
        )
        try:
            await self.compact(history)
        except Exception as ex:
            logger.warning(f"Compaction failed: {ex}. Keeping history as-is.")
            return False
        return True


def estimate_text_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_tokens(messages: list[Message]) -> int:
    total_chars = 0
    for msg in messages:
        content = msg.content
        if isinstance(content, str):
            total_chars += len(content)
        else:
            for block in content:
                if isinstance(block, dict):
                    total_chars += len(str(block.get("text", "")))
        for call in msg.tool_calls or []:
            total_chars += len(call.name)
            total_chars += len(json.dumps(call.input))
        for result in msg.tool_results or []:
            total_chars += len(result.output)
    return math.ceil(total_chars / CHARS_PER_TOKEN)


def format_for_summarization(messages: list[Message]) -> str:
    parts = []
    for msg in messages:
        lines = []
        text = msg.text()
        if text:
            lines.append(text)
        for call in msg.tool_calls or []:
            inp = json.dumps(call.input, indent=None)
            if len(inp) > 200:
                inp = inp[:200] + "..."
            lines.append(f"[Tool call: {call.name}({inp})]")
        for result in msg.tool_results or []:
            label = "Tool error" if result.is_error else "Tool result"
            lines.append(f"[{label} ({result.id})]: {_preview_text(result.output)}")
        parts.append(f"[{msg.role}]: " + "\n".join(lines))

    return "\n\n".join(parts)


def _preview_text(text: str) -> str:
    if len(text) <= 700:
        return text
    return text[:500] + "\n[...truncated...]\n" + text[-200:]


_SUMMARIZE_PROMPT = """\
Summarize the following conversation between a user, an AI coding assistant and its tools.
Preserve these details precisely:
- The original user request and any specific criteria or instructions
- All decisions made and their reasoning
- File paths, identifiers, commands and code locations that may be needed later
- Errors encountered and how they were resolved
- Current task status and next steps

Do NOT include raw tool output (file contents, command output, etc.) -
just note what was retrieved or changed and the key findings.

Format as a concise narrative summary.

---
CONVERSATION HISTORY:

"""


async def _summarize(
    provider: SummaryProvider,
    model: str,
    messages: list[Message],
    max_tokens: int,
) -> str:
    formatted = format_for_summarization(messages)

    # Cap summarization input
    if len(formatted) > 100_000:
        half = 50_000
        formatted = (
            formatted[:half]
            + "\n\n[...middle of conversation omitted for brevity...]\n\n"
            + formatted[-half:]
        )

    return await provider.create_message(
        model=model,
        max_tokens=max_tokens,
        temperature=0,
        messages=[{"role": "user", "content": _SUMMARIZE_PROMPT + formatted}],
    )
