import asyncio
import unittest

from session_core.compaction import HistoryCompactor, estimate_tokens, format_for_summarization
from session_core.session import ConversationHistory, Message, ToolCall, ToolResult


class _FakeProvider:
    def __init__(self, reply: str = "summary text", error: Exception | None = None) -> None:
        self.calls: list[dict] = []
        self._reply = reply
        self._error = error

    async def create_message(self, model, max_tokens, temperature, messages):
        self.calls.append({
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": messages,
        })
        if self._error is not None:
            raise self._error
        return self._reply


def _long_history(turns: int = 15, size: int = 400) -> ConversationHistory:
    history = ConversationHistory()
    history.add_system_message("You are a coding assistant.")
    for i in range(turns):
        history.add_user_message(f"question {i} " + "x" * size)
        history.add_assistant_message(f"answer {i} " + "y" * size)
    return history


class EstimateTokensTests(unittest.TestCase):
    def test_counts_text_tool_calls_and_results(self) -> None:
        messages = [
            Message(role="user", content="abcd"),
            Message(role="assistant", content="", tool_calls=[ToolCall(id="1", name="ls", input={})]),
            Message(role="tool", content="", tool_results=[ToolResult(id="1", output="abcdefgh")]),
        ]
        # 4 + len("ls") + len("{}") + 8 = 16 chars
        self.assertEqual(4, estimate_tokens(messages))

    def test_rounds_up_and_reads_content_parts(self) -> None:
        messages = [Message(role="user", content=[{"type": "text", "text": "abcde"}])]
        self.assertEqual(2, estimate_tokens(messages))

    def test_empty(self) -> None:
        self.assertEqual(0, estimate_tokens([]))


class FormatForSummarizationTests(unittest.TestCase):
    def test_includes_tool_blocks(self) -> None:
        formatted = format_for_summarization([
            Message(role="user", content="hello"),
            Message(role="assistant", content="ok", tool_calls=[ToolCall(id="1", name="read_file", input={"path": "x"})]),
            Message(role="tool", content="", tool_results=[ToolResult(id="1", output="done")]),
            Message(role="tool", content="", tool_results=[ToolResult(id="2", output="nope", is_error=True)]),
        ])
        self.assertIn("[user]: hello", formatted)
        self.assertIn('[Tool call: read_file({"path": "x"})]', formatted)
        self.assertIn("[Tool result (1)]: done", formatted)
        self.assertIn("[Tool error (2)]: nope", formatted)

    def test_long_tool_output_is_previewed(self) -> None:
        formatted = format_for_summarization([
            Message(role="tool", content="", tool_results=[ToolResult(id="1", output="z" * 2000)]),
        ])
        self.assertIn("[...truncated...]", formatted)


class HistoryCompactorTests(unittest.TestCase):
    def test_compact_folds_summary_into_history(self) -> None:
        provider = _FakeProvider("they refactored the parser")
        history = _long_history()

        summary = asyncio.run(HistoryCompactor(provider, "m").compact(history))

        self.assertEqual("they refactored the parser", summary)
        messages = history.get_messages()
        self.assertEqual(12, len(messages))
        self.assertEqual("[Previous conversation summary: they refactored the parser]", messages[1].content)
        call = provider.calls[0]
        self.assertEqual(0, call["temperature"])
        self.assertNotIn("You are a coding assistant.", call["messages"][0]["content"])
        self.assertIn("question 0", call["messages"][0]["content"])

    def test_maybe_compact_below_threshold_is_noop(self) -> None:
        provider = _FakeProvider()
        history = _long_history(turns=2, size=10)

        self.assertFalse(asyncio.run(HistoryCompactor(provider, "m", threshold_tokens=10_000).maybe_compact(history)))
        self.assertEqual([], provider.calls)
        self.assertEqual(5, history.get_message_count())

    def test_maybe_compact_skips_short_histories(self) -> None:
        provider = _FakeProvider()
        history = _long_history(turns=5)

        self.assertFalse(asyncio.run(HistoryCompactor(provider, "m", threshold_tokens=1).maybe_compact(history)))
        self.assertEqual([], provider.calls)

    def test_maybe_compact_over_threshold(self) -> None:
        provider = _FakeProvider()
        history = _long_history()

        self.assertTrue(asyncio.run(HistoryCompactor(provider, "m", threshold_tokens=100).maybe_compact(history)))
        self.assertEqual(12, history.get_message_count())

    def test_maybe_compact_keeps_history_on_provider_error(self) -> None:
        provider = _FakeProvider(error=RuntimeError("boom"))
        history = _long_history()
        before = history.get_messages()

        self.assertFalse(asyncio.run(HistoryCompactor(provider, "m", threshold_tokens=1).maybe_compact(history)))
        self.assertEqual(before, history.get_messages())

    def test_oversized_input_is_capped(self) -> None:
        provider = _FakeProvider()
        history = _long_history(turns=20, size=10_000)

        asyncio.run(HistoryCompactor(provider, "m").compact(history))

        prompt = provider.calls[0]["messages"][0]["content"]
        self.assertIn("[...middle of conversation omitted for brevity...]", prompt)
        self.assertLess(len(prompt), 110_000)


if __name__ == "__main__":
    unittest.main()
