import asyncio
import unittest
from pathlib import Path
from typing import Any

from session_core.session import ConversationHistory, ToolCall
from session_core.tool import Tool, ToolContext, ToolExecutionResult
from session_core.tool_runner import ToolRunner


class _FakeTool:
    def __init__(
        self,
        name: str,
        permission: str = "auto",
        result: ToolExecutionResult | None = None,
        error: Exception | None = None,
    ) -> None:
        self._name = name
        self._permission = permission
        self._result = result or ToolExecutionResult(success=True, output=f"{name} ok")
        self._error = error
        self.calls: list[tuple[dict, ToolContext]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return f"fake {self._name}"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {"type": "object"}

    @property
    def permission(self) -> str:
        return self._permission

    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolExecutionResult:
        self.calls.append((params, context))
        if self._error is not None:
            raise self._error
        return self._result


def _approver(answer: bool, seen: list[ToolCall]):
    async def approve(call: ToolCall) -> bool:
        seen.append(call)
        return answer
    return approve


class ToolContractTests(unittest.TestCase):
    def test_fake_tool_satisfies_protocol(self) -> None:
        self.assertIsInstance(_FakeTool("read_file"), Tool)

    def test_context_resolves_relative_paths_against_project_root(self) -> None:
        ctx = ToolContext(cwd="/work/sub", project_root="/work")
        self.assertEqual(Path("/work/src/a.py"), ctx.resolve_path("src/a.py"))
        self.assertEqual(Path("/etc/hosts"), ctx.resolve_path("/etc/hosts"))
        self.assertEqual(Path("/work/sub/b.py"), ToolContext(cwd="/work/sub").resolve_path("b.py"))

    def test_execution_result_maps_to_tool_result(self) -> None:
        ok = ToolExecutionResult(success=True, output="done").to_tool_result("c1")
        failed = ToolExecutionResult(success=False, error="no such file").to_tool_result("c2")
        self.assertEqual(("c1", "done", False), (ok.id, ok.output, ok.is_error))
        self.assertEqual(("c2", "no such file", True), (failed.id, failed.output, failed.is_error))


class ToolRunnerTests(unittest.TestCase):
    def setUp(self) -> None:
        self._context = ToolContext(cwd="/work")

    def test_runs_auto_tools_in_call_order(self) -> None:
        read = _FakeTool("read_file")
        ls = _FakeTool("list_dir")
        runner = ToolRunner([read, ls], self._context)

        results = asyncio.run(runner.run([
            ToolCall(id="1", name="list_dir", input={"path": "."}),
            ToolCall(id="2", name="read_file", input={"path": "a"}),
        ]))

        self.assertEqual(["1", "2"], [r.id for r in results])
        self.assertEqual(["list_dir ok", "read_file ok"], [r.output for r in results])
        self.assertEqual(({"path": "a"}, self._context), read.calls[0])

    def test_unknown_tool_is_an_error_result(self) -> None:
        results = asyncio.run(ToolRunner([], self._context).run([ToolCall(id="1", name="nope")]))
        self.assertTrue(results[0].is_error)
        self.assertIn('unknown tool "nope"', results[0].output)

    def test_prompt_tool_requires_approval(self) -> None:
        write = _FakeTool("write_file", permission="prompt")
        seen: list[ToolCall] = []
        runner = ToolRunner([write], self._context, approver=_approver(False, seen))

        results = asyncio.run(runner.run([ToolCall(id="1", name="write_file")]))

        self.assertEqual(1, len(seen))
        self.assertTrue(results[0].is_error)
        self.assertEqual([], write.calls)

    def test_prompt_tool_runs_when_approved(self) -> None:
        write = _FakeTool("write_file", permission="prompt")
        runner = ToolRunner([write], self._context, approver=_approver(True, []))

        results = asyncio.run(runner.run([ToolCall(id="1", name="write_file")]))
        self.assertFalse(results[0].is_error)
        self.assertEqual(1, len(write.calls))

    def test_prompt_tool_without_approver_is_refused(self) -> None:
        write = _FakeTool("write_file", permission="prompt")
        results = asyncio.run(ToolRunner([write], self._context).run([ToolCall(id="1", name="write_file")]))
        self.assertTrue(results[0].is_error)
        self.assertEqual([], write.calls)

    def test_denied_tool_never_executes(self) -> None:
        bash = _FakeTool("bash", permission="deny")
        results = asyncio.run(ToolRunner([bash], self._context).run([ToolCall(id="1", name="bash")]))
        self.assertTrue(results[0].is_error)
        self.assertEqual([], bash.calls)

    def test_failures_become_error_results(self) -> None:
        raising = _FakeTool("edit_file", error=RuntimeError("disk full"))
        failing = _FakeTool("read_file", result=ToolExecutionResult(success=False, error="missing"))
        runner = ToolRunner([raising, failing], self._context)

        results = asyncio.run(runner.run([ToolCall(id="1", name="edit_file"), ToolCall(id="2", name="read_file")]))

        self.assertTrue(all(r.is_error for r in results))
        self.assertIn("disk full", results[0].output)
        self.assertEqual("missing", results[1].output)

    def test_long_output_is_truncated(self) -> None:
        big = _FakeTool("read_file", result=ToolExecutionResult(success=True, output="a" * 50))
        results = asyncio.run(
            ToolRunner([big], self._context, max_result_chars=10).run([ToolCall(id="1", name="read_file")])
        )
        self.assertTrue(results[0].output.startswith("a" * 10 + "\n\n[OUTPUT TRUNCATED"))

    def test_results_feed_history(self) -> None:
        history = ConversationHistory()
        calls = [ToolCall(id="1", name="read_file", input={"path": "a"})]
        history.add_user_message("show a")
        history.add_assistant_message("", calls)

        history.add_tool_results(asyncio.run(ToolRunner([_FakeTool("read_file")], self._context).run(calls)))

        last = history.get_last_message()
        self.assertEqual("tool", last.role)
        self.assertEqual("read_file ok", last.tool_results[0].output)


if __name__ == "__main__":
    unittest.main()
