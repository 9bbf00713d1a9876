from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger

from session_core.app_config import AppConfig, RuntimeEnv
from session_core.commands.router import CommandRouter
from session_core.compaction import HistoryCompactor
from session_core.errors import ConfigError
from session_core.logging_config import setup_logging
from session_core.provider import create_provider
from session_core.services.session_controller import SessionController
from session_core.session import ConversationHistory, Session, SessionStore, restore_history
from session_core.tool import Tool, ToolContext
from session_core.tool_runner import Approver, ToolRunner


@dataclass
class AppRuntime:
    app: AppConfig
    history: ConversationHistory
    store: SessionStore
    controller: SessionController
    router: CommandRouter
    tool_runner: ToolRunner
    compactor: HistoryCompactor | None
    log_descriptions: list[str]
    resumed_session: Session | None = None
    exit_requested: bool = False
    output: Callable[[str], None] = field(default=print)


async def bootstrap_runtime(
    app: AppConfig,
    env: RuntimeEnv,
    *,
    tools: list[Tool] | None = None,
    approver: Approver | None = None,
    output: Callable[[str], None] = print,
) -> AppRuntime:
    log_descriptions = setup_logging(level=app.log_level, consumers=app.log_consumers)

    store = SessionStore(app.session_dir)
    history = ConversationHistory(app.max_conversation_messages)

    compactor: HistoryCompactor | None = None
    if app.compaction_enabled:
        if not env.provider_api_key:
            raise ConfigError(
                f"{env.provider_env_var} must be set when compaction is enabled",
                {"env_var": env.provider_env_var},
            )
        compactor = HistoryCompactor(
            provider=create_provider(app.provider_name, env.provider_api_key),
            model=app.compaction_model,
            threshold_tokens=app.compaction_threshold_tokens,
        )

    resumed: Session | None = None
    if app.resume_session_id:
        resumed = await store.load_session(app.resume_session_id)
        if resumed is None:
            raise ConfigError(f"Resume session not found: {app.resume_session_id}")
    elif app.continue_conversation:
        resumed = await store.load_latest_session()
        if resumed is None:
            raise ConfigError("No previous session found")

    controller = SessionController(
        history=history,
        store=store,
        provider_name=app.provider_name,
        model=app.model,
        compactor=compactor,
    )
    if resumed is not None:
        restore_history(resumed, history)
        controller.session_id = resumed.id
        controller.total_tokens = resumed.total_tokens
        controller.total_cost = resumed.total_cost
        logger.info(f"Resumed session {resumed.id} ({history.get_message_count()} messages)")

    working_directory = app.working_directory or os.getcwd()
    tool_runner = ToolRunner(
        tools or [],
        ToolContext(cwd=working_directory, project_root=app.project_root),
        approver=approver,
        max_result_chars=app.max_tool_result_chars,
    )

    runtime = AppRuntime(
        app=app,
        history=history,
        store=store,
        controller=controller,
        router=_build_router(controller, output, lambda: _request_exit(runtime)),
        tool_runner=tool_runner,
        compactor=compactor,
        log_descriptions=log_descriptions,
        resumed_session=resumed,
        output=output,
    )
    return runtime


async def shutdown_runtime(runtime: AppRuntime) -> str | None:
    """Save the active session on the way out when auto-save is on and there is something to save."""
    if not runtime.app.auto_save:
        return None
    if not any(m.role != "system" for m in runtime.history.get_messages()):
        return None
    session_id = await runtime.controller.save()
    logger.info(f"Auto-saved session {session_id}")
    return session_id


def _request_exit(runtime: AppRuntime) -> None:
    runtime.exit_requested = True


def _build_router(
    controller: SessionController,
    output: Callable[[str], None],
    request_exit: Callable[[], None],
) -> CommandRouter:
    def emit(lines: list[str]) -> None:
        for line in lines:
            output(line)

    async def on_help() -> None:
        emit(controller.handle_help())

    async def on_clear() -> None:
        emit(controller.handle_clear())

    async def on_history() -> None:
        emit(controller.handle_history())

    async def on_undo() -> None:
        emit(controller.handle_undo())

    async def on_session(command: str) -> None:
        emit(await controller.handle_session_command(command))

    async def on_compact() -> None:
        emit(await controller.handle_compact())

    async def on_cost() -> None:
        emit(controller.handle_cost())

    async def on_exit() -> None:
        request_exit()

    def on_unknown(command: str) -> None:
        emit([f"Unknown command: {command.split()[0]}", "Type /help for available commands"])

    return CommandRouter(
        on_help=on_help,
        on_clear=on_clear,
        on_history=on_history,
        on_undo=on_undo,
        on_session=on_session,
        on_compact=on_compact,
        on_cost=on_cost,
        on_exit=on_exit,
        on_unknown=on_unknown,
    )
