from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from session_core.errors import ConfigError
from session_core.session.history import DEFAULT_MAX_MESSAGES


@dataclass
class RuntimeEnv:
    provider_api_key: str
    provider_env_var: str


@dataclass
class AppConfig:
    provider_name: str
    model: str
    max_conversation_messages: int
    session_dir: str | None
    auto_save: bool
    continue_conversation: bool
    resume_session_id: str | None
    compaction_enabled: bool
    compaction_model: str
    compaction_threshold_tokens: int
    max_tool_result_chars: int
    working_directory: str | None
    project_root: str | None
    log_level: str
    log_consumers: list | None


def load_json_config() -> dict:
    config_path = Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def _to_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return bool(value)


def _to_int(config: dict, key: str, default: int) -> int:
    value = config.get(key, default)
    try:
        return int(value)
    except (TypeError, ValueError) as ex:
        raise ConfigError(f"{key} must be an integer, got {value!r}", {"key": key}) from ex


def _optional_str(config: dict, key: str) -> str | None:
    return str(config.get(key, "") or "").strip() or None


def parse_app_config(config: dict) -> AppConfig:
    model = config.get("Model", "claude-sonnet-4-5-20250929")
    return AppConfig(
        provider_name=config.get("Provider", "anthropic").strip().lower(),
        model=model,
        max_conversation_messages=_to_int(config, "MaxConversationMessages", DEFAULT_MAX_MESSAGES),
        session_dir=_optional_str(config, "SessionDir"),
        auto_save=_to_bool(config.get("AutoSave", True), default=True),
        continue_conversation=_to_bool(config.get("ContinueConversation", False), default=False),
        resume_session_id=_optional_str(config, "ResumeSessionId"),
        compaction_enabled=_to_bool(config.get("CompactionEnabled", False), default=False),
        compaction_model=config.get("CompactionModel") or model,
        compaction_threshold_tokens=_to_int(config, "CompactionThresholdTokens", 80_000),
        max_tool_result_chars=_to_int(config, "MaxToolResultChars", 40_000),
        working_directory=_optional_str(config, "WorkingDirectory"),
        project_root=_optional_str(config, "ProjectRoot"),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env(provider_name: str, dotenv_path: str | Path | None = None) -> RuntimeEnv:
    """Reads the provider key after loading `.env`, so keys set only there are picked up.

    Variables already present in the process environment win over `.env` entries.
    """
    load_dotenv(dotenv_path)

    if provider_name == "anthropic":
        provider_env_var = "ANTHROPIC_API_KEY"
    else:
        provider_env_var = f"{provider_name.upper()}_API_KEY"

    return RuntimeEnv(
        provider_api_key=os.environ.get(provider_env_var, ""),
        provider_env_var=provider_env_var,
    )
