from __future__ import annotations

import asyncio
import json
import os
import secrets
import tempfile
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

from loguru import logger

from session_core.errors import SessionStorageError
from session_core.session.history import ConversationHistory
from session_core.session.models import Session

DEFAULT_SESSION_DIR = Path.home() / ".config" / "session-core" / "sessions"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
_PREVIEW_CHARS = 50


@dataclass(frozen=True)
class SessionLookup:
    """Outcome of reading one session file, keeping "missing" apart from "broken"."""

    status: Literal["found", "not_found", "error"]
    session: Session | None = None
    error: str | None = None

    @property
    def found(self) -> bool:
        return self.status == "found"


class SessionStore:
    def __init__(self, session_dir: str | Path | None = None):
        self._session_dir = Path(session_dir).expanduser() if session_dir else DEFAULT_SESSION_DIR

    @property
    def session_dir(self) -> Path:
        return self._session_dir

    async def save_session(
        self,
        history: ConversationHistory,
        provider: str,
        model: str,
        total_tokens: int,
        total_cost: float,
        session_id: str | None = None,
    ) -> str:
        sid = session_id or generate_session_id()
        path = self._session_path(sid)
        now = datetime.now(UTC)
        session = Session(
            id=sid,
            created_at=now,
            updated_at=now,
            provider=provider,
            model=model,
            messages=history.get_messages(),
            total_tokens=total_tokens,
            total_cost=total_cost,
        )
        try:
            payload = json.dumps(session.to_dict(), indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as ex:
            logger.error(f"Failed to serialize session {sid}: {ex}")
            raise SessionStorageError(f"Failed to serialize session {sid}: {ex}", {"path": str(path)}) from ex
        try:
            await asyncio.to_thread(self._write_atomic, path, payload)
        except OSError as ex:
            logger.error(f"Failed to save session {sid}: {ex}")
            raise SessionStorageError(f"Failed to save session {sid}: {ex}", {"path": str(path)}) from ex

        logger.debug(f"Saved session {sid} ({len(session.messages)} messages) to {path}")
        return sid

    async def find_session(self, session_id: str) -> SessionLookup:
        try:
            path = self._session_path(session_id)
        except ValueError as ex:
            return SessionLookup(status="not_found", error=str(ex))
        return await asyncio.to_thread(self._read_session_sync, path)

    async def load_session(self, session_id: str) -> Session | None:
        lookup = await self.find_session(session_id)
        return lookup.session

    async def load_latest_session(self) -> Session | None:
        candidates = await asyncio.to_thread(self._candidates_by_mtime)
        if not candidates:
            return None
        return await self.load_session(candidates[0].stem)

    async def list_sessions(self, limit: int = 10) -> list[Session]:
        if limit <= 0:
            return []
        candidates = await asyncio.to_thread(self._candidates_by_mtime)
        sessions: list[Session] = []
        for path in candidates:
            lookup = await asyncio.to_thread(self._read_session_sync, path)
            if lookup.session is None:
                continue
            sessions.append(lookup.session)
            if len(sessions) >= limit:
                break
        return sessions

    async def delete_session(self, session_id: str) -> bool:
        try:
            path = self._session_path(session_id)
            await asyncio.to_thread(path.unlink)
        except (OSError, ValueError) as ex:
            logger.debug(f"Could not delete session {session_id}: {ex}")
            return False
        logger.debug(f"Deleted session {session_id}")
        return True

    def _session_path(self, session_id: str) -> Path:
        if not session_id or "/" in session_id or "\\" in session_id or session_id in (".", ".."):
            raise ValueError(f"Invalid session id: {session_id!r}")
        return self._session_dir / f"{session_id}.json"

    def _ensure_dir(self) -> None:
        self._session_dir.mkdir(parents=True, exist_ok=True)

    def _write_atomic(self, path: Path, payload: str) -> None:
        self._ensure_dir()
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}.", suffix=".tmp", dir=self._session_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _read_session_sync(self, path: Path) -> SessionLookup:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return SessionLookup(status="not_found", error=f"No session file at {path}")
        except (OSError, UnicodeDecodeError) as ex:
            logger.warning(f"Failed to read session file {path}: {ex}")
            return SessionLookup(status="error", error=str(ex))

        try:
            session = Session.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as ex:
            logger.warning(f"Ignoring corrupt session file {path}: {ex}")
            return SessionLookup(status="error", error=str(ex))
        return SessionLookup(status="found", session=session)

    def _candidates_by_mtime(self) -> list[Path]:
        try:
            self._ensure_dir()
            stamped: list[tuple[int, Path]] = []
            for path in self._session_dir.glob("*.json"):
                try:
                    stamped.append((path.stat().st_mtime_ns, path))
                except OSError:
                    continue
        except OSError as ex:
            logger.warning(f"Failed to list sessions in {self._session_dir}: {ex}")
            return []
        stamped.sort(key=lambda item: item[0], reverse=True)
        return [path for _, path in stamped]


def restore_history(session: Session, history: ConversationHistory) -> None:
    history.from_json(session.messages)


def generate_session_id() -> str:
    timestamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{timestamp}-{suffix}"


def format_session_summary(session: Session) -> str:
    local = session.updated_at.astimezone()
    message_count = sum(1 for m in session.messages if m.role != "system")

    preview = ""
    first_user = next((m for m in session.messages if m.role == "user"), None)
    if first_user is not None:
        text = first_user.text()
        preview = text[:_PREVIEW_CHARS] + ("..." if len(text) > _PREVIEW_CHARS else "")

    return (
        f"{session.id} | {local.strftime('%Y-%m-%d')} {local.strftime('%H:%M:%S')} | "
        f"{message_count} messages | {preview}"
    )


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))
