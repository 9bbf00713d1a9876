import os
import shutil
import unittest
from pathlib import Path
from uuid import uuid4

from session_core.session import ConversationHistory, SessionStore


PROJECT_ROOT = Path(__file__).resolve().parents[2]


class SessionStoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp_dir = PROJECT_ROOT / ".test-artifacts" / f"{self.__class__.__name__.lower()}-{uuid4().hex}"
        self._tmp_dir.mkdir(parents=True, exist_ok=True)
        self._store = SessionStore(self._tmp_dir / "sessions")
        self._history = ConversationHistory()

    def tearDown(self) -> None:
        shutil.rmtree(self._tmp_dir, ignore_errors=True)

    def _set_mtime(self, session_id: str, seconds: int) -> None:
        path = self._store.session_dir / f"{session_id}.json"
        os.utime(path, (seconds, seconds))
