"""JSON file session store.

Each session is one ``<session_id>.json`` file. A small index file maps
``terminal_<id>`` keys to the terminal's current session id, so reopening
the same terminal resumes its conversation.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..config import DEFAULT_SESSIONS_DIR
from ..errors import SessionStoreError
from .base import SessionStore
from .models import Session, new_session_id
from .terminal import generate_terminal_id

logger = logging.getLogger(__name__)

INDEX_FILENAME = "terminals.json"


class JsonSessionStore(SessionStore):
    """Session store backed by one JSON file per session.

    Sessions of different terminals live in different files and need no
    locking between them.
    """

    def __init__(
        self,
        sessions_dir: str | Path = DEFAULT_SESSIONS_DIR,
        terminal_id: str | None = None,
    ):
        self._sessions_dir = Path(sessions_dir).expanduser()
        self._sessions_dir.mkdir(parents=True, exist_ok=True)
        self._index_path = self._sessions_dir / INDEX_FILENAME
        super().__init__(terminal_id or generate_terminal_id())

    @property
    def backend_type(self) -> str:
        return "json"

    @property
    def sessions_dir(self) -> Path:
        return self._sessions_dir

    @property
    def _index_key(self) -> str:
        return f"terminal_{self._terminal_id}"

    def session_path(self, session_id: str) -> Path:
        """Path of the JSON file holding a session."""
        return self._sessions_dir / f"{session_id}.json"

    def _open_session(self) -> Session:
        session_id = self._read_index().get(self._index_key)
        if isinstance(session_id, str) and self.session_path(session_id).exists():
            session = self._load(session_id)
            if session is not None:
                return session

        session = Session(id=new_session_id(self._terminal_id))
        self._save(session)
        return session

    def _load(self, session_id: str) -> Session | None:
        path = self.session_path(session_id)
        try:
            return Session.from_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            logger.error("Failed to load session %s, starting a new one: %s", session_id, e)
            return None

    def _save(self, session: Session) -> None:
        path = self.session_path(session.id)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(session.to_json(), encoding="utf-8")
            tmp_path.replace(path)
            self._write_index({
                self._index_key: session.id,
                f"{self._index_key}_lastUpdate": session.updated_at.isoformat(),
            })
        except OSError as e:
            raise SessionStoreError(f"Failed to save session {session.id}: {e}") from e

    def _read_index(self) -> dict[str, Any]:
        if not self._index_path.exists():
            return {}
        try:
            data = json.loads(self._index_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable session index %s: %s", self._index_path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_index(self, updates: dict[str, str]) -> None:
        index = self._read_index()
        index.update(updates)
        tmp_path = self._index_path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(index, indent=2), encoding="utf-8")
        tmp_path.replace(self._index_path)

    def list_sessions(self) -> list[tuple[str, datetime]]:
        """List session files of all terminals by modification time, newest first."""
        sessions = []
        for path in self._sessions_dir.glob("session_*.json"):
            modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
            sessions.append((path.stem, modified))
        return sorted(sessions, key=lambda item: item[1], reverse=True)
