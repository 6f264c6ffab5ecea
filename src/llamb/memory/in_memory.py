"""In-memory session store.

Simple dict-based storage for session-only memory.
Data is lost when the application exits.
"""

from datetime import datetime

from .base import SessionStore
from .models import Session, new_session_id


class InMemorySessionStore(SessionStore):
    """In-memory session store (process lifetime only).

    Suitable for ``--no-history`` style runs and for testing.
    """

    def __init__(self, terminal_id: str = "memory"):
        self._sessions: dict[str, Session] = {}
        super().__init__(terminal_id)

    @property
    def backend_type(self) -> str:
        return "memory"

    def _open_session(self) -> Session:
        session = Session(id=new_session_id(self._terminal_id))
        self._save(session)
        return session

    def _save(self, session: Session) -> None:
        """Save a snapshot (just updates dict)."""
        self._sessions[session.id] = session.model_copy(deep=True)

    def list_sessions(self) -> list[tuple[str, datetime]]:
        sessions = [(session.id, session.updated_at) for session in self._sessions.values()]
        return sorted(sessions, key=lambda item: item[1], reverse=True)
