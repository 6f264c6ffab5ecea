"""Abstract base class for session stores.

This module defines the interface the conversation layer uses to read and
append history. The abstraction hides:
- Storage format (JSON files, in-memory)
- How a terminal context maps to its current session
- When and how changes are persisted
"""

from abc import ABC, abstractmethod
from datetime import datetime

from ..llm.models import Message
from .models import Session, new_session_id


class SessionStore(ABC):
    """Session history for one terminal context.

    Every mutation is persisted synchronously before the method returns.
    """

    def __init__(self, terminal_id: str) -> None:
        self._terminal_id = terminal_id
        self._session = self._open_session()

    @property
    def terminal_id(self) -> str:
        return self._terminal_id

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Get the backend type identifier."""

    @abstractmethod
    def _open_session(self) -> Session:
        """Load the terminal's current session or create one."""

    @abstractmethod
    def _save(self, session: Session) -> None:
        """Persist a session."""

    @abstractmethod
    def list_sessions(self) -> list[tuple[str, datetime]]:
        """List stored session ids with their last update time, newest first."""

    def current_session(self) -> Session:
        """Return a copy of the current session."""
        return self._session.model_copy(deep=True)

    def get_messages(self) -> list[Message]:
        """Return the current session's messages, oldest first."""
        return list(self._session.messages)

    def _commit(self, session: Session) -> None:
        # Only a saved session becomes current
        self._save(session)
        self._session = session

    def add_user_message(self, content: str) -> Message:
        """Append a user message and persist."""
        session = self.current_session()
        message = session.add_message("user", content)
        self._commit(session)
        return message

    def add_assistant_message(self, content: str) -> Message:
        """Append an assistant message and persist."""
        session = self.current_session()
        message = session.add_message("assistant", content)
        self._commit(session)
        return message

    def clear_session(self) -> None:
        """Empty the current session, keeping its id."""
        session = self.current_session()
        session.clear()
        self._commit(session)

    def new_session(self) -> Session:
        """Replace the current session with a fresh one."""
        self._commit(Session(id=new_session_id(self._terminal_id)))
        return self.current_session()
