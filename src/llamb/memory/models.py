"""Data models for session memory.

A session is serialized verbatim as one JSON document with camelCase keys
(``id``, ``messages``, ``createdAt``, ``updatedAt``), independent of the
backend that stores it.
"""

import time
from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..llm.models import Message, Role


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_session_id(terminal_id: str) -> str:
    """Create a session id bound to a terminal context."""
    return f"session_{terminal_id}_{int(time.time() * 1000)}_{uuid4().hex[:6]}"


class Session(BaseModel):
    """Ordered conversation history for one terminal context.

    Messages are append-only; ``clear`` empties them but keeps the id.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(description="Session identifier")
    messages: list[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def add_message(self, role: Role, content: str) -> Message:
        """Append a message and touch ``updated_at``.

        Args:
            role: Message role
            content: Message text

        Returns:
            The appended message
        """
        message = Message(role=role, content=content)
        self.messages.append(message)
        self.updated_at = _utcnow()
        return message

    def clear(self) -> None:
        """Drop all messages, keeping the session id."""
        self.messages = []
        self.updated_at = _utcnow()

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_json(cls, data: str | bytes) -> "Session":
        return cls.model_validate_json(data)
