"""Session memory module for llamb.

Keeps per-terminal conversation history for follow-up questions.
"""

from .base import SessionStore
from .factory import create_session_store
from .models import Session, new_session_id
from .terminal import generate_terminal_id

__all__ = [
    "Session",
    "SessionStore",
    "create_session_store",
    "generate_terminal_id",
    "new_session_id",
]
