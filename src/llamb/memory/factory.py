"""Factory for creating session stores."""

from typing import Any

from .base import SessionStore


def create_session_store(
    backend: str = "json",
    **kwargs: Any
) -> SessionStore:
    """Create a session store.

    Args:
        backend: Backend type ("json" or "memory")
        **kwargs: Backend-specific configuration

    Returns:
        SessionStore instance

    Raises:
        ValueError: If backend type is not supported
    """
    if backend == "json":
        from .json_file import JsonSessionStore
        return JsonSessionStore(**kwargs)

    elif backend == "memory":
        from .in_memory import InMemorySessionStore
        return InMemorySessionStore(**kwargs)

    raise ValueError(
        f"Unsupported session backend: {backend}. "
        f"Supported backends: json, memory"
    )
