"""Provider and store factory functions for CLI.

Centralizes creation of the provider, engine, and session store from
environment variables. Hides configuration details from command
implementations.
"""

import os

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from ..config import EngineSettings, sessions_dir_from_env
from ..errors import ProviderConfigurationError
from ..llm import Provider
from ..memory import SessionStore, create_session_store
from ..streaming import StreamingEngine
from ..streaming.demux import StatusCallback

DEFAULT_PROVIDER_NAME = "openai"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-3.5-turbo"

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in _TRUTHY


def resolve_provider(
    name: str | None = None,
    base_url: str | None = None,
    model: str | None = None,
    api_key: str | None = None,
    no_auth: bool | None = None,
) -> Provider:
    """Resolve the provider for a request.

    Explicit arguments override environment variables.

    Returns:
        Provider instance

    Raises:
        ProviderConfigurationError: If the resulting settings are invalid

    Environment variables:
        LLAMB_PROVIDER: Provider name (default: openai)
        LLAMB_BASE_URL: API base URL (default: https://api.openai.com/v1)
        LLAMB_MODEL: Model name (default: gpt-3.5-turbo)
        LLAMB_API_KEY: API key (falls back to OPENAI_API_KEY)
        LLAMB_NO_AUTH: Truthy to send no Authorization header
    """
    if no_auth is None:
        no_auth = _env_flag("LLAMB_NO_AUTH")

    try:
        return Provider(
            name=name or os.getenv("LLAMB_PROVIDER", DEFAULT_PROVIDER_NAME),
            base_url=base_url or os.getenv("LLAMB_BASE_URL", DEFAULT_BASE_URL),
            model=model or os.getenv("LLAMB_MODEL", DEFAULT_MODEL),
            api_key=api_key or os.getenv("LLAMB_API_KEY") or os.getenv("OPENAI_API_KEY"),
            requires_auth=not no_auth,
        )
    except ValidationError as e:
        messages = "; ".join(error["msg"] for error in e.errors())
        raise ProviderConfigurationError(f"Invalid provider settings: {messages}") from e


def console_status(console: Console) -> StatusCallback:
    """Status callback printing dim text to ``console``, never as markup."""
    def status(message: str) -> None:
        console.print(f"[dim]{escape(message)}[/dim]")

    return status


def get_engine(console: Console) -> StreamingEngine:
    """Create the streaming engine, routing status messages to ``console``.

    Environment variables:
        See ``EngineSettings.from_env``
    """
    return StreamingEngine(settings=EngineSettings.from_env(), status=console_status(console))


def get_session_store(use_history: bool = True) -> SessionStore:
    """Create the session store for this terminal.

    Args:
        use_history: False gives a throwaway in-memory store

    Environment variables:
        LLAMB_SESSIONS_DIR: Session directory (default: ~/.llamb/sessions)
    """
    if not use_history:
        return create_session_store("memory")
    return create_session_store("json", sessions_dir=sessions_dir_from_env())
