from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from .models import LLMResponse, Message, Provider


class LLMProvider(ABC):
    """Abstract base class for chat-completion transports.

    This module hides the design decision of how requests reach the
    provider. Implementations must handle:
    - API client setup and authentication
    - Request format conversion
    - Raw streaming access (server-sent event lines)
    - Reachability probing

    Supports async context manager protocol for proper resource cleanup:
        async with provider:
            async for line in provider.stream_lines(messages):
                ...
        # Automatically cleaned up
    """

    @property
    @abstractmethod
    def provider(self) -> Provider:
        """The provider configuration this transport talks to."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: list[Message],
        model: str | None = None,
        timeout: float | None = None,
        **kwargs: Any
    ) -> LLMResponse:
        """Generate a non-streaming chat completion.

        Args:
            messages: Conversation history, oldest first
            model: Model to use (None uses the provider's model)
            timeout: Request timeout in seconds (None uses the client default)
            **kwargs: Provider-specific parameters

        Returns:
            LLMResponse containing generated content and metadata
        """

    @abstractmethod
    def stream_lines(
        self,
        messages: list[Message],
        model: str | None = None,
        **kwargs: Any
    ) -> AsyncIterator[str]:
        """Start a streaming chat completion and yield raw response lines.

        Lines are yielded undecoded (``data: {...}``, blank lines, comments)
        so that the caller decides how to treat malformed events. Cancelling
        the consuming task aborts the HTTP response.

        Args:
            messages: Conversation history, oldest first
            model: Model to use (None uses the provider's model)
            **kwargs: Provider-specific parameters

        Yields:
            Raw text lines of the event stream
        """

    @abstractmethod
    async def list_models(self, timeout: float | None = None) -> list[str]:
        """List model ids offered by the provider."""

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections or resources."""

    async def probe(self, timeout: float) -> None:
        """Cheap reachability check; raises if the provider cannot be reached."""
        await self.list_models(timeout=timeout)

    async def __aenter__(self) -> "LLMProvider":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit with automatic cleanup.

        Note: Suppresses "Event loop is closed" errors during cleanup.
        This is a known harmless race condition in httpx/anyio cleanup:
        https://github.com/encode/httpx/issues/914
        """
        try:
            await self.close()
        except RuntimeError as e:
            # Suppress harmless cleanup errors from httpx/anyio
            if "Event loop is closed" not in str(e):
                raise
