from collections.abc import AsyncIterator
from typing import Any

import httpx
from openai import AsyncOpenAI, Omit

from ...config import REQUEST_TIMEOUT_SECONDS
from ..base import LLMProvider
from ..models import LLMResponse, Message, Provider


class OpenAICompatibleProvider(LLMProvider):
    """Transport for any OpenAI-compatible chat completion API.

    Hidden design decisions:
    - OpenAI SDK client initialization
    - Authentication (no ``Authorization`` header for no-auth providers)
    - Raw line access to the event stream
    - Retry policy (none: the caller decides what to do on failure)
    """

    def __init__(
        self,
        provider: Provider,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
        **client_kwargs: Any
    ):
        """Initialize the transport.

        Args:
            provider: Resolved provider configuration
            timeout: Default request timeout in seconds
            http_client: Optional preconfigured httpx client
            **client_kwargs: Additional kwargs for AsyncOpenAI client
        """
        self._provider = provider
        if provider.auth_key is None:
            # The SDK always wants a key; Omit drops the header it would build from it
            client_kwargs["default_headers"] = {
                **client_kwargs.get("default_headers", {}),
                "Authorization": Omit(),
            }
        self._client = AsyncOpenAI(
            api_key=provider.auth_key or "",
            base_url=provider.base_url,
            timeout=timeout,
            max_retries=0,
            http_client=http_client,
            **client_kwargs
        )

    @property
    def provider(self) -> Provider:
        return self._provider

    @property
    def model(self) -> str:
        """Get the default model name."""
        return self._provider.model

    async def chat_completion(
        self,
        messages: list[Message],
        model: str | None = None,
        timeout: float | None = None,
        **kwargs: Any
    ) -> LLMResponse:
        """Generate a chat completion.

        Args:
            messages: Conversation history
            model: Model to use (overrides default)
            timeout: Request timeout in seconds
            **kwargs: Additional OpenAI-specific parameters

        Returns:
            LLMResponse with generated content
        """
        request_params: dict[str, Any] = {
            "model": model or self._provider.model,
            "messages": [msg.to_openai() for msg in messages],
            **kwargs
        }
        if timeout is not None:
            request_params["timeout"] = timeout

        completion = await self._client.chat.completions.create(**request_params)

        usage = None
        if completion.usage:
            usage = {
                "prompt_tokens": completion.usage.prompt_tokens,
                "completion_tokens": completion.usage.completion_tokens,
                "total_tokens": completion.usage.total_tokens
            }

        content = ""
        if completion.choices:
            content = completion.choices[0].message.content or ""

        return LLMResponse(
            content=content,
            model=completion.model or request_params["model"],
            usage=usage
        )

    async def stream_lines(
        self,
        messages: list[Message],
        model: str | None = None,
        **kwargs: Any
    ) -> AsyncIterator[str]:
        """Stream raw server-sent event lines of a chat completion.

        Uses the SDK's streaming-response mode so that event decoding stays
        with the caller. Leaving the ``async with`` block (normally, by error
        or by task cancellation) closes the HTTP response.
        """
        request_params: dict[str, Any] = {
            "model": model or self._provider.model,
            "messages": [msg.to_openai() for msg in messages],
            "stream": True,
            **kwargs,
        }

        async with self._client.chat.completions.with_streaming_response.create(
            **request_params
        ) as response:
            async for line in response.iter_lines():
                yield line

    async def list_models(self, timeout: float | None = None) -> list[str]:
        """List model ids from ``GET {base_url}/models``."""
        client = self._client if timeout is None else self._client.with_options(timeout=timeout)
        page = await client.models.list()
        return [model.id for model in page.data]

    async def close(self) -> None:
        """Close the OpenAI client.

        Note: Uses the OpenAI SDK's async context manager for proper cleanup.
        See: https://github.com/openai/openai-python#async-usage
        """
        await self._client.close()
