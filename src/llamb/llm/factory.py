from typing import Any

from ..errors import ProviderConfigurationError
from .base import LLMProvider
from .models import Provider
from .providers import OpenAICompatibleProvider


def create_llm_provider(provider: Provider, **config: Any) -> LLMProvider:
    """Create a transport for a resolved provider.

    This factory function hides the instantiation logic and the
    pre-flight checks that must fail before any request is sent.

    Args:
        provider: Resolved provider (name, base URL, model, key, auth flag)
        **config: Transport configuration
            - timeout: float (default: 600 seconds)
            - http_client: httpx.AsyncClient | None

    Returns:
        Initialized LLM transport

    Raises:
        ProviderConfigurationError: If the provider requires an API key and none is set

    Examples:
        >>> transport = create_llm_provider(
        ...     Provider(
        ...         name="ollama",
        ...         base_url="http://localhost:11434/v1",
        ...         model="llama3",
        ...         requires_auth=False,
        ...     )
        ... )
    """
    if provider.requires_auth and not provider.api_key:
        raise ProviderConfigurationError(
            f"Provider '{provider.name}' requires an API key but none is set. "
            f"Set LLAMB_API_KEY, or set LLAMB_NO_AUTH=1 for a local provider."
        )

    if not provider.model:
        raise ProviderConfigurationError(f"Provider '{provider.name}' has no model configured")

    return OpenAICompatibleProvider(provider, **config)
