from .base import LLMProvider
from .factory import create_llm_provider
from .models import LLMResponse, Message, Provider, ResponseArtifact, StreamChunk
from .providers import OpenAICompatibleProvider

__all__ = [
    "LLMProvider",
    "create_llm_provider",
    "LLMResponse",
    "Message",
    "Provider",
    "ResponseArtifact",
    "StreamChunk",
    "OpenAICompatibleProvider",
]
