from typing import Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

Role = Literal["user", "assistant", "system"]


class Message(BaseModel):
    """Represents a chat message in a conversation."""

    model_config = ConfigDict(frozen=True)

    role: Role = Field(description="Role of the message sender: 'user', 'assistant', or 'system'")
    content: str = Field(description="Content of the message")

    def to_openai(self) -> dict[str, str]:
        """Convert to the OpenAI chat message format."""
        return {"role": self.role, "content": self.content}


class Provider(BaseModel):
    """A resolved OpenAI-compatible endpoint.

    Read-only to the engine. When ``requires_auth`` is False no
    ``Authorization`` header is sent, even if ``api_key`` is set.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Human-readable provider name")
    base_url: str = Field(description="Base URL of the OpenAI-compatible API")
    model: str = Field(description="Model to request")
    api_key: str | None = Field(default=None, description="API key, if any")
    requires_auth: bool = Field(default=True, description="Whether to send the API key")

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Invalid base URL: {value!r}")
        return value.rstrip("/")

    @property
    def auth_key(self) -> str | None:
        """API key to send, or None when auth is disabled or no key is set."""
        if not self.requires_auth:
            return None
        return self.api_key or None


class StreamChunk(BaseModel):
    """One decoded stream event: a content delta and a reasoning delta."""

    model_config = ConfigDict(frozen=True)

    content_delta: str = ""
    reasoning_delta: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.content_delta and not self.reasoning_delta


class ResponseArtifact(BaseModel):
    """Result of one streaming request.

    Callers must branch on ``cancelled``: a cancelled artifact carries the
    raw text received before the cancellation and is not finalized.
    """

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Final text (file-formatted when requested)")
    cancelled: bool = Field(default=False, description="Request was cancelled mid-flight")
    detected_language: str | None = Field(
        default=None,
        description="Language tag of the dominant code block, if any"
    )
    is_pure_code_block: bool = Field(
        default=False,
        description="Whole response is one fenced code block"
    )
    session_text: str = Field(
        default="",
        description="Text suitable for session history (reasoning blocks stripped)"
    )

    @property
    def partial_response(self) -> str:
        """Text received before cancellation (same as ``text``)."""
        return self.text


class LLMResponse(BaseModel):
    """Response from a non-streaming completion."""

    model_config = ConfigDict(frozen=True)

    content: str = Field(description="Generated text content")
    model: str = Field(description="Model that generated the response")
    usage: dict[str, int] | None = Field(
        default=None,
        description="Token usage information"
    )
