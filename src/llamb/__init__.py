"""
llamb: Ask LLMs questions from the terminal.

A streaming client for OpenAI-compatible chat completion APIs with
per-terminal conversation history, reasoning-aware output, liveness
detection for silent providers, and mid-flight cancellation.

This package follows Parnas's information hiding principles,
where each module hides a specific design decision.
"""

__version__ = "0.1.0"

from .conversation import Conversation
from .errors import (
    FileOutputError,
    LlambError,
    ProviderConfigurationError,
    ProviderRequestError,
    ProviderUnreachableError,
    SessionStoreError,
)
from .llm import Message, Provider, ResponseArtifact
from .streaming import CancellationToken, StreamingEngine

__all__ = [
    "CancellationToken",
    "Conversation",
    "FileOutputError",
    "LlambError",
    "Message",
    "Provider",
    "ProviderConfigurationError",
    "ProviderRequestError",
    "ProviderUnreachableError",
    "ResponseArtifact",
    "SessionStoreError",
    "StreamingEngine",
]
