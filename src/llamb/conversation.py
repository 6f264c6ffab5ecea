"""Session integration for the streaming engine.

A ``Conversation`` turns a question into a request: it builds the message
list from history, records the user message, runs the engine and records
the assistant's reply.
"""

import logging

from .files import attach_file_content
from .llm.models import Message, Provider, ResponseArtifact
from .memory.base import SessionStore
from .streaming.cancellation import CancellationToken
from .streaming.demux import ChunkSink
from .streaming.engine import StreamingEngine

logger = logging.getLogger(__name__)


class Conversation:
    """One terminal's conversation with a provider."""

    def __init__(self, engine: StreamingEngine, store: SessionStore):
        self._engine = engine
        self._store = store

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def engine(self) -> StreamingEngine:
        return self._engine

    def build_messages(self, question: str, use_history: bool = True) -> list[Message]:
        """Message list for a question: history (optional) then the question."""
        history = self._store.get_messages() if use_history else []
        return [*history, Message(role="user", content=question)]

    async def ask(
        self,
        question: str,
        provider: Provider,
        *,
        on_chunk: ChunkSink | None = None,
        cancel_token: CancellationToken | None = None,
        file_content: str | None = None,
        use_history: bool = True,
        file_output: bool = False,
        stream: bool = True,
    ) -> ResponseArtifact:
        """Ask a question and record the exchange.

        Args:
            question: User question
            provider: Resolved provider
            on_chunk: Receives streamed text (streaming mode only)
            cancel_token: Cancels the in-flight request
            file_content: Optional file content attached to the question
            use_history: Send previous messages and record this exchange
            file_output: Format the answer for writing to a file
            stream: Stream the response (False uses a single completion call)

        Returns:
            ResponseArtifact from the engine
        """
        if file_content is not None:
            question = attach_file_content(question, file_content)

        messages = self.build_messages(question, use_history)
        if use_history:
            self._store.add_user_message(question)

        if stream:
            artifact = await self._engine.run_streaming_request(
                messages,
                provider,
                on_chunk=on_chunk,
                cancel_token=cancel_token,
                file_output=file_output,
            )
        else:
            artifact = await self._engine.run_request(
                messages, provider, file_output=file_output
            )

        if use_history and artifact.session_text:
            self._store.add_assistant_message(artifact.session_text)
        elif use_history:
            logger.debug("Nothing to record for the assistant (cancelled=%s)", artifact.cancelled)

        return artifact
