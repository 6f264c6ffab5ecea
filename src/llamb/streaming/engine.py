"""Streaming response engine.

Issues one chat completion request and coordinates three concurrent
activities around it: reading the event stream, watching provider liveness
and waiting for cancellation.

Race between completion and cancellation: the engine waits for whichever
of the read task and the cancellation waiter finishes first. If the read
task has finished (its final event was fully processed) when the wait
returns, completion wins, even when the token was cancelled in the same
event-loop tick. Otherwise the read task is cancelled and the partial text
is returned with ``cancelled=True``.
"""

import asyncio
import logging
from collections.abc import Callable
from contextlib import aclosing

import httpx
import openai

from ..config import NON_STREAMING_TIMEOUT_SECONDS, EngineSettings
from ..errors import ProviderRequestError, ProviderUnreachableError
from ..llm import LLMProvider, Message, Provider, ResponseArtifact, create_llm_provider
from .cancellation import CancellationToken
from .demux import ChunkSink, StatusCallback, StreamDemultiplexer
from .finalizer import ResponseFinalizer
from .liveness import LivenessMonitor

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[Provider], LLMProvider]

# Failures that mean the provider could not be reached or the connection dropped
TRANSPORT_ERRORS = (openai.APIConnectionError, httpx.TransportError)


def _log_status(message: str) -> None:
    logger.info(message)


def _status_error_message(error: openai.APIStatusError) -> str:
    body = error.body
    if isinstance(body, dict):
        detail = body.get("message") or body.get("error")
        if isinstance(detail, dict):
            detail = detail.get("message")
        if detail:
            return str(detail)
    return error.message


async def _reap(task: asyncio.Task) -> None:
    """Cancel a task and wait for it without re-raising its outcome."""
    task.cancel()
    await asyncio.wait({task})
    if not task.cancelled() and task.exception() is not None:
        logger.debug("Task %s ended with %r after cancellation", task.get_name(), task.exception())


class StreamingEngine:
    """Runs streaming chat completion requests.

    One engine may serve many requests, sequentially or for different
    sessions concurrently. Per-request state lives in local objects; the
    only engine-level state is whether the model banner was shown.
    """

    def __init__(
        self,
        settings: EngineSettings | None = None,
        provider_factory: ProviderFactory | None = None,
        status: StatusCallback | None = None,
        finalizer: ResponseFinalizer | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            settings: Timeouts, thresholds and markers (default: built-in defaults)
            provider_factory: Builds a transport for a provider (default: OpenAI-compatible)
            status: Receives advisory messages (default: logged at INFO)
            finalizer: Response finalizer (default: built from settings)
        """
        self._settings = settings or EngineSettings()
        self._provider_factory = provider_factory or self._default_provider_factory
        self._status = status or _log_status
        self._finalizer = finalizer or ResponseFinalizer(
            dominant_block_threshold=self._settings.dominant_block_threshold,
            pure_block_threshold=self._settings.pure_block_threshold,
        )
        self._model_announced = False

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def finalizer(self) -> ResponseFinalizer:
        return self._finalizer

    def _default_provider_factory(self, provider: Provider) -> LLMProvider:
        return create_llm_provider(provider, timeout=self._settings.request_timeout)

    def _announce(self, provider: Provider) -> None:
        if self._model_announced:
            return
        self._model_announced = True
        self._status(f"Using model: {provider.model} from provider: {provider.name}")

    async def run_streaming_request(
        self,
        messages: list[Message],
        provider: Provider,
        on_chunk: ChunkSink | None = None,
        cancel_token: CancellationToken | None = None,
        *,
        file_output: bool = False,
    ) -> ResponseArtifact:
        """Stream a chat completion and return the finalized response.

        Args:
            messages: Conversation to send, oldest first
            provider: Resolved provider
            on_chunk: Receives each piece of text as it arrives
            cancel_token: Cancels the request when triggered
            file_output: Also format the answer for writing to a file

        Returns:
            ResponseArtifact. When ``cancelled`` is True, ``text`` is exactly
            what was received before cancellation.

        Raises:
            ProviderConfigurationError: Provider is unusable (nothing was sent)
            ProviderUnreachableError: Connection failed before any output arrived
            ProviderRequestError: Provider answered with an HTTP error status
        """
        token = cancel_token or CancellationToken()
        transport = self._provider_factory(provider)
        self._announce(provider)

        demux = StreamDemultiplexer(
            sink=on_chunk,
            status=self._status,
            reasoning_marker=self._settings.reasoning_marker,
            section_separator=self._settings.section_separator,
        )
        monitor = LivenessMonitor(
            probe=lambda: transport.probe(self._settings.probe_timeout),
            provider_name=provider.name,
            grace_period=self._settings.grace_period,
            probe_timeout=self._settings.probe_timeout,
            status=self._status,
        )

        async with transport:
            if token.cancelled:
                return ResponseArtifact(text="", cancelled=True)

            monitor.arm()
            reader = asyncio.create_task(
                self._read_stream(transport, messages, demux, monitor, token),
                name="llamb-stream-reader",
            )
            waiter = asyncio.create_task(token.wait(), name="llamb-cancel-waiter")
            try:
                await asyncio.wait({reader, waiter}, return_when=asyncio.FIRST_COMPLETED)
                if reader.done():
                    completed = reader.result()
                else:
                    await _reap(reader)
                    completed = False
            finally:
                await _reap(waiter)
                if not reader.done():
                    await _reap(reader)
                await monitor.aclose()

        if demux.usage:
            logger.debug("Token usage: %s", demux.usage)

        if not completed:
            logger.debug("Request cancelled after %d chunks", demux.chunk_count)
            partial = demux.text
            session_text = self._finalizer.strip_reasoning(partial) if partial else ""
            return ResponseArtifact(text=partial, cancelled=True, session_text=session_text)

        return self._finalizer.finalize(
            demux.text,
            file_output=file_output,
            answer_text=demux.answer_text,
        )

    async def _read_stream(
        self,
        transport: LLMProvider,
        messages: list[Message],
        demux: StreamDemultiplexer,
        monitor: LivenessMonitor,
        token: CancellationToken,
    ) -> bool:
        """Feed stream lines through the demultiplexer.

        Returns:
            True when the stream ended naturally, False when it stopped
            because cancellation was observed
        """
        provider_name = transport.provider.name
        try:
            async with aclosing(transport.stream_lines(messages)) as lines:
                async for line in lines:
                    if token.cancelled:
                        return False
                    monitor.notify_chunk()
                    if not demux.feed_line(line):
                        break
        except openai.APIStatusError as e:
            raise ProviderRequestError(
                provider_name, e.status_code, _status_error_message(e)
            ) from e
        except TRANSPORT_ERRORS as e:
            if not demux.text:
                raise ProviderUnreachableError(provider_name) from e
            logger.warning(
                "Connection to %s lost after partial response (%d chunks): %s",
                provider_name, demux.chunk_count, e,
            )
        return True

    async def run_request(
        self,
        messages: list[Message],
        provider: Provider,
        *,
        file_output: bool = False,
        timeout: float = NON_STREAMING_TIMEOUT_SECONDS,
    ) -> ResponseArtifact:
        """Run a non-streaming completion and finalize it the same way.

        Raises:
            ProviderConfigurationError: Provider is unusable (nothing was sent)
            ProviderUnreachableError: Connection failed or timed out
            ProviderRequestError: Provider answered with an HTTP error status
        """
        transport = self._provider_factory(provider)
        self._announce(provider)

        async with transport:
            try:
                response = await transport.chat_completion(messages, timeout=timeout)
            except openai.APIStatusError as e:
                raise ProviderRequestError(
                    provider.name, e.status_code, _status_error_message(e)
                ) from e
            except TRANSPORT_ERRORS as e:
                raise ProviderUnreachableError(provider.name) from e

        return self._finalizer.finalize(response.content, file_output=file_output)
