"""Tests for the streaming engine against a scripted provider."""
import asyncio
from collections.abc import AsyncIterator
from typing import Any

import httpx
import pytest

from llamb.config import EngineSettings
from llamb.errors import (
    ProviderConfigurationError,
    ProviderRequestError,
    ProviderUnreachableError,
)
from llamb.llm import LLMProvider, LLMResponse, Message, Provider
from llamb.streaming import CancellationToken, StreamingEngine

QUESTION = [Message(role="user", content="Say hello")]


class TestStreamingRequest:
    """Tests for run_streaming_request happy paths."""

    @pytest.mark.asyncio
    async def test_content_and_reasoning_scenario(self, engine, server, provider):
        """Test the content-then-reasoning scenario from a real SSE stream."""
        server.add_chunk(content="Hel")
        server.add_chunk(content="lo")
        server.add_chunk(reasoning="note")
        server.finish()

        received = []
        artifact = await engine.run_streaming_request(QUESTION, provider, on_chunk=received.append)

        assert artifact.cancelled is False
        assert artifact.text == "Hello\n🧠 Reasoning: note"
        assert "".join(received) == "Hello\n🧠 Reasoning: note"

    @pytest.mark.asyncio
    async def test_request_payload(self, engine, server, provider):
        """Test that the request carries the model, messages, and stream flag."""
        server.add_chunk(content="ok")
        server.finish()

        await engine.run_streaming_request(QUESTION, provider)

        body = server.chat_bodies[0]
        assert body["model"] == "test-model"
        assert body["stream"] is True
        assert body["messages"] == [{"role": "user", "content": "Say hello"}]
        assert server.requests[0].headers["authorization"] == "Bearer sk-test"

    @pytest.mark.asyncio
    async def test_no_auth_provider_sends_no_authorization_header(self, engine, server, local_provider):
        """Test that requires_auth=False omits the Authorization header."""
        server.add_chunk(content="ok")
        server.finish()

        artifact = await engine.run_streaming_request(QUESTION, local_provider)

        assert artifact.text == "ok"
        assert "authorization" not in server.requests[0].headers

    @pytest.mark.asyncio
    async def test_malformed_chunks_are_skipped(self, engine, server, provider):
        """Test that broken events and comments don't interrupt the stream."""
        server.add_line(": keep-alive")
        server.add_chunk(content="A")
        server.add_line("data: {not json")
        server.add_line('data: {"error": {"message": "transient"}}')
        server.add_chunk(content="B")
        server.finish()

        artifact = await engine.run_streaming_request(QUESTION, provider)

        assert artifact.text == "AB"

    @pytest.mark.asyncio
    async def test_lines_after_done_are_ignored(self, engine, server, provider):
        """Test that [DONE] ends the stream."""
        server.add_chunk(content="first")
        server.finish()
        server.add_chunk(content="late")

        artifact = await engine.run_streaming_request(QUESTION, provider)

        assert artifact.text == "first"

    @pytest.mark.asyncio
    async def test_inline_reasoning_stripped_for_history(self, engine, server, provider, status_messages):
        """Test that <think> blocks are reported while streaming and stripped at the end."""
        server.add_chunk(content="<think>plan")
        server.add_chunk(content="</think>\n\n\n\nAnswer")
        server.finish()

        received = []
        artifact = await engine.run_streaming_request(QUESTION, provider, on_chunk=received.append)

        assert "".join(received) == "<think>plan</think>\n\n\n\nAnswer"
        assert artifact.text == "Answer"
        assert artifact.session_text == "Answer"
        assert any("<think>" in message for message in status_messages)

    @pytest.mark.asyncio
    async def test_file_output_unwraps_pure_code_block(self, engine, server, provider):
        """Test file output without the reasoning section."""
        server.add_chunk(reasoning="use print")
        server.add_chunk(content="```python\n")
        server.add_chunk(content='print("hi")\n```')
        server.finish()

        artifact = await engine.run_streaming_request(QUESTION, provider, file_output=True)

        assert artifact.text == 'print("hi")'
        assert artifact.is_pure_code_block is True
        assert artifact.detected_language == "python"
        assert artifact.session_text.startswith("\n🧠 Reasoning: use print\n\n```python")

    @pytest.mark.asyncio
    async def test_model_announced_once_per_engine(self, engine, server, provider, status_messages):
        """Test the model banner is shown on the first request only."""
        server.add_chunk(content="ok")
        server.finish()

        await engine.run_streaming_request(QUESTION, provider)
        await engine.run_streaming_request(QUESTION, provider)

        banners = [m for m in status_messages if m.startswith("Using model:")]
        assert banners == ["Using model: test-model from provider: test"]

    @pytest.mark.asyncio
    async def test_model_announced_per_engine_instance(self, server, provider):
        """Test that separate engines announce independently."""
        server.add_chunk(content="ok")
        server.finish()
        first, second = [], []

        await StreamingEngine(provider_factory=server.transport_factory, status=first.append) \
            .run_streaming_request(QUESTION, provider)
        await StreamingEngine(provider_factory=server.transport_factory, status=second.append) \
            .run_streaming_request(QUESTION, provider)

        assert first == second == ["Using model: test-model from provider: test"]


class TestCancellation:
    """Tests for cancelling an in-flight request."""

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, engine, server, provider):
        """Test that a token cancelled up front yields an empty cancelled artifact."""
        server.add_chunk(content="never")
        server.finish()
        token = CancellationToken()
        token.cancel()

        artifact = await engine.run_streaming_request(QUESTION, provider, cancel_token=token)

        assert artifact.cancelled is True
        assert artifact.partial_response == ""
        assert server.chat_bodies == []

    @pytest.mark.asyncio
    async def test_cancel_after_chunks_keeps_partial(self, engine, server, provider):
        """Test that cancelling mid-stream returns exactly the received text."""
        server.add_chunk(content="one ")
        server.add_chunk(content="two ")
        server.add_chunk(content="three")
        server.hang = True

        token = CancellationToken()
        received = []

        def on_chunk(text: str) -> None:
            received.append(text)
            if text == "two ":
                token.cancel()

        artifact = await engine.run_streaming_request(
            QUESTION, provider, on_chunk=on_chunk, cancel_token=token
        )

        assert artifact.cancelled is True
        assert artifact.partial_response == "".join(received)
        assert artifact.partial_response == "one two "

    @pytest.mark.asyncio
    async def test_cancel_while_waiting_for_hanging_stream(self, engine, server, provider):
        """Test cancelling while the provider sends nothing."""
        server.add_chunk(content="partial")
        server.hang = True
        token = CancellationToken()

        async def cancel_later():
            await asyncio.sleep(0.05)
            token.cancel()

        canceller = asyncio.create_task(cancel_later())
        artifact = await asyncio.wait_for(
            engine.run_streaming_request(QUESTION, provider, cancel_token=token),
            timeout=2.0,
        )
        await canceller

        assert artifact.cancelled is True
        assert artifact.text == "partial"
        assert artifact.session_text == "partial"

    @pytest.mark.asyncio
    async def test_completion_wins_when_cancelled_at_stream_end(self, provider):
        """Test that a cancel in the tick the stream completes loses to completion."""
        token = CancellationToken()

        class EndingTransport(LLMProvider):
            def __init__(self, provider: Provider):
                self._provider = provider

            @property
            def provider(self) -> Provider:
                return self._provider

            async def chat_completion(self, messages, model=None, timeout=None, **kwargs: Any):
                return LLMResponse(content="", model="test-model")

            async def stream_lines(self, messages, model=None, **kwargs: Any) -> AsyncIterator[str]:
                try:
                    yield 'data: {"choices": [{"delta": {"content": "done"}}]}'
                finally:
                    token.cancel()

            async def list_models(self, timeout=None) -> list[str]:
                return []

            async def close(self) -> None:
                pass

        engine = StreamingEngine(provider_factory=EndingTransport, status=lambda message: None)
        artifact = await engine.run_streaming_request(QUESTION, provider, cancel_token=token)

        assert token.cancelled is True
        assert artifact.cancelled is False
        assert artifact.text == "done"


class TestErrors:
    """Tests for error handling."""

    @pytest.mark.asyncio
    async def test_connection_refused_is_unreachable(self, engine, server, provider):
        """Test that a connect failure before any chunk raises ProviderUnreachableError."""
        server.connect_error = httpx.ConnectError("Connection refused")

        with pytest.raises(ProviderUnreachableError) as exc_info:
            await engine.run_streaming_request(QUESTION, provider)

        assert exc_info.value.provider_name == "test"
        assert "--base-url" in exc_info.value.hint

    @pytest.mark.asyncio
    async def test_connection_lost_after_partial_returns_partial(self, engine, server, provider):
        """Test that a drop after some output finalizes the partial text."""
        server.add_chunk(content="partial answer")
        server.stream_error = httpx.ReadError("Connection reset by peer")

        artifact = await engine.run_streaming_request(QUESTION, provider)

        assert artifact.cancelled is False
        assert artifact.text == "partial answer"

    @pytest.mark.asyncio
    async def test_connection_lost_before_output_is_unreachable(self, engine, server, provider):
        """Test that a drop before any output raises ProviderUnreachableError."""
        server.stream_error = httpx.ReadError("Connection reset by peer")

        with pytest.raises(ProviderUnreachableError):
            await engine.run_streaming_request(QUESTION, provider)

    @pytest.mark.asyncio
    async def test_http_error_status(self, engine, server, provider):
        """Test that a 4xx answer raises ProviderRequestError."""
        server.status_code = 404
        server.error_message = "model 'nope' not found"

        with pytest.raises(ProviderRequestError) as exc_info:
            await engine.run_streaming_request(QUESTION, provider)

        assert exc_info.value.status_code == 404
        assert "model 'nope' not found" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_key_fails_before_sending(self):
        """Test that an auth provider without a key is rejected up front."""
        messages = []
        engine = StreamingEngine(status=messages.append)
        keyless = Provider(name="test", base_url="http://llm.test/v1", model="m")

        with pytest.raises(ProviderConfigurationError):
            await engine.run_streaming_request(QUESTION, keyless)

        assert messages == []


class TestLiveness:
    """Tests for the liveness probe inside a request."""

    @pytest.mark.asyncio
    async def test_fast_stream_never_probes(self, engine, server, provider):
        """Test that no probe is sent when chunks arrive within the grace period."""
        server.add_chunk(content="quick")
        server.finish()

        await engine.run_streaming_request(QUESTION, provider)
        await asyncio.sleep(0.3)

        assert server.probe_count == 0

    @pytest.mark.asyncio
    async def test_slow_stream_probes_once(self, server, provider):
        """Test that a slow first chunk triggers exactly one probe."""
        messages = []
        engine = StreamingEngine(
            settings=EngineSettings(grace_period=0.05, probe_timeout=0.5),
            provider_factory=server.transport_factory,
            status=messages.append,
        )
        server.delay = 0.3
        server.add_chunk(content="slow")
        server.add_chunk(content=" answer")
        server.finish()

        artifact = await engine.run_streaming_request(QUESTION, provider)

        assert artifact.text == "slow answer"
        assert server.probe_count == 1
        assert "Checking if provider is online..." in messages
        assert any("online but taking longer" in message for message in messages)


class TestNonStreamingRequest:
    """Tests for run_request."""

    @pytest.mark.asyncio
    async def test_run_request(self, engine, server, provider):
        """Test a single completion call finalized like a stream."""
        server.completion_text = "<think>hmm</think>Plain answer"

        artifact = await engine.run_request(QUESTION, provider)

        assert artifact.text == "Plain answer"
        assert server.chat_bodies[0].get("stream") in (None, False)

    @pytest.mark.asyncio
    async def test_run_request_http_error(self, engine, server, provider):
        """Test error mapping on the non-streaming path."""
        server.status_code = 401
        server.error_message = "invalid api key"

        with pytest.raises(ProviderRequestError) as exc_info:
            await engine.run_request(QUESTION, provider)

        assert exc_info.value.status_code == 401
