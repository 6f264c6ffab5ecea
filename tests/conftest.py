"""Pytest configuration and shared fixtures."""
import asyncio
import json

import httpx
import pytest

from llamb.config import EngineSettings
from llamb.llm import OpenAICompatibleProvider, Provider
from llamb.streaming import StreamingEngine

BASE_URL = "http://llm.test/v1"


class ScriptedStream(httpx.AsyncByteStream):
    """Response body that replays SSE lines, optionally slowly, failing, or hanging."""

    def __init__(
        self,
        lines: list[str],
        delay: float = 0.0,
        error: Exception | None = None,
        hang: bool = False,
    ):
        self._lines = lines
        self._delay = delay
        self._error = error
        self._hang = hang
        self.closed = False

    async def __aiter__(self):
        for line in self._lines:
            if self._delay:
                await asyncio.sleep(self._delay)
            yield f"{line}\n\n".encode()
        if self._error is not None:
            raise self._error
        if self._hang:
            await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.closed = True


class FakeProviderServer:
    """Scripted OpenAI-compatible server for ``httpx.MockTransport``.

    Serves ``POST /chat/completions`` (streaming and non-streaming) and
    ``GET /models``. Tests configure attributes before running a request.
    """

    def __init__(self):
        self.lines: list[str] = []
        self.delay = 0.0
        self.stream_error: Exception | None = None
        self.hang = False
        self.connect_error: Exception | None = None
        self.status_code = 200
        self.error_message = "bad request"
        self.completion_text = ""

        self.model_ids = ["test-model", "other-model"]
        self.models_status = 200
        self.models_error: Exception | None = None

        self.requests: list[httpx.Request] = []
        self.chat_bodies: list[dict] = []
        self.streams: list[ScriptedStream] = []
        self.probe_count = 0

    def add_chunk(self, content: str | None = None, reasoning: str | None = None,
                  reasoning_field: str = "reasoning_content") -> None:
        delta = {}
        if reasoning is not None:
            delta[reasoning_field] = reasoning
        if content is not None:
            delta["content"] = content
        self.lines.append("data: " + json.dumps({"choices": [{"index": 0, "delta": delta}]}))

    def add_line(self, line: str) -> None:
        self.lines.append(line)

    def finish(self) -> None:
        self.lines.append("data: [DONE]")

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.path.endswith("/models"):
            self.probe_count += 1
            if self.models_error is not None:
                raise self.models_error
            if self.models_status != 200:
                return httpx.Response(self.models_status, json={"error": {"message": "denied"}})
            return httpx.Response(200, json={
                "object": "list",
                "data": [
                    {"id": model_id, "object": "model", "created": 0, "owned_by": "test"}
                    for model_id in self.model_ids
                ],
            })

        if self.connect_error is not None:
            raise self.connect_error

        body = json.loads(request.content)
        self.chat_bodies.append(body)

        if self.status_code != 200:
            return httpx.Response(
                self.status_code,
                json={"error": {"message": self.error_message, "type": "invalid_request_error"}},
            )

        if not body.get("stream"):
            return httpx.Response(200, json={
                "id": "chatcmpl-test",
                "object": "chat.completion",
                "created": 0,
                "model": body["model"],
                "choices": [{
                    "index": 0,
                    "message": {"role": "assistant", "content": self.completion_text},
                    "finish_reason": "stop",
                }],
                "usage": {"prompt_tokens": 3, "completion_tokens": 5, "total_tokens": 8},
            })

        stream = ScriptedStream(self.lines, self.delay, self.stream_error, self.hang)
        self.streams.append(stream)
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, stream=stream)

    def transport_factory(self, provider: Provider) -> OpenAICompatibleProvider:
        """Provider factory for the engine; a fresh HTTP client per request."""
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(self))
        return OpenAICompatibleProvider(provider, timeout=5.0, http_client=http_client)


@pytest.fixture
def server():
    """Return a scripted provider server."""
    return FakeProviderServer()


@pytest.fixture
def provider():
    """Return a provider that requires auth."""
    return Provider(name="test", base_url=BASE_URL, model="test-model", api_key="sk-test")


@pytest.fixture
def local_provider():
    """Return a provider that sends no Authorization header."""
    return Provider(
        name="local",
        base_url=BASE_URL,
        model="test-model",
        api_key="sk-ignored",
        requires_auth=False,
    )


@pytest.fixture
def status_messages():
    """Collect status messages emitted by the engine."""
    return []


@pytest.fixture
def engine(server, status_messages):
    """Return a streaming engine wired to the scripted server."""
    settings = EngineSettings(grace_period=0.2, probe_timeout=0.5)
    return StreamingEngine(
        settings=settings,
        provider_factory=server.transport_factory,
        status=status_messages.append,
    )
