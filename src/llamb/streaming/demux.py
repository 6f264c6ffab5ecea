"""Stream demultiplexer.

Turns raw server-sent event lines from an OpenAI-compatible provider into
one ordered text stream. Hides:
- The event wire format (``data:`` lines, ``[DONE]``, comments)
- Which delta fields carry answer text and which carry reasoning
- Where section markers go when the stream switches channels
"""

import json
import logging
from collections.abc import Callable
from typing import Any

from ..config import REASONING_MARKER, SECTION_SEPARATOR
from ..llm.models import StreamChunk
from .delimiters import MAX_DELIMITER_LENGTH, ReasoningDelimiter, find_delimiters

logger = logging.getLogger(__name__)

ChunkSink = Callable[[str], None]
StatusCallback = Callable[[str], None]

DONE_PAYLOAD = "[DONE]"

# Reasoning field names, in order of preference
REASONING_FIELDS = ("reasoning_content", "reasoning")


def decode_event(line: str) -> dict[str, Any] | None:
    """Decode one event line into its JSON payload.

    Returns None for lines that carry no payload (blank lines, ``:``
    comments, ``event:``/``id:`` fields) and for malformed JSON.
    """
    stripped = line.strip()
    if not stripped or stripped.startswith(":"):
        return None

    if stripped.startswith("data:"):
        payload = stripped[len("data:"):].strip()
    elif stripped.startswith("{"):
        # Some local servers send bare JSON lines
        payload = stripped
    else:
        return None

    try:
        event = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed stream chunk: %.80s", payload)
        return None

    if not isinstance(event, dict):
        return None
    return event


def is_done_line(line: str) -> bool:
    """Check for the ``data: [DONE]`` terminator."""
    stripped = line.strip()
    return stripped.startswith("data:") and stripped[len("data:"):].strip() == DONE_PAYLOAD


def extract_chunk(event: dict[str, Any]) -> StreamChunk:
    """Pull the content and reasoning deltas out of a decoded event.

    Missing fields mean "no delta this tick" and yield empty strings.
    """
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return StreamChunk()

    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return StreamChunk()

    content = delta.get("content")
    reasoning = ""
    for field in REASONING_FIELDS:
        value = delta.get(field)
        if isinstance(value, str) and value:
            reasoning = value
            break

    return StreamChunk(
        content_delta=content if isinstance(content, str) else "",
        reasoning_delta=reasoning,
    )


class StreamDemultiplexer:
    """Orders reasoning and answer deltas into one accumulated text.

    Every emitted piece goes to the sink and to the accumulator in the same
    order, so ``text`` always equals the concatenation of sink writes.

    Usage:
        demux = StreamDemultiplexer(sink=print_chunk)
        async for line in transport.stream_lines(messages):
            if not demux.feed_line(line):
                break
        full_text = demux.text
    """

    def __init__(
        self,
        sink: ChunkSink | None = None,
        status: StatusCallback | None = None,
        reasoning_marker: str = REASONING_MARKER,
        section_separator: str = SECTION_SEPARATOR,
    ) -> None:
        """Initialize the demultiplexer.

        Args:
            sink: Called with every emitted piece of text, in order
            status: Called with diagnostic notices (not part of the text)
            reasoning_marker: Written once before the first reasoning delta
            section_separator: Written when content follows reasoning
        """
        self._sink = sink
        self._status = status
        self._reasoning_marker = reasoning_marker
        self._section_separator = section_separator

        self._parts: list[str] = []
        self._answer_parts: list[str] = []
        self._last_channel: str | None = None
        self._reasoning_opened = False
        self._done = False
        self._chunk_count = 0
        self._scan_tail = ""
        self._reported_delimiters: set[ReasoningDelimiter] = set()
        self.usage: dict[str, Any] | None = None

    @property
    def text(self) -> str:
        """Everything emitted so far."""
        return "".join(self._parts)

    @property
    def answer_text(self) -> str:
        """Answer-channel text only, without reasoning or markers."""
        return "".join(self._answer_parts)

    @property
    def done(self) -> bool:
        """Whether the ``[DONE]`` terminator has been seen."""
        return self._done

    @property
    def chunk_count(self) -> int:
        """Number of chunks that carried at least one delta."""
        return self._chunk_count

    def feed_line(self, line: str) -> bool:
        """Process one raw event line.

        Args:
            line: Raw line from the event stream

        Returns:
            False once the stream has terminated, True otherwise
        """
        if self._done:
            return False

        if is_done_line(line):
            self._done = True
            return False

        event = decode_event(line)
        if event is None:
            return True

        if "error" in event:
            logger.warning("Provider reported an error mid-stream: %s", event["error"])
            return True

        usage = event.get("usage")
        if isinstance(usage, dict):
            self.usage = usage

        self.feed_chunk(extract_chunk(event))
        return True

    def feed_chunk(self, chunk: StreamChunk) -> None:
        """Emit one chunk's deltas, reasoning before content."""
        if chunk.is_empty:
            return
        self._chunk_count += 1

        if chunk.reasoning_delta:
            if not self._reasoning_opened:
                self._reasoning_opened = True
                self._emit(self._reasoning_marker)
            self._emit(chunk.reasoning_delta)
            self._last_channel = "reasoning"

        if chunk.content_delta:
            if self._last_channel == "reasoning":
                self._emit(self._section_separator)
            self._scan_for_delimiters(chunk.content_delta)
            self._emit(chunk.content_delta)
            self._answer_parts.append(chunk.content_delta)
            self._last_channel = "content"

    def _emit(self, piece: str) -> None:
        self._parts.append(piece)
        if self._sink is not None:
            self._sink(piece)

    def _scan_for_delimiters(self, delta: str) -> None:
        """Report inline reasoning delimiters; stripping happens in the finalizer."""
        window = self._scan_tail + delta
        self._scan_tail = window[-MAX_DELIMITER_LENGTH:]

        for delimiter in find_delimiters(window):
            if delimiter in self._reported_delimiters:
                continue
            self._reported_delimiters.add(delimiter)
            logger.debug("Inline reasoning delimiter %s detected in content", delimiter.name)
            if self._status is not None:
                self._status(
                    f"Detected inline reasoning block ({delimiter.opening}...{delimiter.closing})"
                )
