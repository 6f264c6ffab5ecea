"""Streaming response engine for llamb.

Module structure (each module hides one design decision):
- demux.py: Event wire format and reasoning/answer channel ordering
- liveness.py: When and how a silent provider is probed
- cancellation.py: How an interrupt reaches the in-flight request
- delimiters.py: Which inline reasoning spellings are recognized
- finalizer.py: How raw text becomes history text and file payloads
- engine.py: How the pieces run together for one request
"""

from .cancellation import CancellationToken
from .delimiters import ReasoningDelimiter
from .demux import StreamDemultiplexer, decode_event, extract_chunk
from .engine import StreamingEngine
from .finalizer import CodeBlock, FileFormat, ResponseFinalizer, find_code_blocks
from .liveness import LivenessMonitor, LivenessState

__all__ = [
    "CancellationToken",
    "CodeBlock",
    "FileFormat",
    "LivenessMonitor",
    "LivenessState",
    "ReasoningDelimiter",
    "ResponseFinalizer",
    "StreamDemultiplexer",
    "StreamingEngine",
    "decode_event",
    "extract_chunk",
    "find_code_blocks",
]
