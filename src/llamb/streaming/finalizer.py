"""Response finalizer.

Turns the accumulated stream text into the artifacts the rest of the
system needs:
- the text appended to session history (inline reasoning blocks removed)
- for file output, the payload to write plus a "pure code" classification
  that decides the file extension
"""

import logging
import re
from dataclasses import dataclass

from ..config import DOMINANT_BLOCK_THRESHOLD, PURE_BLOCK_THRESHOLD
from ..llm.models import ResponseArtifact
from .delimiters import ReasoningDelimiter

logger = logging.getLogger(__name__)

# A fenced block whose fences start at the beginning of a line
FENCED_BLOCK_PATTERN = re.compile(
    r"^```[ \t]*([^\s`]*)[^\n]*\n(.*?)^```[ \t]*$",
    re.MULTILINE | re.DOTALL,
)

EXCESS_NEWLINES_PATTERN = re.compile(r"\n{3,}")


@dataclass(frozen=True)
class CodeBlock:
    """A fenced code block located in a text."""

    start: int
    end: int
    language: str | None
    body: str

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class FileFormat:
    """Result of formatting text for file output."""

    text: str
    detected_language: str | None = None
    is_pure_code_block: bool = False


def find_code_blocks(text: str) -> list[CodeBlock]:
    """Locate all fenced code blocks in text, in order."""
    blocks = []
    for match in FENCED_BLOCK_PATTERN.finditer(text):
        body = match.group(2)
        if body.endswith("\n"):
            body = body[:-1]
        blocks.append(CodeBlock(
            start=match.start(),
            end=match.end(),
            language=match.group(1) or None,
            body=body,
        ))
    return blocks


class ResponseFinalizer:
    """Normalizes accumulated response text.

    Thresholds are coverage ratios (characters inside fenced blocks divided
    by characters of the trimmed text).
    """

    def __init__(
        self,
        delimiters: tuple[ReasoningDelimiter, ...] = tuple(ReasoningDelimiter),
        dominant_block_threshold: float = DOMINANT_BLOCK_THRESHOLD,
        pure_block_threshold: float = PURE_BLOCK_THRESHOLD,
    ) -> None:
        self._delimiters = delimiters
        self._dominant_block_threshold = dominant_block_threshold
        self._pure_block_threshold = pure_block_threshold

    def strip_reasoning(self, text: str) -> str:
        """Remove inline reasoning blocks.

        Never returns an empty string for non-empty input: if everything
        would be stripped, the original text is returned instead.
        """
        stripped = text
        for delimiter in self._delimiters:
            stripped = delimiter.block_pattern.sub("", stripped)

        if stripped == text:
            return text

        stripped = EXCESS_NEWLINES_PATTERN.sub("\n\n", stripped).strip()

        if not stripped and text.strip():
            logger.warning("Reasoning filter removed the entire response; keeping original text")
            return text
        return stripped

    def format_for_file(self, text: str) -> FileFormat:
        """Unwrap code fences and classify the text for file output.

        Args:
            text: Response text with reasoning already stripped

        Returns:
            FileFormat with the payload, detected language and pure-code flag
        """
        trimmed = text.strip()
        blocks = find_code_blocks(trimmed)
        if not trimmed or not blocks:
            return FileFormat(text=text)

        first_language = next((b.language for b in blocks if b.language), None)

        if len(blocks) == 1 and blocks[0].start == 0 and blocks[0].end == len(trimmed):
            return FileFormat(
                text=blocks[0].body,
                detected_language=blocks[0].language,
                is_pure_code_block=True,
            )

        coverage = sum(block.length for block in blocks) / len(trimmed)

        if len(blocks) == 1 and coverage > self._dominant_block_threshold:
            block = blocks[0]
            return FileFormat(
                text=block.body,
                detected_language=block.language,
                is_pure_code_block=coverage > self._pure_block_threshold,
            )

        if len(blocks) > 1 and coverage > self._dominant_block_threshold:
            return FileFormat(
                text=self._remove_fences(trimmed, blocks),
                detected_language=first_language,
                is_pure_code_block=False,
            )

        return FileFormat(text=text, detected_language=first_language)

    def finalize(
        self,
        text: str,
        *,
        file_output: bool = False,
        answer_text: str | None = None,
    ) -> ResponseArtifact:
        """Build the final artifact for a completed stream.

        Args:
            text: Everything the stream emitted (reasoning section included)
            file_output: Also format the answer for writing to a file
            answer_text: Answer-channel text only; used for file output so the
                reasoning section never lands in the file

        Returns:
            ResponseArtifact whose ``session_text`` is the history entry
        """
        session_text = self.strip_reasoning(text)

        if not file_output:
            return ResponseArtifact(text=session_text, session_text=session_text)

        source = session_text
        if answer_text is not None and answer_text.strip() and answer_text != text:
            source = self.strip_reasoning(answer_text)

        formatted = self.format_for_file(source)
        if formatted.detected_language:
            logger.debug(
                "Detected %s code block with language %s",
                "pure" if formatted.is_pure_code_block else "embedded",
                formatted.detected_language,
            )

        return ResponseArtifact(
            text=formatted.text,
            detected_language=formatted.detected_language,
            is_pure_code_block=formatted.is_pure_code_block,
            session_text=session_text,
        )

    @staticmethod
    def _remove_fences(text: str, blocks: list[CodeBlock]) -> str:
        pieces = []
        cursor = 0
        for block in blocks:
            pieces.append(text[cursor:block.start])
            pieces.append(block.body)
            cursor = block.end
        pieces.append(text[cursor:])
        return "".join(pieces).strip()
