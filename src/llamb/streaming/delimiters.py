"""Recognized reasoning delimiter pairs.

Some models inline their chain of thought in the answer text instead of a
dedicated reasoning field. The spellings they use form a closed set; add a
member here to teach both the demultiplexer diagnostics and the finalizer a
new spelling.
"""

import re
from enum import Enum


class ReasoningDelimiter(Enum):
    """Opening/closing delimiter pairs that wrap inline reasoning."""

    THINK = ("<think>", "</think>")
    THINKING = ("<thinking>", "</thinking>")
    REASONING = ("<reasoning>", "</reasoning>")
    THOUGHT = ("<thought>", "</thought>")
    BRACKET_THINK = ("[think]", "[/think]")
    BRACKET_THINKING = ("[thinking]", "[/thinking]")
    BRACKET_REASONING = ("[reasoning]", "[/reasoning]")

    @property
    def opening(self) -> str:
        return self.value[0]

    @property
    def closing(self) -> str:
        return self.value[1]

    @property
    def block_pattern(self) -> re.Pattern[str]:
        """Pattern matching a complete block, delimiters included."""
        return _BLOCK_PATTERNS[self]

    @property
    def marker_pattern(self) -> re.Pattern[str]:
        """Pattern matching either delimiter on its own."""
        return _MARKER_PATTERNS[self]


_BLOCK_PATTERNS = {
    member: re.compile(
        re.escape(member.opening) + r".*?" + re.escape(member.closing),
        re.IGNORECASE | re.DOTALL,
    )
    for member in ReasoningDelimiter
}

_MARKER_PATTERNS = {
    member: re.compile(
        re.escape(member.opening) + "|" + re.escape(member.closing),
        re.IGNORECASE,
    )
    for member in ReasoningDelimiter
}

# Longest delimiter, used to size the rolling scan window across deltas
MAX_DELIMITER_LENGTH = max(len(part) for member in ReasoningDelimiter for part in member.value)


def find_delimiters(text: str) -> list[ReasoningDelimiter]:
    """Return every delimiter kind whose opening or closing tag occurs in text."""
    return [member for member in ReasoningDelimiter if member.marker_pattern.search(text)]
