"""Configuration constants and engine settings.

Centralizes magic numbers for the streaming engine. Every tunable value can
be overridden through an ``LLAMB_*`` environment variable.
"""

import logging
import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class LogLevel:
    """Log level names accepted on the command line and in the environment.

    Values map onto the standard :mod:`logging` levels.
    """

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR

    _names = {
        DEBUG: "DEBUG",
        INFO: "INFO",
        WARNING: "WARNING",
        ERROR: "ERROR",
    }

    _from_string = {
        "debug": DEBUG,
        "info": INFO,
        "warning": WARNING,
        "error": ERROR,
    }

    @classmethod
    def name(cls, level: int) -> str:
        """Get the name for a log level."""
        return cls._names.get(level, "UNKNOWN")

    @classmethod
    def from_string(cls, level_str: str) -> int:
        """Convert string to log level. Returns WARNING if invalid."""
        return cls._from_string.get(level_str.lower(), cls.WARNING)


# Stream section markers
REASONING_MARKER = "\n🧠 Reasoning: "
SECTION_SEPARATOR = "\n\n"

# Liveness monitoring
LIVENESS_GRACE_SECONDS = 15.0
PROBE_TIMEOUT_SECONDS = 5.0

# Request limits
REQUEST_TIMEOUT_SECONDS = 600.0
NON_STREAMING_TIMEOUT_SECONDS = 10.0

# Code block coverage thresholds for file output
DOMINANT_BLOCK_THRESHOLD = 0.95
PURE_BLOCK_THRESHOLD = 0.98

# Input file limits
MAX_INPUT_FILE_MB = 10

LLAMB_HOME = Path.home() / ".llamb"
DEFAULT_SESSIONS_DIR = LLAMB_HOME / "sessions"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


class EngineSettings(BaseModel):
    """Tunable settings for the streaming engine."""

    model_config = ConfigDict(frozen=True)

    grace_period: float = Field(
        default=LIVENESS_GRACE_SECONDS,
        gt=0,
        description="Seconds without output before the provider is probed"
    )
    probe_timeout: float = Field(
        default=PROBE_TIMEOUT_SECONDS,
        gt=0,
        description="Timeout for the liveness probe"
    )
    request_timeout: float = Field(
        default=REQUEST_TIMEOUT_SECONDS,
        gt=0,
        description="Timeout for the main chat completion request"
    )
    dominant_block_threshold: float = Field(
        default=DOMINANT_BLOCK_THRESHOLD,
        ge=0.0,
        le=1.0,
        description="Share of characters a code block must cover to replace the text"
    )
    pure_block_threshold: float = Field(
        default=PURE_BLOCK_THRESHOLD,
        ge=0.0,
        le=1.0,
        description="Share of characters a dominant block must cover to count as pure code"
    )
    reasoning_marker: str = Field(default=REASONING_MARKER)
    section_separator: str = Field(default=SECTION_SEPARATOR)

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Build settings from ``LLAMB_*`` environment variables.

        Environment variables:
            LLAMB_LIVENESS_GRACE_SECONDS: Grace period (default: 15)
            LLAMB_PROBE_TIMEOUT_SECONDS: Probe timeout (default: 5)
            LLAMB_REQUEST_TIMEOUT_SECONDS: Request timeout (default: 600)
            LLAMB_DOMINANT_BLOCK_THRESHOLD: Dominant block coverage (default: 0.95)
            LLAMB_PURE_BLOCK_THRESHOLD: Pure code coverage (default: 0.98)
        """
        return cls(
            grace_period=_env_float("LLAMB_LIVENESS_GRACE_SECONDS", LIVENESS_GRACE_SECONDS),
            probe_timeout=_env_float("LLAMB_PROBE_TIMEOUT_SECONDS", PROBE_TIMEOUT_SECONDS),
            request_timeout=_env_float("LLAMB_REQUEST_TIMEOUT_SECONDS", REQUEST_TIMEOUT_SECONDS),
            dominant_block_threshold=_env_float(
                "LLAMB_DOMINANT_BLOCK_THRESHOLD", DOMINANT_BLOCK_THRESHOLD
            ),
            pure_block_threshold=_env_float("LLAMB_PURE_BLOCK_THRESHOLD", PURE_BLOCK_THRESHOLD),
        )


def sessions_dir_from_env() -> Path:
    """Get the session directory (``LLAMB_SESSIONS_DIR`` or ~/.llamb/sessions)."""
    raw = os.getenv("LLAMB_SESSIONS_DIR")
    return Path(raw).expanduser() if raw else DEFAULT_SESSIONS_DIR
