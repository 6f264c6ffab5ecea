"""Liveness monitor.

Runs beside an in-flight request. If nothing arrives within the grace
period, it probes the provider once through a side channel and reports
whether the provider is online but slow or unreachable. It never cancels or
delays the main request.

State machine:
    IDLE -> ARMED -> CHUNK_RECEIVED
                  -> CHECKING -> ONLINE | OFFLINE | ERROR
                  -> CANCELLED
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress
from enum import Enum

import httpx
import openai

from ..config import LIVENESS_GRACE_SECONDS, PROBE_TIMEOUT_SECONDS
from ..errors import SWITCH_PROVIDER_HINT

logger = logging.getLogger(__name__)

Probe = Callable[[], Awaitable[object]]
StatusCallback = Callable[[str], None]

# Probe failures that mean the provider cannot be reached at all
OFFLINE_ERRORS = (
    asyncio.TimeoutError,
    TimeoutError,
    OSError,
    httpx.TransportError,
    openai.APIConnectionError,
)


class LivenessState(str, Enum):
    """Liveness monitor states."""

    IDLE = "idle"
    ARMED = "armed"
    CHECKING = "checking"
    ONLINE = "online"
    OFFLINE = "offline"
    ERROR = "error"
    CANCELLED = "cancelled"
    CHUNK_RECEIVED = "chunk_received"


TERMINAL_STATES = frozenset({
    LivenessState.ONLINE,
    LivenessState.OFFLINE,
    LivenessState.ERROR,
    LivenessState.CANCELLED,
    LivenessState.CHUNK_RECEIVED,
})


class LivenessMonitor:
    """Detects a silent provider without touching the main request.

    The probe runs at most once, never before the grace period has elapsed
    and never once the first chunk has arrived.
    """

    def __init__(
        self,
        probe: Probe,
        provider_name: str = "provider",
        grace_period: float = LIVENESS_GRACE_SECONDS,
        probe_timeout: float = PROBE_TIMEOUT_SECONDS,
        status: StatusCallback | None = None,
        hint: str = SWITCH_PROVIDER_HINT,
    ) -> None:
        """Initialize the monitor.

        Args:
            probe: Zero-argument coroutine function that raises if the provider is unreachable
            provider_name: Used in advisory messages
            grace_period: Seconds to wait for the first chunk before probing
            probe_timeout: Upper bound for the probe
            status: Receives advisory messages
            hint: Command suggested when the provider looks offline
        """
        self._probe = probe
        self._provider_name = provider_name
        self._grace_period = grace_period
        self._probe_timeout = probe_timeout
        self._status = status or (lambda message: logger.info(message))
        self._hint = hint

        self._state = LivenessState.IDLE
        self._task: asyncio.Task[None] | None = None
        self._probe_count = 0

    @property
    def state(self) -> LivenessState:
        return self._state

    @property
    def probe_count(self) -> int:
        """How many probes were issued (0 or 1)."""
        return self._probe_count

    def arm(self) -> None:
        """Start the grace timer. Only valid from IDLE."""
        if self._state is not LivenessState.IDLE:
            raise RuntimeError(f"Cannot arm liveness monitor in state {self._state.value}")
        self._state = LivenessState.ARMED
        self._task = asyncio.create_task(self._run(), name="llamb-liveness")

    def notify_chunk(self) -> None:
        """Record that the first chunk arrived.

        Returns immediately. A probe already in flight keeps running and its
        result is discarded.
        """
        if self._state is LivenessState.ARMED:
            self._state = LivenessState.CHUNK_RECEIVED
            if self._task is not None:
                self._task.cancel()
        elif self._state is LivenessState.CHECKING:
            self._state = LivenessState.CHUNK_RECEIVED
            self._status("Response started streaming.")

    def cancel(self) -> None:
        """Stop monitoring; any later probe result is discarded."""
        if self._state in TERMINAL_STATES:
            return
        was_armed = self._state is LivenessState.ARMED
        self._state = LivenessState.CANCELLED
        if was_armed and self._task is not None:
            self._task.cancel()

    async def aclose(self) -> None:
        """Stop monitoring and reap the background task."""
        self.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task

    async def _run(self) -> None:
        await asyncio.sleep(self._grace_period)
        if self._state is not LivenessState.ARMED:
            return

        self._state = LivenessState.CHECKING
        self._probe_count += 1
        self._status("Checking if provider is online...")

        try:
            await asyncio.wait_for(self._probe(), timeout=self._probe_timeout)
        except OFFLINE_ERRORS as e:
            logger.debug("Liveness probe failed: %r", e)
            self._resolve(
                LivenessState.OFFLINE,
                f"Provider {self._provider_name} appears to be offline or unreachable. "
                f"You can press Ctrl-C to cancel or try another provider with: {self._hint}"
            )
        except Exception as e:
            logger.debug("Liveness probe returned an error: %r", e)
            self._resolve(
                LivenessState.ERROR,
                f"Could not confirm that provider {self._provider_name} is reachable ({e})."
            )
        else:
            self._resolve(
                LivenessState.ONLINE,
                f"Provider {self._provider_name} is online but taking longer than expected "
                f"to respond. You can press Ctrl-C to cancel or wait for the response."
            )

    def _resolve(self, state: LivenessState, message: str) -> None:
        if self._state is not LivenessState.CHECKING:
            logger.debug("Discarding liveness result %s (state: %s)", state.value, self._state.value)
            return
        self._state = state
        self._status(message)
