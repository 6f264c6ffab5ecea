"""Cancellation controller.

A single token is shared between whoever may interrupt a request (a key
handler, a signal handler, a test) and the streaming engine. Cancelling is
idempotent: only the first call has any effect.
"""

import asyncio
import logging

logger = logging.getLogger(__name__)


class CancellationToken:
    """One-shot cancellation signal for an in-flight request."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """Signal cancellation.

        Returns:
            True if this call cancelled the token, False if it already was
        """
        if self._event.is_set():
            return False

        self._event.set()
        logger.debug("Cancellation requested")
        return True

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()
