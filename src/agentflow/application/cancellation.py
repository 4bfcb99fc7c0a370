"""Cooperative cancellation of a run."""

from __future__ import annotations

import asyncio

from agentflow.domain.exceptions import CancellationError


class CancelToken:
    """
    Flag checked by the Scheduler before each node and by the Retry
    Coordinator between attempts.

    Also carries a pause request, honoured only by the Scheduler before
    each node: an agent call in flight always finishes first.

    Must be used from the event loop that drives the run.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._pause_requested = False
        self._event: asyncio.Event | None = None

    def _get_event(self) -> asyncio.Event:
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        return self._event

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._event is not None:
            self._event.set()

    @property
    def pause_requested(self) -> bool:
        return self._pause_requested

    def request_pause(self) -> None:
        self._pause_requested = True

    def clear_pause(self) -> None:
        self._pause_requested = False

    def raise_if_cancelled(self, run_id: str, attempts: int = 0) -> None:
        if self._cancelled:
            raise CancellationError(run_id, attempts)

    async def wait(self) -> None:
        """Return once the token is cancelled."""
        await self._get_event().wait()

    async def sleep(self, delay: float) -> bool:
        """Sleep for ``delay`` seconds unless cancelled first.

        Returns:
            True if the token was cancelled before or during the sleep.
        """
        if self._cancelled:
            return True
        if delay <= 0:
            return False
        try:
            await asyncio.wait_for(self.wait(), timeout=delay)
        except TimeoutError:
            return False
        return True
