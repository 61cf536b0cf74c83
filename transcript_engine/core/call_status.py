"""
Call status state machine: idle -> active -> ended.

The tracker owns at most one pending delayed "end" transition. Scheduling
while one is pending is a no-op, and explicit transitions cancel it.
"""

import asyncio
from typing import Callable, Optional

from prometheus_client import Counter

from ..logging_config import get_logger
from .models import CallStatus

logger = get_logger(__name__)

_STATUS_TRANSITIONS = Counter(
    "transcript_engine_call_status_transitions_total",
    "Call status transitions by target status and reason",
    labelnames=("status", "reason"),
)

StatusListener = Callable[[CallStatus, CallStatus, str], None]


class CallStatusTracker:
    """Tracks the call status for one transcript session."""

    def __init__(self, on_change: Optional[StatusListener] = None):
        self._status = CallStatus.IDLE
        self._on_change = on_change
        self._pending_end: Optional[asyncio.Task] = None
        # Bumped on start/reset so a timer from an older session never commits
        self._generation = 0

    @property
    def status(self) -> CallStatus:
        return self._status

    @property
    def has_pending_end(self) -> bool:
        return self._pending_end is not None and not self._pending_end.done()

    def start(self, reason: str = "session.created") -> None:
        """Enter `active` for a new session, dropping any pending end."""
        self._cancel_pending_end()
        self._generation += 1
        self._transition(CallStatus.ACTIVE, reason)

    def reset(self) -> None:
        self._cancel_pending_end()
        self._generation += 1
        self._transition(CallStatus.IDLE, "reset")

    def end(self, reason: str) -> bool:
        """
        Move to `ended`.

        Returns:
            True if the status changed, False if the call had already ended
        """
        if self._status == CallStatus.ENDED:
            logger.debug("Call already ended; ignoring end signal", reason=reason)
            return False
        self._cancel_pending_end()
        self._transition(CallStatus.ENDED, reason)
        return True

    def schedule_end(self, delay_sec: float, reason: str) -> bool:
        """
        Schedule a single delayed transition to `ended`.

        Returns False without scheduling when the call has already ended or
        another delayed end is pending. Without a running event loop the call
        is ended immediately.
        """
        if self._status == CallStatus.ENDED:
            return False
        if self.has_pending_end:
            logger.debug("Delayed call end already pending", reason=reason)
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; ending call without grace period", reason=reason)
            return self.end(reason)

        self._pending_end = loop.create_task(self._end_after(delay_sec, reason, self._generation))
        logger.info("⏱️  Delayed call end scheduled", delay_sec=delay_sec, reason=reason)
        return True

    def export_available(self, item_count: int) -> bool:
        """Export actions unlock once the call ended or any items exist."""
        return self._status == CallStatus.ENDED or item_count > 0

    async def aclose(self) -> None:
        task = self._pending_end
        self._cancel_pending_end()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _end_after(self, delay_sec: float, reason: str, generation: int) -> None:
        try:
            await asyncio.sleep(delay_sec)
        except asyncio.CancelledError:
            logger.debug("Delayed call end cancelled", reason=reason)
            raise
        self._pending_end = None
        if generation != self._generation:
            logger.debug("Discarding delayed call end from a previous session", reason=reason)
            return
        if self._status == CallStatus.ENDED:
            return
        self._transition(CallStatus.ENDED, reason)

    def _cancel_pending_end(self) -> None:
        task = self._pending_end
        self._pending_end = None
        if task is not None and not task.done():
            task.cancel()

    def _transition(self, new_status: CallStatus, reason: str) -> None:
        old_status = self._status
        if old_status == new_status:
            return
        self._status = new_status
        _STATUS_TRANSITIONS.labels(status=new_status.value, reason=reason).inc()
        logger.info("Call status changed", old_status=old_status.value, new_status=new_status.value, reason=reason)
        if self._on_change:
            try:
                self._on_change(old_status, new_status, reason)
            except Exception:
                logger.error("Call status listener failed", new_status=new_status.value, exc_info=True)
