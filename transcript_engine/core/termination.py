"""
Closing-phrase heuristic for ending a call.

Matching is a case-insensitive substring test, so a mid-call "have a great
day" also matches. That false-positive risk is a known limitation of the
heuristic.
"""

from typing import Iterable, Optional

from ..logging_config import get_logger
from .call_status import CallStatusTracker

logger = get_logger(__name__)

DEFAULT_END_CALL_PHRASES = (
    "goodbye",
    "thank you for calling",
    "call has ended",
    "end of call",
    "is there anything else i can help you with",
    "have a great day",
    "have a nice day",
    "thank you for your time",
    "thanks for calling",
    "call is now complete",
    "this concludes our call",
)

DEFAULT_GRACE_PERIOD_SEC = 3.0

TERMINATION_REASON = "closing_phrase"


class CallTerminationDetector:
    """Schedules a delayed `ended` transition when an assistant says goodbye."""

    def __init__(
        self,
        tracker: CallStatusTracker,
        phrases: Iterable[str] = DEFAULT_END_CALL_PHRASES,
        grace_period_sec: float = DEFAULT_GRACE_PERIOD_SEC,
        enabled: bool = True,
    ):
        self._tracker = tracker
        self.phrases = tuple(p.lower() for p in phrases if p and p.strip())
        self.grace_period_sec = grace_period_sec
        self.enabled = enabled

    def match(self, text: str) -> Optional[str]:
        """Return the first closing phrase contained in `text`, if any."""
        if not text:
            return None
        lowered = text.lower()
        for phrase in self.phrases:
            if phrase in lowered:
                return phrase
        return None

    def evaluate(self, text: str) -> bool:
        """
        Check a finalized assistant message and schedule the call end on a match.

        Returns:
            True if a new delayed transition was scheduled
        """
        if not self.enabled:
            return False
        phrase = self.match(text)
        if phrase is None:
            return False
        logger.info("Detected end of call phrase in assistant message", phrase=phrase)
        return self._tracker.schedule_end(self.grace_period_sec, TERMINATION_REASON)
