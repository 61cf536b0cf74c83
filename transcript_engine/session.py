"""
Transcript session: the host-facing owner of one conversation's state.

A session wires an ItemStore, CallStatusTracker, CallTerminationDetector,
optional FallbackTranscriptionBridge and the EventReducer together from an
AppConfig. Hosts feed it events and read snapshots; they never touch the
store directly.
"""

from typing import Any, Callable, List, Mapping, Optional, Union

import aiohttp
from prometheus_client import Gauge

from .config import AppConfig
from .core.call_status import CallStatusTracker, StatusListener
from .core.classifier import LanguageClassifier
from .core.events import RealtimeEvent
from .core.fallback_transcription import FallbackTranscriptionBridge
from .core.item_store import ItemStore
from .core.models import CallStatus, Item
from .core.reducer import EventReducer
from .core.termination import CallTerminationDetector
from .export import export_json, format_transcript_text
from .logging_config import get_logger, set_session_id
from .services.base import AnalysisClient, SpeechToTextClient

logger = get_logger(__name__)

_ACTIVE_SESSIONS = Gauge(
    "transcript_engine_active_sessions",
    "Number of open transcript sessions",
)


class TranscriptSession:
    """One conversation's transcript, call status and collaborators."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        *,
        stt_client: Optional[SpeechToTextClient] = None,
        session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None,
        on_status_change: Optional[StatusListener] = None,
        session_id: Optional[str] = None,
    ):
        self.config = config or AppConfig()
        self.session_id = set_session_id(session_id)
        self._stt_client = stt_client

        self.store = ItemStore()
        self.tracker = CallStatusTracker(on_change=on_status_change)
        termination = self.config.termination
        self.detector = CallTerminationDetector(
            self.tracker,
            phrases=termination.phrases,
            grace_period_sec=termination.grace_period_sec,
            enabled=termination.enabled,
        )
        self.classifier = LanguageClassifier(
            self.config.classifier.target_locale_start,
            self.config.classifier.target_locale_end,
        )

        fallback = self.config.fallback_transcription
        self.bridge: Optional[FallbackTranscriptionBridge] = None
        if fallback.enabled and stt_client is not None:
            self.bridge = FallbackTranscriptionBridge(
                self.store,
                stt_client,
                fetch_timeout_sec=fallback.fetch_timeout_sec,
                audio_filename=fallback.audio_filename,
                audio_content_type=fallback.audio_content_type,
                session_factory=session_factory,
            )
        elif fallback.enabled:
            logger.debug("Fallback transcription enabled but no speech-to-text client supplied")

        self.reducer = EventReducer(
            self.store,
            self.tracker,
            self.detector,
            classifier=self.classifier,
            bridge=self.bridge,
        )
        self._closed = False
        _ACTIVE_SESSIONS.inc()
        logger.info(
            "Transcript session opened",
            termination_enabled=termination.enabled,
            grace_period_sec=termination.grace_period_sec,
            fallback_enabled=self.bridge is not None,
        )

    @property
    def status(self) -> CallStatus:
        return self.tracker.status

    @property
    def export_available(self) -> bool:
        return self.tracker.export_available(len(self.store))

    def handle_event(self, event: Union[RealtimeEvent, Mapping[str, Any]]) -> None:
        """Apply one realtime event, raw or parsed."""
        self.reducer.handle(event)

    def items(self) -> List[Item]:
        """Ordered snapshot of the transcript; safe to mutate."""
        return self.store.snapshot()

    snapshot = items

    def transcript_text(self) -> str:
        return format_transcript_text(self.store.snapshot())

    def transcript_json(self) -> str:
        return export_json(self.store.snapshot(), call_status=self.status.value)

    async def analyze(self, analyzer: AnalysisClient) -> str:
        """Run the analysis collaborator over the current snapshot."""
        return await analyzer.analyze(self.store.snapshot())

    async def drain(self) -> None:
        """Wait for pending fallback transcriptions."""
        if self.bridge is not None:
            await self.bridge.drain()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.tracker.aclose()
        if self.bridge is not None:
            await self.bridge.aclose()
        if self._stt_client is not None:
            await self._stt_client.close()
        _ACTIVE_SESSIONS.dec()
        logger.info("Transcript session closed", items=len(self.store), status=self.status.value)

    async def __aenter__(self) -> "TranscriptSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
