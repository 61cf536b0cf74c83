"""
Fallback transcription bridge.

When the primary transcript of a user turn looks like non-default language,
the referenced audio is fetched and re-submitted to a speech-to-text
collaborator. The item already holds the original transcript; on success the
bridge replaces it. Failures never propagate: they are logged, the item is
annotated, and the original transcript stays.
"""

import asyncio
from typing import Callable, Optional, Set
from urllib.parse import urlparse

import aiohttp
from prometheus_client import Counter

from ..logging_config import get_logger
from ..services.base import CollaboratorError, SpeechToTextClient
from .item_store import ItemStore
from .models import NOTE_FALLBACK_FAILED, NOTE_FALLBACK_TRANSCRIPTION, ItemStatus, text_content

logger = get_logger(__name__)

_FALLBACK_OUTCOMES = Counter(
    "transcript_engine_fallback_transcriptions_total",
    "Fallback transcription attempts by outcome",
    labelnames=("outcome",),
)


class AudioFetchError(CollaboratorError):
    pass


class FallbackTranscriptionBridge:
    """Re-transcribes referenced audio and reconciles the result into the store."""

    def __init__(
        self,
        store: ItemStore,
        stt_client: SpeechToTextClient,
        *,
        fetch_timeout_sec: float = 10.0,
        audio_filename: str = "speech.webm",
        audio_content_type: str = "audio/webm",
        session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None,
    ):
        self._store = store
        self._stt = stt_client
        self._fetch_timeout_sec = fetch_timeout_sec
        self._audio_filename = audio_filename
        self._audio_content_type = audio_content_type
        self._session_factory = session_factory
        self._session: Optional[aiohttp.ClientSession] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, item_id: str, audio_url: str, original_transcript: str) -> Optional[asyncio.Task]:
        """
        Start a fire-and-forget fallback transcription for `item_id`.

        The current store generation is captured so a result that arrives
        after the session was cleared is discarded.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; skipping fallback transcription", item_id=item_id)
            _FALLBACK_OUTCOMES.labels(outcome="skipped").inc()
            return None

        generation = self._store.generation
        task = loop.create_task(self.transcribe(item_id, audio_url, original_transcript, generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("Fallback transcription submitted", item_id=item_id)
        return task

    async def transcribe(
        self,
        item_id: str,
        audio_url: str,
        original_transcript: str,
        generation: Optional[int] = None,
    ) -> Optional[str]:
        """
        Fetch, transcribe and reconcile one item.

        Returns:
            The text written to the item, or None if the original was kept
        """
        if generation is None:
            generation = self._store.generation

        try:
            audio, content_type = await self._fetch_audio(audio_url)
            text = (await self._stt.transcribe(
                audio,
                filename=self._audio_filename,
                content_type=content_type or self._audio_content_type,
            )).strip()
            if not text:
                raise CollaboratorError("Speech-to-text returned an empty transcript")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(
                "Fallback transcription failed; keeping original transcript",
                item_id=item_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            _FALLBACK_OUTCOMES.labels(outcome="failed").inc()
            if generation == self._store.generation:
                self._store.annotate(item_id, NOTE_FALLBACK_FAILED)
            return None

        return self._reconcile(item_id, text, original_transcript, generation)

    async def drain(self) -> None:
        """Wait for every in-flight fallback transcription to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _reconcile(self, item_id: str, text: str, original_transcript: str, generation: int) -> Optional[str]:
        # Re-read current state; never write through a stale copy
        if generation != self._store.generation:
            logger.info("Discarding fallback transcription from a cleared session", item_id=item_id)
            _FALLBACK_OUTCOMES.labels(outcome="stale").inc()
            return None
        current = self._store.get(item_id)
        if current is not None and current.text != original_transcript:
            logger.info("Item changed since fallback was submitted; keeping newer content", item_id=item_id)
            _FALLBACK_OUTCOMES.labels(outcome="superseded").inc()
            return None

        self._store.upsert(item_id, content=text_content(text), status=ItemStatus.COMPLETED)
        self._store.annotate(item_id, NOTE_FALLBACK_TRANSCRIPTION)
        _FALLBACK_OUTCOMES.labels(outcome="replaced").inc()
        logger.info("✅ Fallback transcription applied", item_id=item_id, transcript_preview=text[:80])
        return text

    async def _fetch_audio(self, audio_url: str):
        scheme = (urlparse(audio_url).scheme or "").lower()
        if scheme not in ("http", "https"):
            raise AudioFetchError(f"Unsupported audio URL scheme: {scheme or '<none>'}")

        await self._ensure_session()
        assert self._session
        try:
            async with self._session.get(
                audio_url,
                timeout=aiohttp.ClientTimeout(total=self._fetch_timeout_sec),
            ) as resp:
                if resp.status >= 400:
                    raise AudioFetchError(f"Audio fetch failed (status {resp.status})", status=resp.status)
                audio = await resp.read()
                content_type = resp.headers.get("Content-Type") if resp.headers else None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AudioFetchError(f"Audio fetch error: {e}") from e

        if not audio:
            raise AudioFetchError("Audio fetch returned an empty body")
        return audio, content_type

    async def _ensure_session(self) -> None:
        if self._session and not self._session.closed:
            return
        factory = self._session_factory or aiohttp.ClientSession
        self._session = factory()
