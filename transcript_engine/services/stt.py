"""
OpenAI speech-to-text client using /v1/audio/transcriptions (Whisper-style REST).
"""

from __future__ import annotations

import asyncio
import json
import time
import uuid
from typing import Callable, Optional

import aiohttp

from ..config import SpeechToTextConfig
from ..logging_config import get_logger
from .base import SpeechToTextClient, TranscriptionError

logger = get_logger(__name__)

USER_AGENT = "transcript-engine/1.0"


class OpenAITranscriptionClient(SpeechToTextClient):
    """Multipart upload of one audio payload; returns the transcript text."""

    def __init__(
        self,
        config: SpeechToTextConfig,
        *,
        session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None,
    ):
        self._config = config
        self._session_factory = session_factory
        self._session: Optional[aiohttp.ClientSession] = None

    async def transcribe(
        self,
        audio: bytes,
        *,
        filename: str = "speech.webm",
        content_type: str = "audio/webm",
    ) -> str:
        if not audio:
            raise TranscriptionError("No audio provided")
        api_key = self._config.api_key
        if not api_key:
            raise TranscriptionError("OpenAI speech-to-text requires an API key")

        await self._ensure_session()
        assert self._session

        form = aiohttp.FormData()
        form.add_field("file", audio, filename=filename, content_type=content_type)
        form.add_field("model", self._config.model)
        form.add_field("response_format", self._config.response_format)
        if self._config.language:
            form.add_field("language", self._config.language)
        if self._config.prompt:
            form.add_field("prompt", self._config.prompt)

        headers = {
            "Authorization": f"Bearer {api_key}",
            "User-Agent": USER_AGENT,
        }
        if self._config.organization:
            headers["OpenAI-Organization"] = self._config.organization

        request_id = f"stt-{uuid.uuid4().hex[:12]}"
        started_at = time.perf_counter()
        try:
            async with self._session.post(
                self._config.base_url,
                data=form,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self._config.request_timeout_sec),
            ) as resp:
                raw = await resp.read()
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Speech-to-text connection error", request_id=request_id, error=str(e))
            raise TranscriptionError(f"Speech-to-text connection error: {e}") from e

        latency_ms = (time.perf_counter() - started_at) * 1000.0
        body_text = raw.decode("utf-8", errors="ignore")
        if status >= 400:
            logger.error(
                "Speech-to-text request failed",
                request_id=request_id,
                status=status,
                model=self._config.model,
                body_preview=body_text[:200],
            )
            raise TranscriptionError(f"Speech-to-text request failed (status {status})", status=status)

        transcript = self._parse_transcript(raw, response_format=self._config.response_format)
        logger.info(
            "Speech-to-text transcript received",
            request_id=request_id,
            latency_ms=round(latency_ms, 2),
            audio_bytes=len(audio),
            transcript_preview=transcript[:80],
        )
        return transcript

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _ensure_session(self) -> None:
        if self._session and not self._session.closed:
            return
        factory = self._session_factory or aiohttp.ClientSession
        self._session = factory()

    @staticmethod
    def _parse_transcript(payload: bytes, *, response_format: str) -> str:
        if (response_format or "json").lower() == "text":
            return payload.decode("utf-8", errors="ignore").strip()
        try:
            data = json.loads(payload.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            return payload.decode("utf-8", errors="ignore").strip()
        text = data.get("text") if isinstance(data, dict) else None
        return text.strip() if isinstance(text, str) else ""
