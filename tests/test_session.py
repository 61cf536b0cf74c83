import asyncio
import json

import pytest

from conftest import FakeResponse, FakeSession, FakeSTTClient
from transcript_engine.config import AppConfig
from transcript_engine.core.models import CallStatus, ItemStatus
from transcript_engine.services.base import AnalysisClient
from transcript_engine.session import TranscriptSession


def _config(**termination):
    config = AppConfig()
    config.termination.grace_period_sec = 0.05
    for key, value in termination.items():
        setattr(config.termination, key, value)
    return config


class _RecordingAnalyzer(AnalysisClient):
    def __init__(self):
        self.received = None

    async def analyze(self, items):
        self.received = items
        return "report"


class TestTranscriptSession:

    def test_defaults_without_stt_client(self):
        session = TranscriptSession()
        assert session.bridge is None
        assert session.status == CallStatus.IDLE
        assert session.export_available is False
        assert session.session_id

    def test_bridge_only_when_enabled(self):
        config = AppConfig()
        config.fallback_transcription.enabled = False
        session = TranscriptSession(config, stt_client=FakeSTTClient(transcript="x"))
        assert session.bridge is None

    @pytest.mark.asyncio
    async def test_conversation_flow(self):
        session = TranscriptSession(_config())
        session.handle_event({"type": "session.created"})
        session.handle_event({"type": "input_audio_buffer.speech_started", "item_id": "1"})
        session.handle_event({
            "type": "conversation.item.created",
            "item": {"id": "1", "type": "message", "role": "user", "content": [{"type": "text", "text": "hello"}]},
        })
        session.handle_event({
            "type": "conversation.item.created",
            "item": {"id": "2", "type": "message", "role": "assistant",
                     "content": [{"type": "text", "text": "Thank you for calling, have a great day"}]},
        })

        assert session.export_available is True
        assert [item.id for item in session.items()] == ["1", "2"]
        assert session.status == CallStatus.ACTIVE

        await asyncio.sleep(0.1)
        assert session.status == CallStatus.ENDED
        await session.aclose()

    @pytest.mark.asyncio
    async def test_disabled_termination(self):
        session = TranscriptSession(_config(enabled=False))
        session.handle_event({"type": "session.created"})
        session.handle_event({
            "type": "conversation.item.created",
            "item": {"id": "2", "type": "message", "role": "assistant",
                     "content": [{"type": "text", "text": "Goodbye"}]},
        })

        await asyncio.sleep(0.1)
        assert session.status == CallStatus.ACTIVE
        await session.aclose()

    @pytest.mark.asyncio
    async def test_fallback_wired_through_session(self):
        stt = FakeSTTClient(transcript="Namaste")
        fake_http = FakeSession(FakeResponse(b"audio"))
        session = TranscriptSession(_config(), stt_client=stt, session_factory=lambda: fake_http)

        session.handle_event({
            "type": "conversation.item.input_audio_transcription.completed",
            "item_id": "u1",
            "transcript": "नमस्ते",
            "audio_url": "https://media.example.test/u1.webm",
        })
        await session.drain()

        [item] = session.items()
        assert item.text == "Namaste"
        assert item.status == ItemStatus.COMPLETED

        await session.aclose()
        assert stt.closed is True
        assert fake_http.closed is True

    @pytest.mark.asyncio
    async def test_exports_and_analysis(self):
        session = TranscriptSession(_config())
        session.handle_event({
            "type": "conversation.item.created",
            "item": {"id": "u1", "type": "message", "role": "user", "content": [{"type": "text", "text": "hi"}]},
        })

        assert session.transcript_text().startswith("Caller (")
        document = json.loads(session.transcript_json())
        assert document["call_status"] == "idle"
        assert document["items"][0]["id"] == "u1"

        analyzer = _RecordingAnalyzer()
        assert await session.analyze(analyzer) == "report"
        assert [item.id for item in analyzer.received] == ["u1"]
        await session.aclose()

    def test_snapshot_is_a_copy(self):
        session = TranscriptSession()
        session.handle_event({"type": "input_audio_buffer.speech_started", "item_id": "u1"})
        session.snapshot()[0].content.clear()

        assert session.items()[0].text == "..."

    @pytest.mark.asyncio
    async def test_async_context_manager_closes(self):
        stt = FakeSTTClient(transcript="x")
        async with TranscriptSession(_config(), stt_client=stt) as session:
            session.handle_event({"type": "session.created"})
        assert stt.closed is True
