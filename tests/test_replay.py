import io
import json

import pytest

from transcript_engine.config import AppConfig
from transcript_engine.core.models import CallStatus
from transcript_engine.replay import iter_events, main, replay

EVENTS = [
    {"type": "session.created"},
    {"type": "input_audio_buffer.speech_started", "item_id": "1"},
    {"type": "conversation.item.created",
     "item": {"id": "1", "type": "message", "role": "user", "content": [{"type": "text", "text": "hello"}]}},
    {"type": "response.audio_transcript.delta", "item_id": "2", "delta": "Thank you for calling, "},
    {"type": "response.audio_transcript.delta", "item_id": "2", "delta": "have a great day"},
    {"type": "response.audio_transcript.done", "item_id": "2",
     "transcript": "Thank you for calling, have a great day"},
]


def _capture():
    return io.StringIO("\n".join(json.dumps(event) for event in EVENTS) + "\n\n{broken\n")


class TestIterEvents:

    def test_skips_blank_and_broken_lines(self):
        assert list(iter_events(_capture())) == EVENTS


class TestReplay:

    @pytest.mark.asyncio
    async def test_replay_builds_transcript_and_ends_call(self):
        session = await replay(_capture(), AppConfig(), grace_period_sec=0.01)

        assert [item.text for item in session.items()] == ["hello", "Thank you for calling, have a great day"]
        assert session.status == CallStatus.ENDED
        await session.aclose()

    @pytest.mark.asyncio
    async def test_main_prints_transcript(self, tmp_path, capsys, monkeypatch):
        monkeypatch.delenv("TRANSCRIPT_ENGINE_CONFIG", raising=False)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        events_file = tmp_path / "events.jsonl"
        events_file.write_text(_capture().getvalue(), encoding="utf-8")
        config_file = tmp_path / "engine.yaml"
        config_file.write_text("logging:\n  level: error\n")

        exit_code = await main([str(events_file), "--config", str(config_file), "--grace-period", "0.01"])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "Caller (" in out
        assert "Call status: ended" in out
