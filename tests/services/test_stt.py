import asyncio
import json

import aiohttp
import pytest

from conftest import FakeResponse, FakeSession
from transcript_engine.config import SpeechToTextConfig
from transcript_engine.services.base import TranscriptionError
from transcript_engine.services.stt import OpenAITranscriptionClient


def _client(*responses, **config):
    config.setdefault("api_key", "sk-test")
    session = FakeSession(*responses)
    client = OpenAITranscriptionClient(SpeechToTextConfig(**config), session_factory=lambda: session)
    return client, session


def _form_fields(form: aiohttp.FormData):
    return {field[0]["name"]: field[2] for field in form._fields}


class TestOpenAITranscriptionClient:

    @pytest.mark.asyncio
    async def test_text_response(self):
        client, session = _client(FakeResponse(b"  namaste, I need help \n"), organization="org-1")

        transcript = await client.transcribe(b"audio-bytes", filename="speech.webm", content_type="audio/webm")

        assert transcript == "namaste, I need help"
        request = session.requests[0]
        assert request["url"] == "https://api.openai.com/v1/audio/transcriptions"
        assert request["headers"]["Authorization"] == "Bearer sk-test"
        assert request["headers"]["OpenAI-Organization"] == "org-1"
        fields = _form_fields(request["data"])
        assert fields["model"] == "whisper-1"
        assert fields["response_format"] == "text"
        assert fields["file"] == b"audio-bytes"
        assert "language" not in fields

    @pytest.mark.asyncio
    async def test_json_response(self):
        body = json.dumps({"text": " hello "}).encode("utf-8")
        client, session = _client(FakeResponse(body), response_format="json", language="hi", prompt="names: Ravi")

        assert await client.transcribe(b"audio") == "hello"
        fields = _form_fields(session.requests[0]["data"])
        assert fields["language"] == "hi"
        assert fields["prompt"] == "names: Ravi"

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        client, _ = _client(FakeResponse(b'{"error": "bad key"}', status=401))

        with pytest.raises(TranscriptionError) as exc_info:
            await client.transcribe(b"audio")

        assert exc_info.value.status == 401

    @pytest.mark.asyncio
    async def test_connection_error_raises(self):
        client, _ = _client(aiohttp.ClientConnectionError("refused"))

        with pytest.raises(TranscriptionError):
            await client.transcribe(b"audio")

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        client, _ = _client(asyncio.TimeoutError())

        with pytest.raises(TranscriptionError):
            await client.transcribe(b"audio")

    @pytest.mark.asyncio
    async def test_missing_key_or_audio(self):
        client, session = _client(api_key=None)

        with pytest.raises(TranscriptionError):
            await client.transcribe(b"audio")
        with pytest.raises(TranscriptionError):
            await client.transcribe(b"")
        assert session.requests == []

    @pytest.mark.asyncio
    async def test_close(self):
        client, session = _client(FakeResponse(b"ok"))
        await client.transcribe(b"audio")
        await client.close()

        assert session.closed is True
