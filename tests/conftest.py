import json
from typing import List, Optional

import pytest

from transcript_engine.core.call_status import CallStatusTracker
from transcript_engine.core.item_store import ItemStore
from transcript_engine.core.reducer import EventReducer
from transcript_engine.core.termination import CallTerminationDetector
from transcript_engine.services.base import SpeechToTextClient, TranscriptionError


class FakeResponse:
    def __init__(self, body: bytes = b"", status: int = 200, headers: Optional[dict] = None):
        self._body = body
        self.status = status
        self.headers = headers or {}

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def read(self):
        return self._body

    async def text(self):
        return self._body.decode("utf-8", errors="ignore")

    async def json(self):
        return json.loads(self._body.decode("utf-8"))


class FakeSession:
    """Stand-in for aiohttp.ClientSession; returns queued responses or raises queued errors."""

    def __init__(self, *responses):
        self._responses: List = list(responses)
        self.requests = []
        self.closed = False

    def _next(self):
        response = self._responses.pop(0) if self._responses else FakeResponse(b"", status=500)
        if isinstance(response, BaseException):
            raise response
        return response

    def post(self, url, json=None, data=None, headers=None, timeout=None):
        self.requests.append({"method": "POST", "url": url, "json": json, "data": data, "headers": headers})
        return self._next()

    def get(self, url, headers=None, timeout=None):
        self.requests.append({"method": "GET", "url": url, "headers": headers})
        return self._next()

    async def close(self):
        self.closed = True


class FakeSTTClient(SpeechToTextClient):
    def __init__(self, transcript: str = "", error: Optional[Exception] = None):
        self.transcript = transcript
        self.error = error
        self.calls = []
        self.closed = False

    async def transcribe(self, audio, *, filename="speech.webm", content_type="audio/webm"):
        self.calls.append({"audio": audio, "filename": filename, "content_type": content_type})
        if self.error is not None:
            raise self.error
        return self.transcript

    async def close(self):
        self.closed = True


@pytest.fixture
def store():
    return ItemStore()


@pytest.fixture
def tracker():
    return CallStatusTracker()


@pytest.fixture
def detector(tracker):
    return CallTerminationDetector(tracker, grace_period_sec=0.05)


@pytest.fixture
def reducer(store, tracker, detector):
    return EventReducer(store, tracker, detector)


@pytest.fixture
def failing_stt():
    return FakeSTTClient(error=TranscriptionError("boom", status=503))
