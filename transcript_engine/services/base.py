"""
Collaborator contracts.

The core only needs a transcript string back from speech-to-text and a
report string back from analysis; concrete clients implement these.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from ..core.models import Item


class CollaboratorError(RuntimeError):
    """An external service call failed (network error or non-success response)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class TranscriptionError(CollaboratorError):
    pass


class AnalysisError(CollaboratorError):
    pass


class SpeechToTextClient(ABC):
    """Turns an audio payload into a transcript."""

    @abstractmethod
    async def transcribe(
        self,
        audio: bytes,
        *,
        filename: str = "speech.webm",
        content_type: str = "audio/webm",
    ) -> str:
        """
        Raises:
            TranscriptionError: on network failure or a non-success response
        """

    async def close(self) -> None:
        return


class AnalysisClient(ABC):
    """Turns a finalized transcript into a natural-language report."""

    @abstractmethod
    async def analyze(self, items: Sequence[Item]) -> str:
        ...

    async def close(self) -> None:
        return
