"""
Typed realtime events.

Every recognised wire `type` maps to one event class. `parse_event()` turns a
raw JSON object into exactly one of them: anything unrecognised becomes an
`UnknownEvent`, and a recognised event that lacks a required field raises
`MalformedEventError`.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Type, Union


class MalformedEventError(ValueError):
    """A recognised event kind is missing a required field or has a bad type."""

    def __init__(self, event_type: str, message: str):
        super().__init__(f"{event_type}: {message}")
        self.event_type = event_type


@dataclass(frozen=True)
class SessionCreated:
    TYPES = ("session.created",)
    session_id: Optional[str] = None


@dataclass(frozen=True)
class SpeechStarted:
    TYPES = ("input_audio_buffer.speech_started",)
    item_id: str


@dataclass(frozen=True)
class ItemCreated:
    """conversation.item.created; `item` is the protocol item object."""
    TYPES = ("conversation.item.created",)
    item: Dict[str, Any] = field(default_factory=dict)

    @property
    def item_type(self) -> Optional[str]:
        return self.item.get("type")


@dataclass(frozen=True)
class TranscriptionCompleted:
    TYPES = ("conversation.item.input_audio_transcription.completed",)
    item_id: str
    transcript: str
    audio_url: Optional[str] = None


@dataclass(frozen=True)
class ContentPartAdded:
    TYPES = ("response.content_part.added",)
    item_id: str
    output_index: int
    fragment: str
    part_type: str = "text"


@dataclass(frozen=True)
class TranscriptDelta:
    """Streamed assistant text: audio transcript deltas and text deltas."""
    TYPES = (
        "response.audio_transcript.delta",
        "response.output_audio_transcript.delta",
        "response.text.delta",
        "response.output_text.delta",
    )
    item_id: str
    output_index: int
    delta: str


@dataclass(frozen=True)
class TranscriptDone:
    """Authoritative final assistant text for a streamed item."""
    TYPES = (
        "response.audio_transcript.done",
        "response.output_audio_transcript.done",
        "response.text.done",
        "response.output_text.done",
    )
    item_id: str
    output_index: int
    text: str


@dataclass(frozen=True)
class OutputItemDone:
    TYPES = ("response.output_item.done",)
    item: Dict[str, Any] = field(default_factory=dict)

    @property
    def item_type(self) -> Optional[str]:
        return self.item.get("type")


@dataclass(frozen=True)
class CallEnded:
    TYPES = ("call.ended",)
    reason: str = "call.ended"


@dataclass(frozen=True)
class SessionDisconnected:
    TYPES = ("session.disconnected", "websocket.disconnected")
    reason: str = "session.disconnected"


@dataclass(frozen=True)
class UnknownEvent:
    type: Optional[str]
    payload: Dict[str, Any] = field(default_factory=dict)


RealtimeEvent = Union[
    SessionCreated,
    SpeechStarted,
    ItemCreated,
    TranscriptionCompleted,
    ContentPartAdded,
    TranscriptDelta,
    TranscriptDone,
    OutputItemDone,
    CallEnded,
    SessionDisconnected,
    UnknownEvent,
]

EVENT_CLASSES: Tuple[Type, ...] = (
    SessionCreated,
    SpeechStarted,
    ItemCreated,
    TranscriptionCompleted,
    ContentPartAdded,
    TranscriptDelta,
    TranscriptDone,
    OutputItemDone,
    CallEnded,
    SessionDisconnected,
)


def _require_str(raw: Mapping[str, Any], key: str, event_type: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedEventError(event_type, f"missing or invalid '{key}'")
    return value


def _optional_str(raw: Mapping[str, Any], key: str) -> Optional[str]:
    value = raw.get(key)
    return value if isinstance(value, str) and value else None


def _output_index(raw: Mapping[str, Any], event_type: str) -> int:
    value = raw.get("output_index", 0)
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedEventError(event_type, "invalid 'output_index'")
    return value


def _require_item(raw: Mapping[str, Any], event_type: str) -> Dict[str, Any]:
    item = raw.get("item")
    if not isinstance(item, dict):
        raise MalformedEventError(event_type, "missing 'item' object")
    return dict(item)


def _parse_session_created(raw, event_type):
    session = raw.get("session") if isinstance(raw.get("session"), dict) else {}
    return SessionCreated(session_id=session.get("id"))


def _parse_speech_started(raw, event_type):
    return SpeechStarted(item_id=_require_str(raw, "item_id", event_type))


def _parse_item_created(raw, event_type):
    return ItemCreated(item=_require_item(raw, event_type))


def _parse_transcription_completed(raw, event_type):
    transcript = raw.get("transcript")
    if transcript is None:
        transcript = ""
    if not isinstance(transcript, str):
        raise MalformedEventError(event_type, "invalid 'transcript'")
    return TranscriptionCompleted(
        item_id=_require_str(raw, "item_id", event_type),
        transcript=transcript,
        audio_url=_optional_str(raw, "audio_url"),
    )


def _parse_content_part_added(raw, event_type):
    part = raw.get("part")
    if not isinstance(part, dict):
        raise MalformedEventError(event_type, "missing 'part' object")
    fragment = part.get("text")
    if fragment is None:
        fragment = part.get("transcript")
    return ContentPartAdded(
        item_id=_require_str(raw, "item_id", event_type),
        output_index=_output_index(raw, event_type),
        fragment=fragment if isinstance(fragment, str) else "",
        part_type=str(part.get("type") or "text"),
    )


def _parse_transcript_delta(raw, event_type):
    delta = raw.get("delta")
    if isinstance(delta, dict):
        delta = delta.get("text") or delta.get("transcript")
    return TranscriptDelta(
        item_id=_require_str(raw, "item_id", event_type),
        output_index=_output_index(raw, event_type),
        delta=delta if isinstance(delta, str) else "",
    )


def _parse_transcript_done(raw, event_type):
    text = raw.get("transcript")
    if text is None:
        text = raw.get("text")
    if not isinstance(text, str):
        raise MalformedEventError(event_type, "missing final 'transcript' or 'text'")
    return TranscriptDone(
        item_id=_require_str(raw, "item_id", event_type),
        output_index=_output_index(raw, event_type),
        text=text,
    )


def _parse_output_item_done(raw, event_type):
    return OutputItemDone(item=_require_item(raw, event_type))


def _parse_call_ended(raw, event_type):
    return CallEnded(reason=str(raw.get("reason") or event_type))


def _parse_disconnected(raw, event_type):
    return SessionDisconnected(reason=str(raw.get("reason") or event_type))


_PARSERS = {}
for _cls, _parser in (
    (SessionCreated, _parse_session_created),
    (SpeechStarted, _parse_speech_started),
    (ItemCreated, _parse_item_created),
    (TranscriptionCompleted, _parse_transcription_completed),
    (ContentPartAdded, _parse_content_part_added),
    (TranscriptDelta, _parse_transcript_delta),
    (TranscriptDone, _parse_transcript_done),
    (OutputItemDone, _parse_output_item_done),
    (CallEnded, _parse_call_ended),
    (SessionDisconnected, _parse_disconnected),
):
    for _wire_type in _cls.TYPES:
        _PARSERS[_wire_type] = _parser


def parse_event(raw: Mapping[str, Any]) -> RealtimeEvent:
    """
    Parse a raw realtime event into its typed form.

    Args:
        raw: Decoded JSON object carrying at least a `type` field

    Returns:
        The typed event, or `UnknownEvent` for unrecognised kinds

    Raises:
        MalformedEventError: if a recognised kind lacks a required field
    """
    if not isinstance(raw, Mapping):
        raise MalformedEventError("<none>", f"event must be an object, got {type(raw).__name__}")
    event_type = raw.get("type")
    parser = _PARSERS.get(event_type) if isinstance(event_type, str) else None
    if parser is None:
        return UnknownEvent(type=event_type if isinstance(event_type, str) else None, payload=dict(raw))
    return parser(raw, event_type)
