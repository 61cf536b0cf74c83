"""
Core data models for the transcript engine.

Items are the unit of transcript content. They are created on the first
event that references their id and mutated in place by later events.
"""

import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ItemKind(str, Enum):
    MESSAGE = "message"
    FUNCTION_CALL = "function_call"
    FUNCTION_CALL_OUTPUT = "function_call_output"


class ItemRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    SYSTEM = "system"


class ItemStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"


class CallStatus(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    ENDED = "ended"


# Advisory annotations surfaced to the UI
NOTE_NON_DEFAULT_LANGUAGE = "non_default_language"
NOTE_TARGET_LOCALE = "target_locale"
NOTE_FALLBACK_TRANSCRIPTION = "fallback_transcription"
NOTE_FALLBACK_FAILED = "fallback_transcription_failed"
NOTE_MALFORMED_ARGUMENTS = "malformed_arguments"


@dataclass
class ContentPart:
    """A single streamed or final text fragment."""
    text: str
    type: str = "text"


@dataclass
class Item:
    """Transcript entry: a message, a function call, or a function call output."""

    id: str
    kind: ItemKind = ItemKind.MESSAGE
    role: Optional[ItemRole] = None
    content: List[ContentPart] = field(default_factory=list)
    status: ItemStatus = ItemStatus.RUNNING
    call_id: Optional[str] = None

    # Raw function-call payload, kept visible when formatting fails
    name: Optional[str] = None
    arguments: Optional[str] = None
    output: Optional[str] = None

    timestamp: datetime = field(default_factory=datetime.now)
    annotations: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.content)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "id": self.id,
            "type": self.kind.value,
            "role": self.role.value if self.role else None,
            "content": [{"type": part.type, "text": part.text} for part in self.content],
            "status": self.status.value,
            "call_id": self.call_id,
            "name": self.name,
            "arguments": self.arguments,
            "output": self.output,
            "timestamp": self.timestamp.isoformat(),
            "annotations": list(self.annotations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Item":
        """Create an Item from `to_dict()` output or a realtime protocol item."""
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            try:
                timestamp = datetime.fromisoformat(timestamp)
            except ValueError:
                timestamp = None
        if not isinstance(timestamp, datetime):
            timestamp = datetime.now()

        role = data.get("role")
        content = [
            ContentPart(text=str(part.get("text") or part.get("transcript") or ""), type=part.get("type") or "text")
            for part in (data.get("content") or [])
            if isinstance(part, dict)
        ]
        return cls(
            id=str(data.get("id") or new_local_id()),
            kind=ItemKind(data.get("type") or data.get("kind") or ItemKind.MESSAGE.value),
            role=ItemRole(role) if role else None,
            content=content,
            status=ItemStatus(data.get("status") or ItemStatus.COMPLETED.value),
            call_id=data.get("call_id"),
            name=data.get("name"),
            arguments=data.get("arguments"),
            output=data.get("output"),
            timestamp=timestamp,
            annotations=list(data.get("annotations") or []),
        )


ITEM_FIELDS = frozenset(f.name for f in fields(Item))


def new_local_id() -> str:
    return f"local-{uuid.uuid4().hex[:12]}"


def text_content(text: str) -> List[ContentPart]:
    return [ContentPart(text=text)]
