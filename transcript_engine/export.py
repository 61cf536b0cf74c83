"""
Transcript exporters.

Read-only consumers of `ItemStore.snapshot()`: plain text for download,
JSON for storage, and the dated file names used for both.
"""

import json
import os
from datetime import date
from typing import Iterable, List, Optional

from .core.models import Item, ItemRole
from .logging_config import get_logger

logger = get_logger(__name__)

TRANSCRIPT_PREFIX = "call-transcript"
ANALYSIS_PREFIX = "call-analysis"

_ROLE_NAMES = {
    ItemRole.USER: "Caller",
    ItemRole.ASSISTANT: "Assistant",
    ItemRole.TOOL: "Tool",
}


def role_name(item: Item) -> str:
    """Display label; roles without a fixed label are shown capitalized."""
    if item.role is None:
        return "Assistant"
    return _ROLE_NAMES.get(item.role) or item.role.value.capitalize()


def format_transcript_text(items: Iterable[Item], *, time_format: str = "%H:%M:%S") -> str:
    """
    Format items as `Role (time): text` blocks separated by a blank line.

    Messages, function calls and function call outputs are all included.
    """
    blocks = []
    for item in items:
        stamp = item.timestamp.strftime(time_format) if item.timestamp else ""
        blocks.append(f"{role_name(item)} ({stamp}): {item.text}")
    return "\n\n".join(blocks)


def export_json(items: Iterable[Item], *, call_status: Optional[str] = None, indent: Optional[int] = 2) -> str:
    """Serialize items (and optionally the call status) to a JSON document."""
    document = {"items": [item.to_dict() for item in items]}
    if call_status is not None:
        document["call_status"] = call_status
    return json.dumps(document, indent=indent, ensure_ascii=False)


def transcript_filename(prefix: str = TRANSCRIPT_PREFIX, ext: str = "txt", day: Optional[date] = None) -> str:
    """Download name such as `call-transcript-2025-03-14.txt`."""
    day = day or date.today()
    return f"{prefix}-{day.isoformat()}.{ext.lstrip('.')}"


def write_transcript_text(items: List[Item], directory: str, day: Optional[date] = None) -> str:
    """Write the text export into `directory` and return the file path."""
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, transcript_filename(TRANSCRIPT_PREFIX, "txt", day))
    with open(path, "w", encoding="utf-8") as f:
        f.write(format_transcript_text(items))
    logger.info("Transcript exported", path=path, items=len(items))
    return path
