"""
Ordered, id-keyed storage for transcript items.

The store is the only mutation path for items. Insertion order is creation
order: updating an item never moves it. Every read returns copies so callers
cannot corrupt stored state through an alias.
"""

import copy
import threading
from dataclasses import replace
from typing import Any, Dict, List, Optional

from ..logging_config import get_logger
from .models import ITEM_FIELDS, ContentPart, Item, ItemKind

logger = get_logger(__name__)


class ItemStore:
    """In-memory transcript item store for one session."""

    def __init__(self):
        self._items: Dict[str, Item] = {}
        # upsert/append are read-modify-write; serialize them for threaded hosts
        self._lock = threading.RLock()
        self._generation = 0

    @property
    def generation(self) -> int:
        """Incremented on every clear(); async writers compare against it."""
        return self._generation

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        with self._lock:
            return item_id in self._items

    def get(self, item_id: str) -> Optional[Item]:
        with self._lock:
            item = self._items.get(item_id)
            return copy.deepcopy(item) if item else None

    def upsert(self, item_id: str, **patch: Any) -> Item:
        """
        Create the item if absent, otherwise shallow-merge `patch` onto it.

        The original timestamp is preserved unless `patch` supplies one.

        Raises:
            TypeError: if `patch` names a field Item does not have
        """
        self._check_fields(patch)
        patch.pop("id", None)
        with self._lock:
            existing = self._items.get(item_id)
            if existing is None:
                item = Item(id=item_id, **self._copy_patch(patch))
                logger.debug("Item created", item_id=item_id, kind=item.kind.value)
            else:
                item = replace(existing, **self._copy_patch(patch))
            self._items[item_id] = item
            return copy.deepcopy(item)

    def append_content(self, item_id: str, fragment: str, **fallback_init: Any) -> Item:
        """
        Append a text fragment to the item's content.

        When the item does not exist yet it is created from `fallback_init`
        with the fragment as its only content part.
        """
        self._check_fields(fallback_init)
        fallback_init.pop("id", None)
        fallback_init.pop("content", None)
        with self._lock:
            existing = self._items.get(item_id)
            if existing is None:
                item = Item(id=item_id, content=[ContentPart(text=fragment)], **self._copy_patch(fallback_init))
                logger.debug("Item created from streamed fragment", item_id=item_id)
            else:
                item = replace(existing, content=existing.content + [ContentPart(text=fragment)])
            self._items[item_id] = item
            return copy.deepcopy(item)

    def find_by_call_id(self, call_id: str, kind: ItemKind) -> Optional[Item]:
        """Return the first item of `kind` correlated with `call_id`."""
        if not call_id:
            return None
        with self._lock:
            for item in self._items.values():
                if item.call_id == call_id and item.kind == kind:
                    return copy.deepcopy(item)
        return None

    def annotate(self, item_id: str, note: str) -> Optional[Item]:
        """Attach an advisory note to an existing item (once)."""
        with self._lock:
            existing = self._items.get(item_id)
            if existing is None:
                return None
            if note not in existing.annotations:
                existing = replace(existing, annotations=existing.annotations + [note])
                self._items[item_id] = existing
            return copy.deepcopy(existing)

    def clear(self) -> int:
        """Drop every item and start a new generation. Returns the number dropped."""
        with self._lock:
            dropped = len(self._items)
            self._items = {}
            self._generation += 1
        logger.info("Item store cleared", dropped=dropped, generation=self._generation)
        return dropped

    def snapshot(self) -> List[Item]:
        """Current items in creation order, as independent copies."""
        with self._lock:
            return copy.deepcopy(list(self._items.values()))

    @staticmethod
    def _check_fields(patch: Dict[str, Any]) -> None:
        unknown = set(patch) - ITEM_FIELDS
        if unknown:
            raise TypeError(f"Unknown item field(s): {', '.join(sorted(unknown))}")

    @staticmethod
    def _copy_patch(patch: Dict[str, Any]) -> Dict[str, Any]:
        copied = {}
        for key, value in patch.items():
            if key == "timestamp" and value is None:
                continue
            copied[key] = copy.deepcopy(value) if isinstance(value, (list, dict)) else value
        return copied
