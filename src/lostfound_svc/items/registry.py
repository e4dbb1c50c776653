"""Item registry - thread-safe, versioned in-memory store for item records."""

from __future__ import annotations

import copy
import logging
import threading
from datetime import datetime, timezone

from ..errors import AlreadyAdvancedError, NotFoundError
from .types import Item

logger = logging.getLogger(__name__)


class ItemRegistry:
    """
    Thread-safe registry of lost and found items.

    Updates are compare-and-set on Item.version: two panels editing the same
    item cannot silently overwrite each other.
    """

    def __init__(self) -> None:
        self._items: dict[str, Item] = {}
        self._lock = threading.RLock()
        self._counter = 0

    def _next_id(self) -> str:
        self._counter += 1
        return f"ITEM-{self._counter:05d}"

    def create(self, item: Item) -> Item:
        """Store a new item, assigning an id when missing."""
        with self._lock:
            if not item.item_id:
                item.item_id = self._next_id()
            now = datetime.now(timezone.utc).isoformat()
            stored = copy.deepcopy(item)
            stored.version = 1
            stored.created_at = stored.created_at or now
            stored.updated_at = now
            self._items[stored.item_id] = stored
            logger.info(f"Item created: {stored.item_id} ({stored.item_type.value} '{stored.title}')")
            return copy.deepcopy(stored)

    def load(self, item: Item) -> None:
        """Restore a persisted item as-is, keeping id generation ahead of it."""
        with self._lock:
            self._items[item.item_id] = copy.deepcopy(item)
            prefix, _, number = item.item_id.rpartition("-")
            if prefix == "ITEM" and number.isdigit():
                self._counter = max(self._counter, int(number))

    def update(self, item: Item) -> Item:
        """
        Commit an edited copy of an item.

        The copy must carry the version it was read at.

        Raises:
            NotFoundError: If the item is unknown
            AlreadyAdvancedError: If the item changed since it was read
        """
        with self._lock:
            current = self._items.get(item.item_id)
            if current is None:
                raise NotFoundError(f"Item not found: {item.item_id}")
            if current.version != item.version:
                raise AlreadyAdvancedError(
                    f"Item {item.item_id} was modified concurrently",
                    expected_version=item.version,
                    actual_version=current.version,
                )
            stored = copy.deepcopy(item)
            stored.version = current.version + 1
            stored.created_at = current.created_at
            stored.updated_at = datetime.now(timezone.utc).isoformat()
            self._items[stored.item_id] = stored
            return copy.deepcopy(stored)

    def find_by_id(self, item_id: str) -> Item | None:
        with self._lock:
            item = self._items.get(item_id)
            return copy.deepcopy(item) if item is not None else None

    def find_all(self) -> list[Item]:
        with self._lock:
            return [copy.deepcopy(i) for i in self._items.values()]

    def find_by_user(self, email: str) -> list[Item]:
        """Get all items reported by a user."""
        with self._lock:
            return [copy.deepcopy(i) for i in self._items.values() if i.reported_by == email]

    def find_by_keyword(self, keyword: str) -> list[Item]:
        """Get items tagged with a keyword (case-insensitive)."""
        needle = keyword.lower()
        with self._lock:
            return [
                copy.deepcopy(i) for i in self._items.values()
                if any(k.lower() == needle for k in i.keywords)
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
            self._counter = 0
