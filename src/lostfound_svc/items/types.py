"""Item types - lost and found item records."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ItemType(str, Enum):
    """Whether the item was reported lost or found."""
    LOST = "LOST"
    FOUND = "FOUND"


class ItemStatus(str, Enum):
    """Status of an item record."""
    OPEN = "OPEN"
    PENDING_CLAIM = "PENDING_CLAIM"
    VERIFIED = "VERIFIED"
    CLAIMED = "CLAIMED"
    CANCELLED = "CANCELLED"


@dataclass(slots=True)
class Item:
    """
    A lost or found item held by an organization.

    keywords is a free-text tag list used as an ad hoc secondary index
    (terminal, TSA checkpoint, flight number, station...).
    """
    item_id: str
    title: str = ""
    category: str = ""
    item_type: ItemType = ItemType.FOUND
    status: ItemStatus = ItemStatus.OPEN

    # Custody
    enterprise_id: str = ""
    organization_id: str = ""
    reported_by: str = ""           # Reporter email

    keywords: list[str] = field(default_factory=list)
    estimated_value: float = 0.0

    # Optimistic concurrency counter, bumped on every committed update
    version: int = 0

    # Timestamps (ISO format)
    created_at: str | None = None
    updated_at: str | None = None
