"""Item persistence - YAML round-trip for item records."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from .registry import ItemRegistry
from .types import Item, ItemStatus, ItemType

logger = logging.getLogger(__name__)


def load_items_from_yaml(path: str | Path, registry: ItemRegistry) -> list[Item]:
    """
    Load items from a YAML file into the registry, keeping ids and versions.

    Expected format:
        items:
          - item_id: ITEM-00001
            title: Black wallet
            item_type: FOUND
            status: OPEN
            enterprise_id: NEU
            organization_id: NEU-CURRY
            keywords: [wallet, leather]
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"Items file not found: {path}")
        return []

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not data or "items" not in data:
        return []

    loaded = []
    for item_data in data["items"]:
        item = parse_item(item_data)
        registry.load(item)
        loaded.append(item)

    logger.info(f"Loaded {len(loaded)} items from {path}")
    return loaded


def save_items_to_yaml(path: str | Path, registry: ItemRegistry) -> int:
    """Save all items from the registry to a YAML file."""
    path = Path(path)
    items = sorted(registry.find_all(), key=lambda i: i.item_id)

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(
            {"items": [serialize_item(i) for i in items]},
            f, default_flow_style=False, allow_unicode=True, sort_keys=False,
        )

    logger.info(f"Saved {len(items)} items to {path}")
    return len(items)


def parse_item(data: dict[str, Any]) -> Item:
    return Item(
        item_id=str(data["item_id"]),
        title=data.get("title", ""),
        category=data.get("category", ""),
        item_type=ItemType(str(data.get("item_type", ItemType.FOUND.value)).upper()),
        status=ItemStatus(str(data.get("status", ItemStatus.OPEN.value)).upper()),
        enterprise_id=data.get("enterprise_id", ""),
        organization_id=data.get("organization_id", ""),
        reported_by=data.get("reported_by", ""),
        keywords=[str(k) for k in data.get("keywords") or []],
        estimated_value=float(data.get("estimated_value", 0.0)),
        version=int(data.get("version", 1)),
        created_at=data.get("created_at"),
        updated_at=data.get("updated_at"),
    )


def serialize_item(item: Item) -> dict[str, Any]:
    data: dict[str, Any] = {
        "item_id": item.item_id,
        "title": item.title,
        "category": item.category,
        "item_type": item.item_type.value,
        "status": item.status.value,
        "enterprise_id": item.enterprise_id,
        "organization_id": item.organization_id,
        "reported_by": item.reported_by,
        "keywords": list(item.keywords),
        "estimated_value": item.estimated_value,
        "version": item.version,
    }
    if item.created_at:
        data["created_at"] = item.created_at
    if item.updated_at:
        data["updated_at"] = item.updated_at
    return data
