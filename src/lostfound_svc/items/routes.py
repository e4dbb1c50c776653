"""FastAPI routes for item records."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from .loader import save_items_to_yaml, serialize_item
from .models import CreateItemBody, ItemListResponse, ItemModel
from .registry import ItemRegistry
from .types import Item

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/items", tags=["Items"])

# Configuration - set during app startup
_registry: ItemRegistry | None = None
_yaml_path: str | None = None


def configure(registry: ItemRegistry, yaml_path: str | None = None) -> None:
    """Configure the item routes with a registry."""
    global _registry, _yaml_path
    _registry = registry
    _yaml_path = yaml_path


def _get_registry() -> ItemRegistry:
    if _registry is None:
        raise HTTPException(status_code=503, detail="Item module not initialized")
    return _registry


def _auto_save() -> None:
    if _yaml_path and _registry is not None:
        try:
            save_items_to_yaml(_yaml_path, _registry)
        except OSError as e:
            logger.error(f"Auto-save of items failed: {e}")


def _item_to_model(item: Item) -> ItemModel:
    return ItemModel(**serialize_item(item))


@router.get("", response_model=ItemListResponse)
async def list_items(reported_by: str | None = None, keyword: str | None = None):
    """List items, optionally only one reporter's or those tagged with a keyword."""
    registry = _get_registry()

    if reported_by:
        items = registry.find_by_user(reported_by)
    elif keyword:
        items = registry.find_by_keyword(keyword)
    else:
        items = registry.find_all()

    items.sort(key=lambda i: i.item_id)
    return ItemListResponse(items=[_item_to_model(i) for i in items], total=len(items))


@router.post("", response_model=ItemModel, status_code=201)
async def create_item(body: CreateItemBody):
    registry = _get_registry()
    item = registry.create(Item(
        item_id="",
        title=body.title,
        category=body.category,
        item_type=body.item_type,
        enterprise_id=body.enterprise_id,
        organization_id=body.organization_id,
        reported_by=body.reported_by,
        keywords=list(body.keywords),
        estimated_value=body.estimated_value,
    ))
    _auto_save()
    return _item_to_model(item)


@router.get("/{item_id}", response_model=ItemModel)
async def get_item(item_id: str):
    registry = _get_registry()
    item = registry.find_by_id(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail=f"Item not found: {item_id}")
    return _item_to_model(item)
