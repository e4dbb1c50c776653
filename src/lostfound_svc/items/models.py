"""Pydantic models for the item API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from .types import ItemType


class CreateItemBody(BaseModel):
    """Body for reporting a lost or found item."""
    title: str
    reported_by: str
    item_type: ItemType = ItemType.FOUND
    category: str = ""
    enterprise_id: str = ""
    organization_id: str = ""
    keywords: list[str] = Field(default_factory=list)
    estimated_value: float = 0.0


class ItemModel(BaseModel):
    item_id: str
    title: str = ""
    category: str = ""
    item_type: str
    status: str
    enterprise_id: str = ""
    organization_id: str = ""
    reported_by: str = ""
    keywords: list[str] = Field(default_factory=list)
    estimated_value: float = 0.0
    version: int = 0
    created_at: str | None = None
    updated_at: str | None = None


class ItemListResponse(BaseModel):
    items: list[ItemModel]
    total: int
