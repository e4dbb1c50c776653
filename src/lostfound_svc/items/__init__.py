"""Lost and found item records and their versioned store."""

from .types import Item, ItemStatus, ItemType
from .registry import ItemRegistry
from .loader import load_items_from_yaml, save_items_to_yaml

__all__ = [
    "Item",
    "ItemStatus",
    "ItemType",
    "ItemRegistry",
    "load_items_from_yaml",
    "save_items_to_yaml",
]
