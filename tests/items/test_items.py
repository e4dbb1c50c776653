"""Tests for the versioned item registry."""

import pytest

from lostfound_svc.errors import AlreadyAdvancedError, NotFoundError
from lostfound_svc.items.loader import load_items_from_yaml, save_items_to_yaml
from lostfound_svc.items.registry import ItemRegistry
from lostfound_svc.items.types import Item, ItemStatus, ItemType


@pytest.fixture
def registry():
    reg = ItemRegistry()
    reg.create(Item(item_id="", title="Umbrella", reported_by="a@a.edu", keywords=["Terminal B", "blue"]))
    reg.create(Item(item_id="", title="Laptop", item_type=ItemType.LOST, reported_by="b@b.edu", keywords=["laptop"]))
    return reg


class TestItemRegistry:
    """Create, find and versioned update."""

    def test_create_assigns_ids_and_version(self, registry):
        item = registry.find_by_id("ITEM-00001")
        assert item.title == "Umbrella"
        assert item.version == 1
        assert item.created_at is not None

    def test_find_by_user_and_keyword(self, registry):
        assert [i.title for i in registry.find_by_user("b@b.edu")] == ["Laptop"]
        assert [i.title for i in registry.find_by_keyword("terminal b")] == ["Umbrella"]
        assert registry.find_by_keyword("wallet") == []
        assert len(registry.find_all()) == 2

    def test_update_bumps_version(self, registry):
        item = registry.find_by_id("ITEM-00001")
        item.status = ItemStatus.VERIFIED

        updated = registry.update(item)

        assert updated.version == 2
        assert registry.find_by_id("ITEM-00001").status == ItemStatus.VERIFIED

    def test_stale_update_is_refused(self, registry):
        """Two panels editing the same item: the second save fails."""
        first = registry.find_by_id("ITEM-00001")
        second = registry.find_by_id("ITEM-00001")

        first.title = "Blue umbrella"
        registry.update(first)

        second.title = "Umbrella (broken)"
        with pytest.raises(AlreadyAdvancedError):
            registry.update(second)
        assert registry.find_by_id("ITEM-00001").title == "Blue umbrella"

    def test_reads_are_copies(self, registry):
        item = registry.find_by_id("ITEM-00001")
        item.keywords.append("mutated")
        assert "mutated" not in registry.find_by_id("ITEM-00001").keywords

    def test_update_unknown_item(self, registry):
        with pytest.raises(NotFoundError):
            registry.update(Item(item_id="ITEM-99999", version=1))


ITEMS_YAML = """
items:
  - item_id: ITEM-00007
    title: Blue backpack
    item_type: found
    status: PENDING_CLAIM
    enterprise_id: LOGAN
    organization_id: LOGAN-TERMINAL-B
    keywords: [backpack, Terminal B]
    estimated_value: 60
    version: 4
"""


class TestItemLoader:
    """Items persisted to and restored from YAML."""

    def test_load_keeps_ids_and_versions(self, tmp_path):
        path = tmp_path / "items.yaml"
        path.write_text(ITEMS_YAML)
        registry = ItemRegistry()

        [loaded] = load_items_from_yaml(path, registry)

        assert loaded.item_type == ItemType.FOUND
        stored = registry.find_by_id("ITEM-00007")
        assert stored.status == ItemStatus.PENDING_CLAIM
        assert stored.version == 4
        assert registry.find_by_keyword("terminal b")[0].item_id == "ITEM-00007"

    def test_new_ids_follow_restored_ones(self, tmp_path):
        path = tmp_path / "items.yaml"
        path.write_text(ITEMS_YAML)
        registry = ItemRegistry()
        load_items_from_yaml(path, registry)

        created = registry.create(Item(item_id="", title="Scarf"))

        assert created.item_id == "ITEM-00008"

    def test_save_then_load(self, registry, tmp_path):
        item = registry.find_by_id("ITEM-00002")
        item.status = ItemStatus.CLAIMED
        registry.update(item)

        path = tmp_path / "items.yaml"
        assert save_items_to_yaml(path, registry) == 2

        restored = ItemRegistry()
        load_items_from_yaml(path, restored)
        assert restored.find_by_id("ITEM-00002") == registry.find_by_id("ITEM-00002")
        assert len(restored) == 2

    def test_missing_file_loads_nothing(self, tmp_path):
        assert load_items_from_yaml(tmp_path / "absent.yaml", ItemRegistry()) == []
