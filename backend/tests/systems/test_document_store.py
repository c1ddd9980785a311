"""
System tests for the document stores.

Every test runs against both InMemoryDocumentStore and SqlDocumentStore.
"""

import pytest

from crawler.store import (DocumentNotFoundError, InvalidFilterError,
                           matches_filters, merge_partial)

# ============================================================================
# CRUD Tests
# ============================================================================


@pytest.mark.systems
async def test_get_missing_returns_none(any_store):
    assert await any_store.get("rooms", "nowhere") is None


@pytest.mark.systems
async def test_set_then_get(any_store):
    await any_store.set("rooms", "plaza", {"room_id": "plaza", "items": ["pipe"]})

    doc = await any_store.get("rooms", "plaza")
    assert doc == {"room_id": "plaza", "items": ["pipe"]}


@pytest.mark.systems
async def test_set_overwrites_fully(any_store):
    await any_store.set("rooms", "plaza", {"a": 1, "b": 2})
    await any_store.set("rooms", "plaza", {"a": 3})

    assert await any_store.get("rooms", "plaza") == {"a": 3}


@pytest.mark.systems
async def test_returned_documents_are_copies(any_store):
    source = {"items": ["pipe"]}
    await any_store.set("rooms", "plaza", source)
    source["items"].append("bandage")

    doc = await any_store.get("rooms", "plaza")
    doc["items"].append("rock")

    assert await any_store.get("rooms", "plaza") == {"items": ["pipe"]}


@pytest.mark.systems
async def test_update_merges_fields(any_store):
    await any_store.set("players", "p1", {"hp": 10, "stats": {"strength": 10, "dexterity": 10}})

    merged = await any_store.update("players", "p1", {"hp": 7, "stats.strength": 12})

    assert merged == {"hp": 7, "stats": {"strength": 12, "dexterity": 10}}
    assert await any_store.get("players", "p1") == merged


@pytest.mark.systems
async def test_update_missing_document_raises(any_store):
    with pytest.raises(DocumentNotFoundError) as exc_info:
        await any_store.update("players", "ghost", {"hp": 1})
    assert exc_info.value.doc_id == "ghost"


@pytest.mark.systems
async def test_delete(any_store):
    await any_store.set("items", "rock", {"name": "Rock"})
    await any_store.delete("items", "rock")
    await any_store.delete("items", "rock")

    assert await any_store.get("items", "rock") is None


@pytest.mark.systems
async def test_collections_are_separate(any_store):
    await any_store.set("rooms", "x", {"kind": "room"})
    await any_store.set("items", "x", {"kind": "item"})

    assert (await any_store.get("rooms", "x"))["kind"] == "room"
    assert (await any_store.get("items", "x"))["kind"] == "item"


# ============================================================================
# Query Tests
# ============================================================================


@pytest.fixture
async def catalogue(any_store):
    await any_store.set("items", "pipe", {"item_id": "pipe", "type": "weapon", "tier": "iron", "rarity": 0.3})
    await any_store.set("items", "potion", {"item_id": "potion", "type": "consumable", "tier": "bronze"})
    await any_store.set("items", "ledger", {"item_id": "ledger", "type": "misc", "is_custom": True,
                                            "tags": ["quest", "paper"]})
    return any_store


@pytest.mark.systems
async def test_query_without_filters_returns_all_in_id_order(catalogue):
    docs = await catalogue.query("items")
    assert [d["item_id"] for d in docs] == ["ledger", "pipe", "potion"]


@pytest.mark.systems
@pytest.mark.parametrize(
    "filters,expected",
    [
        ([("type", "==", "weapon")], ["pipe"]),
        ([("type", "!=", "weapon")], ["ledger", "potion"]),
        ([("rarity", ">", 0.1)], ["pipe"]),
        ([("rarity", "<=", 0.1)], []),
        ([("tier", "in", ["bronze", "gold"])], ["potion"]),
        ([("tier", "not-in", ["bronze"])], ["pipe"]),
        ([("tags", "array-contains", "quest")], ["ledger"]),
        ([("type", "!=", "misc"), ("tier", "==", "iron")], ["pipe"]),
    ],
)
async def test_query_filters(catalogue, filters, expected):
    docs = await catalogue.query("items", filters)
    assert [d["item_id"] for d in docs] == expected


@pytest.mark.systems
async def test_query_unknown_operator(catalogue):
    with pytest.raises(InvalidFilterError):
        await catalogue.query("items", [("type", "~=", "weapon")])


# ============================================================================
# Helper Tests
# ============================================================================


@pytest.mark.unit
def test_matches_filters_nested_and_type_mismatch():
    doc = {"stats": {"attack": 3}, "name": "Pipe"}

    assert matches_filters(doc, [("stats.attack", ">=", 3)])
    assert not matches_filters(doc, [("stats.defense", ">=", 0)])
    assert not matches_filters(doc, [("name", ">", 5)])


@pytest.mark.unit
def test_merge_partial_creates_nested_maps():
    merged = merge_partial({"a": 1}, {"statistics.entities_killed": 2})
    assert merged == {"a": 1, "statistics": {"entities_killed": 2}}
