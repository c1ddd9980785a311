# backend/crawler/engine/repository.py
"""
WorldRepository - typed access to the shared world documents.

Rooms, entities, items and loot tables are externally owned; handlers load
them at call time, mutate the returned dataclass and write it back. Nothing
is cached between calls.
"""
from __future__ import annotations
from typing import List

from ..store import ENTITIES, ITEMS, LOOT_TABLES, ROOMS, DocumentStore
from .world import (EntityId, ItemId, ItemInstance, LootTable, LootTableId,
                    RoomId, WorldEntity, WorldRoom)


class WorldRepository:
    """Narrow get/save facade over the document store for world state."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    # ----- Rooms -----

    async def get_room(self, room_id: RoomId | None) -> WorldRoom | None:
        if not room_id:
            return None
        doc = await self.store.get(ROOMS, room_id)
        if doc is None:
            return None
        doc.setdefault("room_id", room_id)
        return WorldRoom.from_doc(doc)

    async def save_room(self, room: WorldRoom) -> None:
        await self.store.set(ROOMS, room.room_id, room.to_doc())

    # ----- Entities -----

    async def get_entity(self, entity_id: EntityId) -> WorldEntity | None:
        doc = await self.store.get(ENTITIES, entity_id)
        if doc is None:
            return None
        doc.setdefault("entity_id", entity_id)
        return WorldEntity.from_doc(doc)

    async def get_entities(self, entity_ids: List[EntityId]) -> List[WorldEntity]:
        """Resolve ids in order, skipping any that no longer exist."""
        entities: List[WorldEntity] = []
        for entity_id in entity_ids:
            entity = await self.get_entity(entity_id)
            if entity is not None:
                entities.append(entity)
        return entities

    async def save_entity(self, entity: WorldEntity) -> None:
        await self.store.set(ENTITIES, entity.entity_id, entity.to_doc())

    # ----- Items -----

    async def get_item(self, item_id: ItemId | None) -> ItemInstance | None:
        """A fresh copy of the catalogue item."""
        if not item_id:
            return None
        doc = await self.store.get(ITEMS, item_id)
        if doc is None:
            return None
        doc.setdefault("item_id", item_id)
        return ItemInstance.from_doc(doc)

    async def get_items(self, item_ids: List[ItemId]) -> List[ItemInstance]:
        items: List[ItemInstance] = []
        for item_id in item_ids:
            item = await self.get_item(item_id)
            if item is not None:
                items.append(item)
        return items

    async def list_spawnable_items(self) -> List[ItemInstance]:
        """Catalogue items that may appear on the floor at random."""
        docs = await self.store.query(ITEMS)
        return [ItemInstance.from_doc(d) for d in docs if not d.get("is_custom")]

    # ----- Loot tables -----

    async def get_loot_table(self, table_id: LootTableId | None) -> LootTable | None:
        if not table_id:
            return None
        doc = await self.store.get(LOOT_TABLES, table_id)
        if doc is None:
            return None
        doc.setdefault("table_id", table_id)
        return LootTable.from_doc(doc)
