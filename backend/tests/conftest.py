"""
Global pytest configuration and shared fixtures.

Provides common test infrastructure for all test suites including:
- Scripted random source for deterministic rolls
- In-memory and SQL-backed document stores
- Room/entity/item/loot table/player factories writing into the store
- ActionEngine wired to the scripted random source
"""

import random
import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

# Add backend to path
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

from crawler.db import init_db, make_session_factory  # noqa: E402
from crawler.engine.engine import ActionEngine  # noqa: E402
from crawler.engine.player_state import PlayerStateStore  # noqa: E402
from crawler.engine.systems import rules  # noqa: E402
from crawler.engine.world import (ItemInstance, LootTable, WorldEntity,  # noqa: E402
                                  WorldPlayer, WorldRoom)
from crawler.store import (ENTITIES, ITEMS, LOOT_TABLES, PLAYERS,  # noqa: E402
                           ROOMS, InMemoryDocumentStore, SqlDocumentStore)

# ============================================================================
# Random Source
# ============================================================================


class ScriptedRandom(random.Random):
    """
    random.Random whose ``random()`` returns queued values in order.

    Every rule draws through ``random()``, so queuing one value per expected
    draw pins a whole turn. Running out of values fails the test loudly.
    """

    def __init__(self, *values: float) -> None:
        super().__init__(0)
        self.values: List[float] = list(values)
        self.draws = 0

    def push(self, *values: float) -> "ScriptedRandom":
        self.values.extend(values)
        return self

    def random(self) -> float:
        if not self.values:
            raise AssertionError(f"Unexpected random draw #{self.draws + 1}")
        self.draws += 1
        return self.values.pop(0)

    @property
    def remaining(self) -> int:
        return len(self.values)


@pytest.fixture
def scripted_rng() -> ScriptedRandom:
    """Empty scripted random source; tests push the draws they expect."""
    return ScriptedRandom()


# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture
def store() -> InMemoryDocumentStore:
    """Fresh in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
async def sql_engine():
    """In-memory SQLite engine with the documents table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,  # Use StaticPool to share single connection
        echo=False,
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sql_store(sql_engine) -> SqlDocumentStore:
    return SqlDocumentStore(make_session_factory(sql_engine))


# ============================================================================
# World Factories
# ============================================================================


@pytest.fixture
def room_factory(store):
    """Create a room document in the store and return its dataclass."""

    async def _create(
        room_id: str = "plaza",
        *,
        hazard_level: int = 0,
        connections: Dict[str, str] | None = None,
        entities: List[str] | None = None,
        items: List[str] | None = None,
        zone_type: str = "test",
        description: str = "A test room",
    ) -> WorldRoom:
        doc = {
            "room_id": room_id,
            "zone_type": zone_type,
            "description": description,
            "hazard_level": hazard_level,
            "connections": connections or {},
            "entities": entities or [],
            "items": items or [],
        }
        await store.set(ROOMS, room_id, doc)
        return WorldRoom.from_doc(doc)

    return _create


@pytest.fixture
def entity_factory(store):
    """Create an entity document. Defaults to a weak hostile monster."""

    async def _create(entity_id: str = "rat", **fields: Any) -> WorldEntity:
        doc: Dict[str, Any] = {
            "entity_id": entity_id,
            "name": "Cave Rat",
            "entity_class": "Monster",
            "hp": 10,
            "max_hp": 10,
            "attack": 2,
            "defense": 0,
            "xp_reward": 10,
            "loot_table_id": None,
            "respawns": False,
            "dialogue": [],
            "action_tags": ["skittish"],
        }
        doc.update(fields)
        await store.set(ENTITIES, entity_id, doc)
        return WorldEntity.from_doc(doc)

    return _create


@pytest.fixture
def item_factory(store):
    """Create a catalogue item document."""

    async def _create(item_id: str = "pipe", **fields: Any) -> ItemInstance:
        doc: Dict[str, Any] = {
            "item_id": item_id,
            "name": "Rusty Pipe",
            "type": "weapon",
            "tier": "iron",
            "stats": {"attack": 3},
            "slot": "weapon",
        }
        doc.update(fields)
        await store.set(ITEMS, item_id, doc)
        return ItemInstance.from_doc(doc)

    return _create


@pytest.fixture
def loot_table_factory(store):
    """Create a loot table from ``(item_id, weight)`` pairs."""

    async def _create(table_id: str, *entries: tuple) -> LootTable:
        doc = {
            "table_id": table_id,
            "items": [{"item_id": item_id, "weight": weight} for item_id, weight in entries],
        }
        await store.set(LOOT_TABLES, table_id, doc)
        return LootTable.from_doc(doc)

    return _create


@pytest.fixture
def player_factory(store):
    """Create a level 1 player (all stats 10, full hp) and persist it."""

    async def _create(
        player_id: str = "test_player",
        location: str = "plaza",
        **fields: Any,
    ) -> WorldPlayer:
        stats = rules.create_starting_stats()
        max_hp = rules.calculate_max_hp(1, stats["constitution"])
        player = WorldPlayer(
            id=player_id,
            name="TestCrawler",
            location=location,
            stats=stats,
            hp=max_hp,
            max_hp=max_hp,
            explored=[location],
        )
        for key, value in fields.items():
            setattr(player, key, value)
        await store.set(PLAYERS, player.id, player.to_doc())
        return player

    return _create


@pytest.fixture
def load_player(store):
    """Read a player back from the store."""

    async def _load(player_id: str = "test_player") -> WorldPlayer:
        return WorldPlayer.from_doc(await store.get(PLAYERS, player_id))

    return _load


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def player_states(store) -> PlayerStateStore:
    return PlayerStateStore(store, starting_room="plaza", event_log_limit=20)


@pytest.fixture
def action_engine(store, scripted_rng) -> ActionEngine:
    """ActionEngine over the in-memory store with every draw scripted."""
    return ActionEngine(store, rng=scripted_rng)
