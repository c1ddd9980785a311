# backend/crawler/engine/world.py
"""
World data structures - players, rooms, entities, items and loot tables.

These are in-process views of documents held by the external document store.
Each type converts to and from its document form; handlers mutate the
dataclasses and the repository layer writes them back.
"""
from __future__ import annotations
import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from .systems import rules


# Simple type aliases for clarity
RoomId = str
PlayerId = str
EntityId = str
ItemId = str
LootTableId = str
Direction = str  # "north", "south", "east", "west", "up", "down"

DIRECTIONS = ("north", "south", "east", "west", "up", "down")

EQUIPMENT_SLOTS = ("weapon", "head", "chest", "feet")
ARMOR_SLOTS = ("head", "chest", "feet")

# Entity classes that never attack on their own
PASSIVE_ENTITY_CLASSES = frozenset({"Merchant", "TutorialGuide"})

PLAYER_SCHEMA_VERSION = 2


def _normalize(text: str | None) -> str:
    return (text or "").lower().replace(" ", "").replace("_", "")


@dataclass(frozen=True)
class ItemInstance:
    """
    An item copied by value out of the item catalogue.

    Instances never share state: picking an item up copies it into the
    inventory, and every document round-trip produces fresh objects.
    """
    item_id: ItemId
    name: str
    type: str = "misc"
    tier: str = "iron"
    stats: Mapping[str, int] = field(default_factory=dict)
    slot: str | None = None
    rarity: float | None = None
    description: str = ""
    is_custom: bool = False

    def matches(self, search_term: str | None) -> bool:
        """Substring match on name or id, ignoring case, spaces and underscores."""
        needle = _normalize(search_term)
        return needle in _normalize(self.name) or needle in _normalize(self.item_id)

    def stat(self, name: str) -> int:
        return int(self.stats.get(name) or 0)

    @classmethod
    def from_doc(cls, doc: Mapping[str, Any]) -> "ItemInstance":
        return cls(
            item_id=doc.get("item_id") or doc.get("id"),
            name=doc.get("name", "something"),
            type=doc.get("type", "misc"),
            tier=doc.get("tier", "iron"),
            stats=dict(doc.get("stats") or {}),
            slot=doc.get("slot"),
            rarity=doc.get("rarity"),
            description=doc.get("description", ""),
            is_custom=bool(doc.get("is_custom", False)),
        )

    def to_doc(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "type": self.type,
            "tier": self.tier,
            "stats": dict(self.stats),
            "slot": self.slot,
            "rarity": self.rarity,
            "description": self.description,
            "is_custom": self.is_custom,
        }


@dataclass
class WorldRoom:
    """A vertex in the world graph. Shared between every player standing in it."""
    room_id: RoomId
    zone_type: str = "unknown"
    description: str = ""
    hazard_level: int = 0
    connections: Dict[Direction, RoomId | None] = field(default_factory=dict)
    entities: List[EntityId] = field(default_factory=list)
    items: List[ItemId] = field(default_factory=list)

    def exits(self) -> Dict[Direction, RoomId]:
        """Connections that actually lead somewhere, in declaration order."""
        return {d: dest for d, dest in self.connections.items() if dest}

    def exit_labels(self) -> List[str]:
        return [d.upper() for d in self.exits()]

    @classmethod
    def from_doc(cls, doc: Mapping[str, Any]) -> "WorldRoom":
        connections = {d: None for d in DIRECTIONS}
        for direction, dest in (doc.get("connections") or {}).items():
            connections[direction.lower()] = dest or None
        return cls(
            room_id=doc.get("room_id") or doc.get("id"),
            zone_type=doc.get("zone_type", "unknown"),
            description=doc.get("description", ""),
            hazard_level=int(doc.get("hazard_level") or 0),
            connections=connections,
            entities=list(doc.get("entities") or []),
            items=list(doc.get("items") or []),
        )

    def to_doc(self) -> Dict[str, Any]:
        return {
            "room_id": self.room_id,
            "zone_type": self.zone_type,
            "description": self.description,
            "hazard_level": self.hazard_level,
            "connections": dict(self.connections),
            "entities": list(self.entities),
            "items": list(self.items),
        }


@dataclass
class WorldEntity:
    """A mob or NPC. Death is persisted as hp == 0 on the document."""
    entity_id: EntityId
    name: str
    entity_class: str = "Monster"
    hp: int = 10
    max_hp: int = 10
    attack: int = 1
    defense: int = 0
    xp_reward: int = 0
    loot_table_id: LootTableId | None = None
    respawns: bool = False
    dialogue: List[str] = field(default_factory=list)
    action_tags: List[str] = field(default_factory=list)

    def is_alive(self) -> bool:
        return self.hp > 0

    def is_passive(self) -> bool:
        return self.entity_class in PASSIVE_ENTITY_CLASSES

    def is_hostile(self) -> bool:
        return self.is_alive() and not self.is_passive()

    def matches(self, search_term: str | None) -> bool:
        term = (search_term or "").lower()
        return self.entity_id == search_term or term in self.name.lower()

    @classmethod
    def from_doc(cls, doc: Mapping[str, Any]) -> "WorldEntity":
        max_hp = int(doc.get("max_hp") or doc.get("hp") or 1)
        return cls(
            entity_id=doc.get("entity_id") or doc.get("id"),
            name=doc.get("name", "something"),
            entity_class=doc.get("entity_class", "Monster"),
            hp=int(doc.get("hp", max_hp)),
            max_hp=max_hp,
            attack=int(doc.get("attack") or 0),
            defense=int(doc.get("defense") or 0),
            xp_reward=int(doc.get("xp_reward") or 0),
            loot_table_id=doc.get("loot_table_id"),
            respawns=bool(doc.get("respawns", False)),
            dialogue=list(doc.get("dialogue") or []),
            action_tags=list(doc.get("action_tags") or []),
        )

    def to_doc(self) -> Dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "name": self.name,
            "entity_class": self.entity_class,
            "hp": self.hp,
            "max_hp": self.max_hp,
            "attack": self.attack,
            "defense": self.defense,
            "xp_reward": self.xp_reward,
            "loot_table_id": self.loot_table_id,
            "respawns": self.respawns,
            "dialogue": list(self.dialogue),
            "action_tags": list(self.action_tags),
        }


@dataclass
class LootTable:
    """Named weighted list of ``{"item_id", "weight"}`` entries."""
    table_id: LootTableId
    entries: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_doc(cls, doc: Mapping[str, Any]) -> "LootTable":
        return cls(
            table_id=doc.get("table_id") or doc.get("id"),
            entries=[
                {"item_id": e["item_id"], "weight": float(e.get("weight", 1))}
                for e in (doc.get("items") or [])
            ],
        )

    def to_doc(self) -> Dict[str, Any]:
        return {"table_id": self.table_id, "items": [dict(e) for e in self.entries]}


def empty_equipment() -> Dict[str, ItemInstance | None]:
    return {slot: None for slot in EQUIPMENT_SLOTS}


@dataclass
class WorldPlayer:
    """
    The player aggregate.

    Invariants:
    - 0 <= hp <= max_hp
    - alive only ever flips True -> False, when damage takes hp to 0
    - equipment always has exactly the four EQUIPMENT_SLOTS keys
    """
    id: PlayerId
    name: str
    location: RoomId
    level: int = 1
    xp: int = 0
    stats: Dict[str, int] = field(default_factory=rules.create_starting_stats)
    skills: Dict[str, int] = field(default_factory=rules.create_starting_skills)
    hp: int = 0
    max_hp: int = 0
    inventory: List[ItemInstance] = field(default_factory=list)
    equipment: Dict[str, ItemInstance | None] = field(default_factory=empty_equipment)
    explored: List[RoomId] = field(default_factory=list)
    statistics: Dict[str, int] = field(
        default_factory=lambda: {"entities_killed": 0, "lootboxes_opened": 0}
    )
    stat_points_available: int = 0
    alive: bool = True
    event_log: List[Dict[str, Any]] = field(default_factory=list)
    schema_version: int = PLAYER_SCHEMA_VERSION

    def is_alive(self) -> bool:
        return self.alive

    # ---------- Derived stats ----------

    def get_attack(self) -> int:
        """Equipped weapon's attack, 0 when bare-handed."""
        weapon = self.equipment.get("weapon")
        return weapon.stat("attack") if weapon else 0

    def get_defense(self) -> int:
        """Sum of head, chest and feet defense."""
        return sum(
            item.stat("defense")
            for slot in ARMOR_SLOTS
            if (item := self.equipment.get(slot)) is not None
        )

    def get_inventory_capacity(self) -> int:
        return rules.calculate_inventory_slots(self.stats["strength"])

    def get_skill_level(self, skill_name: str) -> int:
        return self.skills.get(skill_name) or 1

    def get_skill_stat(self, skill_name: str) -> int:
        """Value of the stat that governs checks for ``skill_name``."""
        return self.stats.get(rules.SKILLS[skill_name].stat, rules.BASE_STAT)

    def inventory_full(self) -> bool:
        return len(self.inventory) >= self.get_inventory_capacity()

    def mark_explored(self, room_id: RoomId) -> None:
        if room_id not in self.explored:
            self.explored.append(room_id)

    def take_damage(self, amount: int) -> None:
        """Apply damage, clamping at 0 and flipping alive when hp runs out."""
        self.hp = max(0, self.hp - amount)
        if self.hp == 0:
            self.alive = False

    def find_inventory_item(self, search_term: str | None, item_type: str | None = None) -> int:
        """Index of the first matching inventory item, or -1."""
        for idx, item in enumerate(self.inventory):
            if item_type and item.type != item_type:
                continue
            if item.matches(search_term):
                return idx
        return -1

    @classmethod
    def from_doc(cls, doc: Mapping[str, Any]) -> "WorldPlayer":
        equipment = empty_equipment()
        for slot, item in (doc.get("equipment") or {}).items():
            if slot in equipment and item:
                equipment[slot] = ItemInstance.from_doc(item)
        return cls(
            id=doc["id"],
            name=doc.get("name", "Unnamed Crawler"),
            location=doc["location"],
            level=int(doc.get("level", 1)),
            xp=int(doc.get("xp", 0)),
            stats=dict(doc.get("stats") or rules.create_starting_stats()),
            skills=dict(doc.get("skills") or {}),
            hp=int(doc.get("hp", 0)),
            max_hp=int(doc.get("max_hp", 0)),
            inventory=[ItemInstance.from_doc(i) for i in doc.get("inventory") or []],
            equipment=equipment,
            explored=list(doc.get("explored") or []),
            statistics=dict(doc.get("statistics") or {}),
            stat_points_available=int(doc.get("stat_points_available", 0)),
            alive=bool(doc.get("alive", True)),
            event_log=copy.deepcopy(list(doc.get("event_log") or [])),
            schema_version=int(doc.get("schema_version", PLAYER_SCHEMA_VERSION)),
        )

    def to_doc(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "level": self.level,
            "xp": self.xp,
            "stats": dict(self.stats),
            "skills": dict(self.skills),
            "hp": self.hp,
            "max_hp": self.max_hp,
            "inventory": [i.to_doc() for i in self.inventory],
            "equipment": {
                slot: (item.to_doc() if item else None)
                for slot, item in self.equipment.items()
            },
            "explored": list(self.explored),
            "statistics": dict(self.statistics),
            "stat_points_available": self.stat_points_available,
            "alive": self.alive,
            "event_log": copy.deepcopy(self.event_log),
            "schema_version": self.schema_version,
        }
