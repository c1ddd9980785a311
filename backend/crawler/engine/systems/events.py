# backend/crawler/engine/systems/events.py
"""
Event construction helpers.

Every turn produces an ordered list of plain dict events tagged by ``type``.
The narration layer binds to these field names verbatim, so builders for the
events emitted from more than one place live here.
"""

from __future__ import annotations
from typing import TYPE_CHECKING, Any, Dict, List

if TYPE_CHECKING:
    from ..world import ItemInstance, WorldEntity, WorldRoom


# Type alias for events
Event = Dict[str, Any]

ERROR = "error"


def error(message: str) -> Event:
    """A terminal failure for this turn."""
    return {"type": ERROR, "message": message}


def skill_check(
    skill_name: str,
    result: str,
    detail: str,
    *,
    roll: int | None = None,
    threshold: int | None = None,
) -> Event:
    ev: Event = {
        "type": "skill_check",
        "skill_name": skill_name,
        "result": result,
        "detail": detail,
    }
    if roll is not None:
        ev["roll"] = roll
    if threshold is not None:
        ev["threshold"] = threshold
    return ev


def skill_level_up(skill_name: str, new_level: int) -> Event:
    return {"type": "skill_level_up", "skill_name": skill_name, "new_level": new_level}


def player_death(killed_by: str) -> Event:
    return {"type": "player_death", "killed_by": killed_by}


def move(from_room: str, to_room: str, direction: str, context: str | None) -> Event:
    return {
        "type": "move",
        "from": from_room,
        "to": to_room,
        "direction": direction,
        "context": context,
    }


def xp_gained(amount: int, total_xp: int) -> Event:
    return {"type": "xp_gained", "amount": amount, "total_xp": total_xp}


def level_up(new_level: int, stat_points_available: int, new_max_hp: int) -> Event:
    return {
        "type": "level_up",
        "new_level": new_level,
        "stat_points_available": stat_points_available,
        "new_max_hp": new_max_hp,
    }


def room_description(
    room: "WorldRoom",
    entities: List["WorldEntity"],
    items: List["ItemInstance"],
) -> Event:
    """Snapshot of a room: who is here, what is on the floor, where you can go."""
    return {
        "type": "room_description",
        "room_id": room.room_id,
        "zone_type": room.zone_type,
        "description": room.description,
        "hazard_level": room.hazard_level,
        "entities": [
            {
                "entity_id": e.entity_id,
                "name": e.name,
                "entity_class": e.entity_class,
                "action_tags": list(e.action_tags),
            }
            for e in entities
        ],
        "items": [
            {"item_id": i.item_id, "name": i.name, "type": i.type, "tier": i.tier}
            for i in items
        ],
        "exits": room.exit_labels(),
    }
