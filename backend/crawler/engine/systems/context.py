# backend/crawler/engine/systems/context.py
"""
TurnContext - Per-turn state shared by the action handlers.

Holds the loaded player, the ordered event log for the turn, and the
explicit record of which entities the player engaged this turn (used by the
aggro pass instead of re-reading the event log).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, List, Set

from . import events as ev
from .events import Event

if TYPE_CHECKING:
    from ..world import EntityId, WorldPlayer, WorldRoom


@dataclass
class TurnContext:
    """
    Mutable scratch space for one ``(player_id, intent)`` turn.

    Usage:
        turn = TurnContext(player)
        turn.emit({"type": "look", ...})
        turn.fail("No target here.")
    """
    player: "WorldPlayer"
    events: List[Event] = field(default_factory=list)
    engaged_entity_ids: Set["EntityId"] = field(default_factory=set)
    room: "WorldRoom | None" = None
    failed: bool = False

    def emit(self, event: Event) -> None:
        self.events.append(event)

    def extend(self, events: Iterable[Event]) -> None:
        self.events.extend(events)

    def fail(self, message: str) -> None:
        """Record a terminal precondition failure for this turn."""
        self.events.append(ev.error(message))
        self.failed = True

    def engage(self, entity_id: "EntityId") -> None:
        """Mark an entity as already having fought the player this turn."""
        self.engaged_entity_ids.add(entity_id)

    def has_engaged(self, entity_id: "EntityId") -> bool:
        return entity_id in self.engaged_entity_ids
