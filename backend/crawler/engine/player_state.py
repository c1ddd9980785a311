# backend/crawler/engine/player_state.py
"""
PlayerStateStore - lifecycle of the player aggregate against the document store.

Provides:
- create (onboarding), load (with schema migration), save, partial update
- the bounded narrative event log used as narration context

Derived stats (attack, defense, capacity, skill levels) live on WorldPlayer.
"""
from __future__ import annotations
import logging
import time
import uuid
from typing import Any, Dict, Mapping

from .. import config
from ..store import PLAYERS, DocumentStore
from .migrations import migrate_player_doc
from .systems import rules
from .world import PlayerId, RoomId, WorldPlayer

logger = logging.getLogger(__name__)


class PlayerStateStore:
    """
    CRUD facade for player documents.

    Usage:
        players = PlayerStateStore(store)
        player = await players.create("Carl")
        player = await players.load(player.id)
        await players.save(player)
    """

    def __init__(
        self,
        store: DocumentStore,
        starting_room: RoomId | None = None,
        event_log_limit: int | None = None,
    ) -> None:
        self.store = store
        self.starting_room = starting_room or config.STARTING_ROOM
        self.event_log_limit = event_log_limit or config.EVENT_LOG_LIMIT

    async def create(self, name: str | None = None, player_id: PlayerId | None = None) -> WorldPlayer:
        """Onboard a new player with base stats and every derived field computed."""
        stats = rules.create_starting_stats()
        max_hp = rules.calculate_max_hp(1, stats["constitution"])
        player = WorldPlayer(
            id=player_id or str(uuid.uuid4()),
            name=name or config.DEFAULT_PLAYER_NAME,
            location=self.starting_room,
            level=1,
            xp=0,
            stats=stats,
            skills=rules.create_starting_skills(),
            hp=max_hp,
            max_hp=max_hp,
            explored=[self.starting_room],
        )
        await self.store.set(PLAYERS, player.id, player.to_doc())
        logger.info("Created player %s (%s) in %s", player.id, player.name, player.location)
        return player

    async def load(self, player_id: PlayerId) -> WorldPlayer | None:
        """Load a player, upgrading (and persisting) legacy documents once."""
        doc = await self.store.get(PLAYERS, player_id)
        if doc is None:
            return None
        doc.setdefault("id", player_id)
        doc, migrated = migrate_player_doc(doc)
        if migrated:
            await self.store.set(PLAYERS, player_id, doc)
        return WorldPlayer.from_doc(doc)

    async def save(self, player: WorldPlayer) -> WorldPlayer:
        await self.store.set(PLAYERS, player.id, player.to_doc())
        return player

    async def update(self, player_id: PlayerId, partial: Mapping[str, Any]) -> WorldPlayer:
        """
        Patch selected fields.

        Raises:
            DocumentNotFoundError: if the player does not exist
        """
        doc = await self.store.update(PLAYERS, player_id, partial)
        return WorldPlayer.from_doc(doc)

    def add_event(self, player: WorldPlayer, event: Mapping[str, Any]) -> None:
        """Append to the player's event log, keeping only the most recent entries."""
        entry: Dict[str, Any] = {**event, "timestamp": time.time()}
        player.event_log.append(entry)
        if len(player.event_log) > self.event_log_limit:
            player.event_log = player.event_log[-self.event_log_limit:]
