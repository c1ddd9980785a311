"""
Turn resolution for the dungeon crawler.

The ActionEngine takes a structured intent for one player and returns the
ordered events the turn produced, persisting state through a DocumentStore.
"""

from .engine import ActionEngine, TurnResult
from .player_state import PlayerStateStore
from .repository import WorldRepository

__all__ = ["ActionEngine", "TurnResult", "PlayerStateStore", "WorldRepository"]
