# backend/crawler/engine/systems/__init__.py
"""
Game systems used by the action engine.

Each system handles a specific domain of turn resolution:
- rules: Pure formulas and weighted/skill rolls
- events: Event construction helpers
- intents: The closed set of intent variants
- CombatSystem: One bounded player/entity exchange
- ActionRouter: Intent-type to handler dispatch
- TurnContext: Per-turn scratch state
"""

# Import rules first (no dependencies)
from . import rules
from . import events

from .intents import INTENT_TYPES, BaseIntent, IntentError, parse_intent
from .combat import CombatConfig, CombatResult, CombatSystem
from .router import ActionMeta, ActionRouter
from .context import TurnContext

__all__ = [
    "rules",
    "events",
    "INTENT_TYPES",
    "BaseIntent",
    "IntentError",
    "parse_intent",
    "CombatConfig",
    "CombatResult",
    "CombatSystem",
    "ActionMeta",
    "ActionRouter",
    "TurnContext",
]
