# backend/crawler/engine/systems/router.py
"""
ActionRouter: Routing of intent variants to their handlers.

Provides:
- Handler registration with category and description metadata
- Exhaustiveness check against the closed set of intent variants
- Async dispatch
- Plain-text help listing grouped by category
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Iterable, List, Optional

from .intents import BaseIntent

if TYPE_CHECKING:
    from .context import TurnContext

ActionHandler = Callable[["TurnContext", BaseIntent], Awaitable[None]]


@dataclass
class ActionMeta:
    """Metadata for a registered action."""
    name: str  # The intent's action tag
    intent_type: type[BaseIntent]
    handler: ActionHandler
    category: str  # movement, combat, inventory, character, social
    description: str


class ActionRouter:
    """
    Routes validated intents to handlers keyed by intent type.

    There is no fallback handler: every intent variant must be registered,
    which ``verify_exhaustive`` enforces when the engine is built.
    """

    def __init__(self) -> None:
        self.actions: Dict[type[BaseIntent], ActionMeta] = {}
        self.categories: Dict[str, List[str]] = {}

    def register_handler(
        self,
        intent_type: type[BaseIntent],
        handler: ActionHandler,
        category: str = "misc",
        description: str = "",
    ) -> None:
        """Register the handler for one intent variant."""
        if intent_type in self.actions:
            raise ValueError(f"Handler already registered for {intent_type.__name__}")

        name = intent_type.model_fields["action"].default
        self.actions[intent_type] = ActionMeta(
            name=name,
            intent_type=intent_type,
            handler=handler,
            category=category,
            description=description,
        )
        self.categories.setdefault(category, [])
        if name not in self.categories[category]:
            self.categories[category].append(name)

    def verify_exhaustive(self, intent_types: Iterable[type[BaseIntent]]) -> None:
        """
        Ensure the registered handlers cover exactly the given intent variants.

        Raises:
            RuntimeError: listing any variant without a handler or any handler
                registered for a type outside the variant set
        """
        expected = set(intent_types)
        registered = set(self.actions)
        missing = sorted(t.__name__ for t in expected - registered)
        extra = sorted(t.__name__ for t in registered - expected)
        if missing or extra:
            raise RuntimeError(
                f"Action table mismatch (missing: {missing or 'none'}, extra: {extra or 'none'})"
            )

    async def dispatch(self, turn: "TurnContext", intent: BaseIntent) -> None:
        """
        Run the handler for an intent. Handlers append to ``turn.events``.

        Raises:
            KeyError: if no handler is registered (prevented by verify_exhaustive)
        """
        meta = self.actions[type(intent)]
        await meta.handler(turn, intent)

    def get_help(self, category: Optional[str] = None) -> str:
        """Plain-text listing of actions, grouped by category."""
        lines: List[str] = []
        cats = [category] if category else sorted(self.categories)
        by_name = {meta.name: meta for meta in self.actions.values()}
        for cat in cats:
            if cat not in self.categories:
                continue
            lines.append(f"{cat.title()}:")
            for name in sorted(self.categories[cat]):
                meta = by_name[name]
                lines.append(f"  {name} - {meta.description}" if meta.description else f"  {name}")
            lines.append("")
        return "\n".join(lines)
