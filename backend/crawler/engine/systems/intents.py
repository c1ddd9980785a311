# backend/crawler/engine/systems/intents.py
"""
Intents - the closed set of structured commands the engine accepts.

An intent arrives already classified (natural-language parsing happens
upstream). Each action is its own pydantic model, discriminated on
``action``, so an unrecognised action fails validation instead of falling
through to a default branch.
"""

from __future__ import annotations
from typing import Annotated, Any, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError


class IntentError(ValueError):
    """Raised when a raw intent cannot be turned into a known intent variant."""


class BaseIntent(BaseModel):
    """Fields every intent may carry."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    target: str | None = None
    direction: str | None = None
    context: str | None = None
    text: str | None = None


class MoveIntent(BaseIntent):
    action: Literal["move"] = "move"


class LookIntent(BaseIntent):
    action: Literal["look"] = "look"


class AttackIntent(BaseIntent):
    action: Literal["attack"] = "attack"


class PickupIntent(BaseIntent):
    action: Literal["pickup"] = "pickup"


class UseIntent(BaseIntent):
    action: Literal["use"] = "use"


class EquipIntent(BaseIntent):
    action: Literal["equip"] = "equip"


class InventoryIntent(BaseIntent):
    action: Literal["inventory"] = "inventory"


class StatsIntent(BaseIntent):
    action: Literal["stats"] = "stats"


class MapIntent(BaseIntent):
    action: Literal["map"] = "map"


class AllocateIntent(BaseIntent):
    action: Literal["allocate"] = "allocate"


class OpenIntent(BaseIntent):
    action: Literal["open"] = "open"


class InspectIntent(BaseIntent):
    action: Literal["inspect"] = "inspect"


class TalkIntent(BaseIntent):
    action: Literal["talk"] = "talk"


class FleeIntent(BaseIntent):
    action: Literal["flee"] = "flee"


class UnknownIntent(BaseIntent):
    """The upstream parser saw input it could not classify."""
    action: Literal["unknown"] = "unknown"


Intent = Annotated[
    Union[
        MoveIntent,
        LookIntent,
        AttackIntent,
        PickupIntent,
        UseIntent,
        EquipIntent,
        InventoryIntent,
        StatsIntent,
        MapIntent,
        AllocateIntent,
        OpenIntent,
        InspectIntent,
        TalkIntent,
        FleeIntent,
        UnknownIntent,
    ],
    Field(discriminator="action"),
]

INTENT_TYPES: tuple[type[BaseIntent], ...] = (
    MoveIntent,
    LookIntent,
    AttackIntent,
    PickupIntent,
    UseIntent,
    EquipIntent,
    InventoryIntent,
    StatsIntent,
    MapIntent,
    AllocateIntent,
    OpenIntent,
    InspectIntent,
    TalkIntent,
    FleeIntent,
    UnknownIntent,
)

ACTION_NAMES = tuple(t.model_fields["action"].default for t in INTENT_TYPES)

_intent_adapter: TypeAdapter[Any] = TypeAdapter(Intent)


def parse_intent(raw: BaseIntent | Mapping[str, Any]) -> BaseIntent:
    """
    Validate a raw intent mapping into its intent variant.

    Args:
        raw: An intent instance (returned as-is) or a mapping with an ``action`` key

    Returns:
        The matching intent variant

    Raises:
        IntentError: if the action is missing, unknown, or a field has the wrong type
    """
    if isinstance(raw, BaseIntent):
        return raw
    if not isinstance(raw, Mapping):
        raise IntentError(f"Intent must be a mapping, got {type(raw).__name__}.")

    action = raw.get("action")
    try:
        return _intent_adapter.validate_python(dict(raw))
    except ValidationError as exc:
        if action in ACTION_NAMES:
            raise IntentError(f'Malformed "{action}" intent.') from exc
        raise IntentError(
            f'Unknown action: "{action}". Try: {", ".join(ACTION_NAMES)}.'
        ) from exc
