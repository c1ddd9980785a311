"""
Unit tests for intent parsing and the ActionRouter.

Tests the closed intent union, error messages for bad input, and the
dispatch-table exhaustiveness check.
"""

import pytest
from pydantic import ValidationError

from crawler.engine.systems.context import TurnContext
from crawler.engine.systems.intents import (ACTION_NAMES, INTENT_TYPES,
                                            AttackIntent, IntentError,
                                            LookIntent, MoveIntent,
                                            UnknownIntent, parse_intent)
from crawler.engine.systems.router import ActionRouter
from crawler.engine.world import WorldPlayer

# ============================================================================
# Intent Parsing Tests
# ============================================================================


@pytest.mark.unit
def test_every_action_has_a_variant():
    assert len(INTENT_TYPES) == 15
    assert set(ACTION_NAMES) == {
        "move", "look", "attack", "pickup", "use", "equip", "inventory", "stats",
        "map", "allocate", "open", "inspect", "talk", "flee", "unknown",
    }


@pytest.mark.unit
def test_parse_intent_selects_variant():
    intent = parse_intent({"action": "move", "direction": "north", "context": "I run north"})

    assert isinstance(intent, MoveIntent)
    assert intent.direction == "north"
    assert intent.context == "I run north"
    assert intent.target is None


@pytest.mark.unit
def test_parse_intent_ignores_extra_fields():
    intent = parse_intent({"action": "attack", "target": "goblin", "confidence": 0.9})
    assert isinstance(intent, AttackIntent)
    assert intent.target == "goblin"


@pytest.mark.unit
def test_parse_intent_passes_instances_through():
    look = LookIntent()
    assert parse_intent(look) is look


@pytest.mark.unit
def test_unknown_variant_carries_text():
    intent = parse_intent({"action": "unknown", "text": "do a backflip"})
    assert isinstance(intent, UnknownIntent)
    assert intent.text == "do a backflip"


@pytest.mark.unit
def test_unrecognised_action_is_an_error():
    with pytest.raises(IntentError, match='Unknown action: "dance"'):
        parse_intent({"action": "dance"})


@pytest.mark.unit
def test_missing_action_is_an_error():
    with pytest.raises(IntentError, match="Unknown action"):
        parse_intent({"target": "goblin"})


@pytest.mark.unit
def test_malformed_known_action():
    with pytest.raises(IntentError, match='Malformed "attack" intent'):
        parse_intent({"action": "attack", "target": ["not", "a", "string"]})


@pytest.mark.unit
def test_non_mapping_is_an_error():
    with pytest.raises(IntentError):
        parse_intent("look")


@pytest.mark.unit
def test_intents_are_immutable():
    intent = MoveIntent(direction="north")
    with pytest.raises(ValidationError):
        intent.direction = "south"


# ============================================================================
# ActionRouter Tests
# ============================================================================


@pytest.mark.unit
async def test_router_dispatches_by_intent_type():
    router = ActionRouter()
    seen = []

    async def handle_look(turn, intent):
        seen.append(intent)
        turn.emit({"type": "room_description"})

    router.register_handler(LookIntent, handle_look, category="movement", description="Look around")

    turn = TurnContext(WorldPlayer(id="p", name="P", location="plaza"))
    await router.dispatch(turn, LookIntent())

    assert len(seen) == 1
    assert turn.events == [{"type": "room_description"}]
    assert router.categories == {"movement": ["look"]}


@pytest.mark.unit
def test_router_rejects_duplicate_registration():
    router = ActionRouter()

    async def handler(turn, intent):
        return None

    router.register_handler(LookIntent, handler)
    with pytest.raises(ValueError):
        router.register_handler(LookIntent, handler)


@pytest.mark.unit
def test_verify_exhaustive_reports_missing_variants():
    router = ActionRouter()

    async def handler(turn, intent):
        return None

    router.register_handler(LookIntent, handler)
    with pytest.raises(RuntimeError, match="MoveIntent"):
        router.verify_exhaustive(INTENT_TYPES)

    for intent_type in INTENT_TYPES:
        if intent_type is not LookIntent:
            router.register_handler(intent_type, handler)
    router.verify_exhaustive(INTENT_TYPES)


@pytest.mark.unit
def test_help_groups_by_category():
    router = ActionRouter()

    async def handler(turn, intent):
        return None

    router.register_handler(MoveIntent, handler, category="movement", description="Walk")
    router.register_handler(AttackIntent, handler, category="combat", description="Hit")

    text = router.get_help()
    assert "Combat:" in text
    assert "  move - Walk" in text
    assert router.get_help("combat").startswith("Combat:")


# ============================================================================
# TurnContext Tests
# ============================================================================


@pytest.mark.unit
def test_turn_context_fail_and_engage():
    turn = TurnContext(WorldPlayer(id="p", name="P", location="plaza"))

    turn.engage("rat")
    turn.fail("No target.")

    assert turn.failed
    assert turn.events == [{"type": "error", "message": "No target."}]
    assert turn.has_engaged("rat")
    assert not turn.has_engaged("goblin")
