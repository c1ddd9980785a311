"""
Unit tests for CombatSystem.

Tests a single exchange: player attack, kill check, dodge, counter-attack.
"""

import pytest

from crawler.engine.systems.combat import CombatConfig, CombatSystem
from crawler.engine.world import ItemInstance, WorldEntity, WorldPlayer

# Rolls: 0.0 -> roll 1 (always fails), 0.99 -> roll 100 (always succeeds)
FAIL = 0.0
SUCCEED = 0.99
NO_LEVEL_UP = 0.99


def make_player(**fields) -> WorldPlayer:
    player = WorldPlayer(id="p1", name="Carl", location="plaza", hp=75, max_hp=75)
    for key, value in fields.items():
        setattr(player, key, value)
    return player


def make_entity(**fields) -> WorldEntity:
    defaults = dict(entity_id="goblin", name="Goblin", hp=10, max_hp=10, attack=2, defense=0)
    defaults.update(fields)
    return WorldEntity(**defaults)


def event_types(events):
    return [e["type"] for e in events]


# ============================================================================
# Exchange Tests
# ============================================================================


@pytest.mark.unit
def test_bare_handed_attack_against_armor_deals_one(scripted_rng):
    """Bare hands (attack 0, str 10) into defense 2 still deals 1."""
    scripted_rng.push(FAIL)  # dodge
    player = make_player()
    entity = make_entity(defense=2)

    result = CombatSystem(rng=scripted_rng).resolve_exchange(player, entity)

    attack = result.events[0]
    assert attack["type"] == "player_attack"
    assert attack["damage"] == 1
    assert attack["weapon_used"] == "bare fists (improvised)"
    assert entity.hp == 9


@pytest.mark.unit
def test_counter_attack_lands_when_dodge_fails(scripted_rng):
    scripted_rng.push(FAIL)
    player = make_player()
    entity = make_entity(attack=4)

    result = CombatSystem(rng=scripted_rng).resolve_exchange(player, entity)

    assert event_types(result.events) == ["player_attack", "entity_attack"]
    counter = result.events[1]
    assert counter["damage"] == 4
    assert counter["attacker_id"] == "goblin"
    assert player.hp == 71
    assert not result.entity_dead
    assert not result.player_dead


@pytest.mark.unit
def test_successful_dodge_negates_attack(scripted_rng):
    scripted_rng.push(SUCCEED, NO_LEVEL_UP)
    player = make_player()
    entity = make_entity(attack=4)

    result = CombatSystem(rng=scripted_rng).resolve_exchange(player, entity)

    assert event_types(result.events) == ["player_attack", "skill_check"]
    assert result.events[1]["skill_name"] == "Dodge"
    assert player.hp == 75


@pytest.mark.unit
def test_dodge_can_level_up(scripted_rng):
    scripted_rng.push(SUCCEED, 0.01)
    player = make_player()

    result = CombatSystem(rng=scripted_rng).resolve_entity_attack(player, make_entity())

    assert event_types(result.events) == ["skill_check", "skill_level_up"]
    assert player.skills["dodge"] == 2


@pytest.mark.unit
def test_kill_skips_counter_attack(scripted_rng):
    player = make_player()
    entity = make_entity(hp=1)

    result = CombatSystem(rng=scripted_rng).resolve_exchange(player, entity)

    assert event_types(result.events) == ["player_attack", "entity_killed"]
    assert result.entity_dead
    assert entity.hp == 0
    assert scripted_rng.draws == 0


@pytest.mark.unit
def test_entity_hp_clamped_at_zero(scripted_rng):
    weapon = ItemInstance(item_id="axe", name="Axe", type="weapon", stats={"attack": 50}, slot="weapon")
    player = make_player()
    player.equipment["weapon"] = weapon
    entity = make_entity(hp=5)

    result = CombatSystem(rng=scripted_rng).resolve_exchange(player, entity)

    assert entity.hp == 0
    assert result.events[0]["target_hp"] == 0
    assert result.events[0]["weapon_used"] == "Axe"


@pytest.mark.unit
def test_player_death_reported_but_alive_flag_untouched(scripted_rng):
    """The combat system only changes hp; the caller flips ``alive``."""
    scripted_rng.push(FAIL)
    player = make_player(hp=2)

    result = CombatSystem(rng=scripted_rng).resolve_entity_attack(player, make_entity(attack=5))

    assert event_types(result.events) == ["entity_attack", "player_death"]
    assert result.events[1]["killed_by"] == "Goblin"
    assert result.player_dead
    assert player.hp == 0
    assert player.alive is True


@pytest.mark.unit
def test_counter_attack_respects_armor(scripted_rng):
    scripted_rng.push(FAIL)
    player = make_player()
    player.equipment["chest"] = ItemInstance(
        item_id="vest", name="Vest", type="armor", stats={"defense": 3}, slot="chest"
    )

    CombatSystem(rng=scripted_rng).resolve_entity_attack(player, make_entity(attack=5))

    assert player.hp == 73


# ============================================================================
# Improvise & Dodge Tests
# ============================================================================


@pytest.mark.unit
def test_improvise_bonus_only_reported_when_positive(scripted_rng):
    scripted_rng.push(FAIL)
    player = make_player()
    player.skills["improvise"] = 4

    result = CombatSystem(rng=scripted_rng).resolve_exchange(player, make_entity(defense=0))

    passive = result.events[0]
    assert passive["type"] == "skill_check"
    assert passive["result"] == "passive"
    assert result.events[1]["damage"] == 2


@pytest.mark.unit
def test_dodge_difficulty_scales_with_attack():
    combat = CombatSystem()
    assert combat.dodge_difficulty(0) == 65
    assert combat.dodge_difficulty(9) == 69
    assert combat.improvise_bonus(1) == 0
    assert combat.improvise_bonus(3) == 1


@pytest.mark.unit
def test_config_overrides_dodge_base():
    combat = CombatSystem(config=CombatConfig(dodge_base_difficulty=40))
    assert combat.dodge_difficulty(10) == 45
