# backend/crawler/engine/systems/rules.py
"""
Rules - Deterministic formulas for stats, combat, leveling, inventory and skills.

Provides:
- Ability modifiers, max HP, damage and XP thresholds
- Hazard damage and inventory capacity
- Weighted loot / rarity rolls
- Skill checks and skill level-up rolls

Every random draw goes through ``rng.random()`` so a single uniform source
can be injected per turn. Nothing in here touches storage.
"""

from __future__ import annotations
import math
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence


# Base stat value for new characters
BASE_STAT = 10
STAT_POINTS_PER_LEVEL = 2
BASE_HP = 50
BASE_INVENTORY_SLOTS = 10
MAX_SKILL_LEVEL = 10

# Rarity weight for spawnable items that don't declare one
DEFAULT_RARITY = 0.1

STAT_NAMES = (
    "strength",
    "dexterity",
    "constitution",
    "intelligence",
    "wisdom",
    "charisma",
)

STAT_ALIASES = {
    "str": "strength",
    "dex": "dexterity",
    "con": "constitution",
    "int": "intelligence",
    "wis": "wisdom",
    "cha": "charisma",
}

# Loot box XP rewards by tier
LOOTBOX_XP = {"iron": 10, "bronze": 25, "silver": 50, "gold": 100}
DEFAULT_LOOTBOX_XP = 10


@dataclass(frozen=True)
class SkillDefinition:
    """Static definition of a crawler skill."""
    name: str
    label: str
    stat: str  # Governing stat for checks


SKILLS: Dict[str, SkillDefinition] = {
    skill.name: skill
    for skill in (
        # Survival & recovery
        SkillDefinition("first_aid", "First Aid", "intelligence"),
        SkillDefinition("scavenge", "Scavenge", "wisdom"),
        SkillDefinition("improvise", "Improvise", "dexterity"),
        # Athleticism & movement
        SkillDefinition("dodge", "Dodge", "dexterity"),
        SkillDefinition("sprint", "Sprint", "constitution"),
        SkillDefinition("flee", "Flee", "dexterity"),
        SkillDefinition("climb", "Climb", "strength"),
        # Perception & tactical
        SkillDefinition("inspect", "Inspect", "wisdom"),
        SkillDefinition("sense_danger", "Sense Danger", "wisdom"),
        SkillDefinition("sneak", "Sneak", "dexterity"),
        # Showmanship
        SkillDefinition("taunt", "Taunt", "charisma"),
        SkillDefinition("flair", "Flair", "charisma"),
    )
}

SKILL_NAMES = tuple(SKILLS)


@dataclass(frozen=True)
class SkillCheck:
    """Outcome of a single skill check roll."""
    success: bool
    roll: int
    threshold: int


# ---------- Stats & progression ----------

def get_modifier(stat_value: int) -> int:
    """Ability score to modifier: floor((stat - 10) / 2)."""
    return (stat_value - 10) // 2


def calculate_max_hp(level: int, constitution: int) -> int:
    return BASE_HP + constitution * 2 + level * 5


def calculate_damage(weapon_attack: int, attacker_stat: int, target_defense: int) -> int:
    """Damage after modifiers and defense, never below 1."""
    raw = weapon_attack + get_modifier(attacker_stat) - target_defense
    return max(1, raw)


def xp_to_next_level(current_level: int) -> int:
    return current_level * 100


def calculate_inventory_slots(strength: int) -> int:
    return BASE_INVENTORY_SLOTS + get_modifier(strength)


def lootbox_xp_reward(tier: str | None) -> int:
    return LOOTBOX_XP.get(tier or "", DEFAULT_LOOTBOX_XP)


def create_starting_stats() -> Dict[str, int]:
    return {stat: BASE_STAT for stat in STAT_NAMES}


def create_starting_skills() -> Dict[str, int]:
    return {name: 1 for name in SKILL_NAMES}


def resolve_stat_name(name: str | None) -> str | None:
    """Map a user-supplied stat name (or its short alias) to a canonical stat."""
    if not name:
        return None
    key = name.strip().lower()
    key = STAT_ALIASES.get(key, key)
    return key if key in STAT_NAMES else None


# ---------- Randomized rules ----------

def _uniform(rng: random.Random | None) -> float:
    return (rng or random).random()


def calculate_hazard_damage(hazard_level: int, rng: random.Random | None = None) -> int:
    """hazard_level * 1d6. Level 0 (or less) returns 0 without rolling."""
    if hazard_level <= 0:
        return 0
    d6 = math.floor(_uniform(rng) * 6) + 1
    return hazard_level * d6


def _weighted_pick(choices: Sequence[Any], weights: Sequence[float], rng: random.Random | None) -> Any:
    total = sum(weights)
    remaining = _uniform(rng) * total
    for choice, weight in zip(choices, weights):
        remaining -= weight
        if remaining <= 0:
            return choice
    # Float rounding can leave a sliver above zero
    return choices[-1]


def roll_loot(entries: Sequence[Mapping[str, Any]], rng: random.Random | None = None) -> str | None:
    """
    Pick an item id from a weighted loot table.

    Args:
        entries: Sequence of ``{"item_id": ..., "weight": ...}`` mappings
        rng: Random source (defaults to the module-level generator)

    Returns:
        The chosen item id, or None for an empty table.
    """
    if not entries:
        return None
    return _weighted_pick(
        [e["item_id"] for e in entries],
        [float(e.get("weight", 0)) for e in entries],
        rng,
    )


def roll_by_rarity(items: Sequence[Mapping[str, Any]], rng: random.Random | None = None) -> str | None:
    """Pick an item id weighted by each item's ``rarity`` (default 0.1)."""
    if not items:
        return None
    weights: List[float] = []
    for item in items:
        rarity = item.get("rarity")
        weights.append(float(rarity) if rarity else DEFAULT_RARITY)
    return _weighted_pick([i["item_id"] for i in items], weights, rng)


def skill_check_threshold(skill_level: int, stat_value: int, base_difficulty: int) -> int:
    """Success threshold, clamped to [5, 95]."""
    skill_bonus = skill_level * 5
    stat_bonus = get_modifier(stat_value) * 3
    return max(5, min(95, base_difficulty - skill_bonus - stat_bonus))


def roll_skill_check(
    skill_level: int,
    stat_value: int,
    base_difficulty: int,
    rng: random.Random | None = None,
) -> SkillCheck:
    """Roll 1-100; success when the roll meets the clamped threshold."""
    threshold = skill_check_threshold(skill_level, stat_value, base_difficulty)
    roll = math.floor(_uniform(rng) * 100) + 1
    return SkillCheck(success=roll >= threshold, roll=roll, threshold=threshold)


def skill_level_up_chance(current_level: int) -> float:
    """15% at level 1, minus 2% per level, floored at 2%."""
    return max(0.02, 0.15 - (current_level - 1) * 0.02)


def check_skill_level_up(current_level: int, rng: random.Random | None = None) -> bool:
    """Roll for a skill level-up after a successful use. No roll at max level."""
    if current_level >= MAX_SKILL_LEVEL:
        return False
    return _uniform(rng) < skill_level_up_chance(current_level)
