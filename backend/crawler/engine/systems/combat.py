# backend/crawler/engine/systems/combat.py
"""
CombatSystem - Resolves a single bounded exchange between a player and an entity.

Provides:
- Player attack with the improvise bonus for bare-handed fighting
- Dodge checks scaled by the attacker's power
- Entity counter-attack and the standalone entity-attacks-first path

The system only changes the two combatants' hp (and the dodge skill on a
level-up). XP, loot and persistence belong to the caller.
"""

from __future__ import annotations
import math
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List

from . import events as ev
from . import rules
from .events import Event

if TYPE_CHECKING:
    from ..world import WorldEntity, WorldPlayer


@dataclass
class CombatConfig:
    """Configuration for combat mechanics."""
    dodge_base_difficulty: int = 65  # plus half the attacker's attack
    improvise_bonus_per_level: float = 0.5  # bare-handed bonus per improvise level
    entity_attack_stat: int = 10  # entities attack with a flat stat (modifier 0)


@dataclass
class CombatResult:
    """Outcome of one exchange."""
    events: List[Event] = field(default_factory=list)
    entity_dead: bool = False
    player_dead: bool = False


@dataclass
class DodgeResult:
    events: List[Event] = field(default_factory=list)
    dodged: bool = False


class CombatSystem:
    """
    Stateless combat resolver.

    Usage:
        combat = CombatSystem(rng=random.Random(), config=CombatConfig())
        result = combat.resolve_exchange(player, entity)
        result = combat.resolve_entity_attack(player, entity)
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        config: CombatConfig | None = None,
    ) -> None:
        self.rng = rng or random.Random()
        self.config = config or CombatConfig()

    # ---------- Exchanges ----------

    def resolve_exchange(self, player: "WorldPlayer", entity: "WorldEntity") -> CombatResult:
        """
        Player attacks, then (if the entity survives) the entity counter-attacks.

        Order is fixed: player attack, entity death check, dodge check,
        entity attack, player death check.
        """
        result = CombatResult()

        weapon = player.equipment.get("weapon")
        weapon_attack = player.get_attack()

        if weapon is None:
            improvise_mod = self.improvise_bonus(player.get_skill_level("improvise"))
            weapon_attack += improvise_mod
            if improvise_mod > 0:
                result.events.append(ev.skill_check(
                    rules.SKILLS["improvise"].label,
                    "passive",
                    f"+{improvise_mod} improvised attack bonus",
                ))

        damage = rules.calculate_damage(weapon_attack, player.stats["strength"], entity.defense)
        entity.hp = max(0, entity.hp - damage)
        result.events.append({
            "type": "player_attack",
            "damage": damage,
            "target_id": entity.entity_id,
            "target_name": entity.name,
            "target_hp": entity.hp,
            "target_max_hp": entity.max_hp,
            "weapon_used": weapon.name if weapon else "bare fists (improvised)",
        })

        if entity.hp <= 0:
            result.events.append({
                "type": "entity_killed",
                "entity_id": entity.entity_id,
                "entity_name": entity.name,
                "entity_class": entity.entity_class,
                "action_tags": list(entity.action_tags),
                "xp_reward": entity.xp_reward,
            })
            result.entity_dead = True
            return result

        counter = self.resolve_entity_attack(player, entity)
        result.events.extend(counter.events)
        result.player_dead = counter.player_dead
        return result

    def resolve_entity_attack(self, player: "WorldPlayer", entity: "WorldEntity") -> CombatResult:
        """A single attack from an entity with no player action before it."""
        result = CombatResult()

        dodge = self.roll_dodge(player, entity)
        result.events.extend(dodge.events)
        if dodge.dodged:
            return result

        damage = rules.calculate_damage(
            entity.attack, self.config.entity_attack_stat, player.get_defense()
        )
        player.hp = max(0, player.hp - damage)
        result.events.append({
            "type": "entity_attack",
            "damage": damage,
            "attacker_id": entity.entity_id,
            "attacker_name": entity.name,
            "attacker_tags": list(entity.action_tags),
            "player_hp": player.hp,
            "player_max_hp": player.max_hp,
        })

        if player.hp <= 0:
            result.events.append(ev.player_death(entity.name))
            result.player_dead = True
        return result

    # ---------- Skill interactions ----------

    def improvise_bonus(self, improvise_level: int) -> int:
        return math.floor(improvise_level * self.config.improvise_bonus_per_level)

    def dodge_difficulty(self, attack: int) -> int:
        return self.config.dodge_base_difficulty + attack // 2

    def roll_dodge(self, player: "WorldPlayer", entity: "WorldEntity") -> DodgeResult:
        """
        Dodge check against an incoming attack.

        A failed dodge emits nothing; the attack simply lands.
        """
        result = DodgeResult()
        dodge_level = player.get_skill_level("dodge")
        check = rules.roll_skill_check(
            dodge_level,
            player.get_skill_stat("dodge"),
            self.dodge_difficulty(entity.attack),
            rng=self.rng,
        )
        if not check.success:
            return result

        result.dodged = True
        result.events.append(ev.skill_check(
            rules.SKILLS["dodge"].label,
            "success",
            f"Dodged {entity.name}'s attack!",
            roll=check.roll,
            threshold=check.threshold,
        ))
        if rules.check_skill_level_up(dodge_level, rng=self.rng):
            player.skills["dodge"] = dodge_level + 1
            result.events.append(
                ev.skill_level_up(rules.SKILLS["dodge"].label, player.skills["dodge"])
            )
        return result
