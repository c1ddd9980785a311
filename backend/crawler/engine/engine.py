# backend/crawler/engine/engine.py
"""
ActionEngine - resolves one ``(player_id, intent)`` turn into an ordered event log.

Turn flow:
1. Load the player (missing -> "not found", dead -> "already dead")
2. Validate the intent into its variant (unknown action -> error)
3. Dispatch to the action handler through the ActionRouter
4. Post-turn aggro pass: hostile entities in the room attack once each

Handlers persist what they change; rooms and entities are re-read from the
store on every call and written back last-write-wins.
"""

from __future__ import annotations
import dataclasses
import logging
import math
import random
from dataclasses import dataclass, field
from typing import Any, List, Mapping

from ..store import DocumentStore
from .player_state import PlayerStateStore
from .repository import WorldRepository
from .systems import events as ev
from .systems import rules
from .systems.combat import CombatConfig, CombatSystem
from .systems.context import TurnContext
from .systems.events import Event
from .systems.intents import (INTENT_TYPES, AllocateIntent, AttackIntent,
                              BaseIntent, EquipIntent, FleeIntent,
                              InspectIntent, IntentError, InventoryIntent,
                              LookIntent, MapIntent, MoveIntent, OpenIntent,
                              PickupIntent, StatsIntent, TalkIntent,
                              UnknownIntent, UseIntent, parse_intent)
from .systems.router import ActionRouter
from .world import (EQUIPMENT_SLOTS, ItemInstance, PlayerId, WorldEntity,
                    WorldPlayer, WorldRoom)

logger = logging.getLogger(__name__)

# Skill check difficulties
FLEE_DIFFICULTY = 70
SENSE_DANGER_BASE_DIFFICULTY = 55
SENSE_DANGER_PER_HAZARD = 10

# Per-hazard-level chance that a trap fires on entry
TRAP_CHANCE_PER_HAZARD = 0.15

# Item spawn chance on entering a room
SCAVENGE_BASE_CHANCE = 0.25
SCAVENGE_CHANCE_PER_LEVEL = 0.02


@dataclass
class TurnResult:
    """What a turn produced: the event log, the player after it, and the room shown."""
    events: List[Event] = field(default_factory=list)
    player: WorldPlayer | None = None
    room: WorldRoom | None = None


class ActionEngine:
    """
    Per-turn dispatcher over the document store.

    Usage:
        engine = ActionEngine(store)
        result = await engine.process_action(player_id, {"action": "look"})
    """

    def __init__(
        self,
        store: DocumentStore,
        rng: random.Random | None = None,
        combat_config: CombatConfig | None = None,
        players: PlayerStateStore | None = None,
    ) -> None:
        self.store = store
        self.rng = rng or random.Random()
        self.players = players or PlayerStateStore(store)
        self.world = WorldRepository(store)
        self.combat = CombatSystem(rng=self.rng, config=combat_config)

        self.router = ActionRouter()
        self._register_action_handlers()
        self.router.verify_exhaustive(INTENT_TYPES)

    def _register_action_handlers(self) -> None:
        """Wire every intent variant to its handler."""
        register = self.router.register_handler
        register(MoveIntent, self._handle_move, category="movement",
                 description="Move through an exit of the current room")
        register(LookIntent, self._handle_look, category="movement",
                 description="Describe the current room")
        register(MapIntent, self._handle_map, category="movement",
                 description="List explored rooms")
        register(FleeIntent, self._handle_flee, category="movement",
                 description="Try to escape hostile entities through a random exit")
        register(AttackIntent, self._handle_attack, category="combat",
                 description="Attack an entity in the room")
        register(PickupIntent, self._handle_pickup, category="inventory",
                 description="Pick up an item from the floor")
        register(UseIntent, self._handle_use, category="inventory",
                 description="Use a consumable from your inventory")
        register(EquipIntent, self._handle_equip, category="inventory",
                 description="Equip an item into its slot")
        register(OpenIntent, self._handle_open, category="inventory",
                 description="Open a loot box")
        register(InspectIntent, self._handle_inspect, category="inventory",
                 description="Examine an item in your inventory or the room")
        register(InventoryIntent, self._handle_inventory, category="character",
                 description="Show inventory and equipment")
        register(StatsIntent, self._handle_stats, category="character",
                 description="Show your character sheet")
        register(AllocateIntent, self._handle_allocate, category="character",
                 description="Spend a stat point")
        register(TalkIntent, self._handle_talk, category="social",
                 description="Talk to someone in the room")
        register(UnknownIntent, self._handle_unknown, category="misc",
                 description="Input the parser could not classify")

    # ---------- Turn entry point ----------

    async def process_action(
        self,
        player_id: PlayerId,
        intent: BaseIntent | Mapping[str, Any],
    ) -> TurnResult:
        """
        Resolve one turn.

        Gameplay failures come back as a single ``error`` event. Store errors
        propagate unchanged.
        """
        player = await self.players.load(player_id)
        if player is None:
            return TurnResult(events=[ev.error("Player not found.")], player=None)
        if not player.alive:
            return TurnResult(
                events=[ev.error("You are dead. Your journey has ended.")],
                player=player,
            )

        try:
            parsed = parse_intent(intent)
        except IntentError as exc:
            return TurnResult(events=[ev.error(str(exc))], player=player)

        logger.debug("Player %s: %s", player_id, parsed)
        turn = TurnContext(player)
        await self.router.dispatch(turn, parsed)

        if not turn.failed and player.alive and not isinstance(parsed, MoveIntent):
            await self._run_aggro_pass(turn)

        return TurnResult(events=turn.events, player=player, room=turn.room)

    # ---------- Movement ----------

    async def _handle_move(self, turn: TurnContext, intent: MoveIntent) -> None:
        player = turn.player
        current = await self.world.get_room(player.location)
        if current is None:
            turn.fail("Current location not found.")
            return

        direction = (intent.direction or "").strip().lower()
        exits = current.exits()
        if direction not in exits:
            turn.fail(
                f"You can't go {direction or 'that way'}. "
                f"Exits: {', '.join(current.exit_labels()) or 'none'}"
            )
            return

        new_room = await self.world.get_room(exits[direction])
        if new_room is None:
            logger.warning("Room %s exit %s leads to missing room %s",
                           current.room_id, direction, exits[direction])
            turn.fail("Destination room not found.")
            return

        player.location = new_room.room_id
        player.mark_explored(new_room.room_id)

        if new_room.hazard_level > 0:
            self._roll_hazards(turn, new_room)

        if player.alive:
            await self._roll_scavenge(turn, new_room)

        turn.emit(ev.move(current.room_id, new_room.room_id, direction, intent.context))
        turn.emit(await self._describe_room(new_room))
        turn.room = new_room

        await self.players.save(player)

    def _roll_hazards(self, turn: TurnContext, room: WorldRoom) -> None:
        """Sense Danger check, then a trap roll scaled by the room's hazard level."""
        player = turn.player
        sense_level = player.get_skill_level("sense_danger")
        check = rules.roll_skill_check(
            sense_level,
            player.get_skill_stat("sense_danger"),
            SENSE_DANGER_BASE_DIFFICULTY + room.hazard_level * SENSE_DANGER_PER_HAZARD,
            rng=self.rng,
        )
        if check.success:
            turn.emit(ev.skill_check(
                rules.SKILLS["sense_danger"].label,
                "success",
                "Something feels wrong about this place...",
                roll=check.roll, threshold=check.threshold,
            ))
            self._maybe_level_skill(turn, "sense_danger")

        if self.rng.random() < room.hazard_level * TRAP_CHANCE_PER_HAZARD:
            damage = rules.calculate_hazard_damage(room.hazard_level, rng=self.rng)
            player.take_damage(damage)
            turn.emit({
                "type": "hazard_damage",
                "damage": damage,
                "hazard_level": room.hazard_level,
                "player_hp": player.hp,
                "player_max_hp": player.max_hp,
            })
            if not player.alive:
                logger.info("Player %s killed by a trap in %s", player.id, room.room_id)
                turn.emit(ev.player_death("a hidden trap"))

    async def _roll_scavenge(self, turn: TurnContext, room: WorldRoom) -> None:
        """Chance to find an item on the floor of the room just entered."""
        player = turn.player
        scavenge_level = player.get_skill_level("scavenge")
        chance = SCAVENGE_BASE_CHANCE + scavenge_level * SCAVENGE_CHANCE_PER_LEVEL
        if self.rng.random() >= chance:
            return

        spawnable = await self.world.list_spawnable_items()
        if not spawnable:
            return
        item_id = rules.roll_by_rarity(
            [{"item_id": i.item_id, "rarity": i.rarity} for i in spawnable],
            rng=self.rng,
        )
        spawned = next(i for i in spawnable if i.item_id == item_id)

        room.items.append(spawned.item_id)
        await self.world.save_room(room)
        turn.emit({
            "type": "item_spawn",
            "item_id": spawned.item_id,
            "item_name": spawned.name,
            "item_type": spawned.type,
            "item_tier": spawned.tier,
        })
        self._maybe_level_skill(turn, "scavenge")

    async def _handle_look(self, turn: TurnContext, intent: LookIntent) -> None:
        room = await self.world.get_room(turn.player.location)
        if room is None:
            turn.fail("Location data missing.")
            return
        turn.emit(await self._describe_room(room))
        turn.room = room

    async def _handle_map(self, turn: TurnContext, intent: MapIntent) -> None:
        turn.emit({
            "type": "map_display",
            "current_room": turn.player.location,
            "explored": list(turn.player.explored),
        })

    async def _handle_flee(self, turn: TurnContext, intent: FleeIntent) -> None:
        player = turn.player
        room = await self.world.get_room(player.location)
        if room is None:
            turn.fail("Location data missing.")
            return

        hostiles = [e for e in await self.world.get_entities(room.entities) if e.is_hostile()]
        if not hostiles:
            turn.fail("Nothing to flee from. You can just walk out.")
            return

        exits = list(room.exits().items())
        if not exits:
            turn.fail("No exits! You're trapped.")
            return

        flee_level = player.get_skill_level("flee")
        check = rules.roll_skill_check(
            flee_level, player.get_skill_stat("flee"), FLEE_DIFFICULTY, rng=self.rng
        )
        turn.emit(ev.skill_check(
            rules.SKILLS["flee"].label,
            "success" if check.success else "fail",
            "You break free and sprint for the exit!" if check.success
            else "You stumble! The enemies close in...",
            roll=check.roll,
            threshold=check.threshold,
        ))

        if check.success:
            self._maybe_level_skill(turn, "flee")
            direction, dest_id = exits[math.floor(self.rng.random() * len(exits))]
            new_room = await self.world.get_room(dest_id)
            if new_room is not None:
                player.location = new_room.room_id
                player.mark_explored(new_room.room_id)
                turn.emit(ev.move(room.room_id, new_room.room_id, direction, "Fled in a panic!"))
                turn.emit(await self._describe_room(new_room))
                turn.room = new_room
            else:
                logger.warning("Flee exit %s from %s leads to missing room %s",
                               direction, room.room_id, dest_id)
        else:
            attacker = hostiles[0]
            turn.engage(attacker.entity_id)
            result = self.combat.resolve_entity_attack(player, attacker)
            turn.extend(result.events)
            if result.player_dead:
                self._kill_player(player, attacker.name)

        await self.players.save(player)

    # ---------- Combat ----------

    async def _handle_attack(self, turn: TurnContext, intent: AttackIntent) -> None:
        player = turn.player
        target = (intent.target or "").strip()
        if not target:
            turn.fail("Attack what?")
            return

        room = await self.world.get_room(player.location)
        if room is None:
            turn.fail("Location data missing.")
            return

        entity = await self._find_entity(room, target)
        if entity is None:
            turn.fail(f'No target "{target}" found here.')
            return
        if not entity.is_alive():
            turn.fail(f"{entity.name} is already dead.")
            return

        turn.engage(entity.entity_id)
        result = self.combat.resolve_exchange(player, entity)
        turn.extend(result.events)

        if result.entity_dead:
            logger.info("Player %s killed %s", player.id, entity.entity_id)
            player.statistics["entities_killed"] = player.statistics.get("entities_killed", 0) + 1
            self._award_xp(turn, entity.xp_reward)

            room_changed = await self._drop_loot(turn, room, entity)
            if not entity.respawns:
                room.entities = [e for e in room.entities if e != entity.entity_id]
                room_changed = True
            if room_changed:
                await self.world.save_room(room)

        await self.world.save_entity(entity)

        if result.player_dead:
            self._kill_player(player, entity.name)

        await self.players.save(player)

    async def _find_entity(self, room: WorldRoom, target: str) -> WorldEntity | None:
        """Exact id match first, then case-insensitive name substring (live ones preferred)."""
        if target in room.entities:
            entity = await self.world.get_entity(target)
            if entity is not None:
                return entity

        needle = target.lower()
        candidates = [
            e for e in await self.world.get_entities(room.entities)
            if needle in e.name.lower()
        ]
        for entity in candidates:
            if entity.is_alive():
                return entity
        return candidates[0] if candidates else None

    async def _drop_loot(self, turn: TurnContext, room: WorldRoom, entity: WorldEntity) -> bool:
        """Roll the entity's loot table onto the floor. Missing data just means no loot."""
        if not entity.loot_table_id:
            return False
        table = await self.world.get_loot_table(entity.loot_table_id)
        if table is None or not table.entries:
            logger.warning("Loot table %s for %s not found", entity.loot_table_id, entity.entity_id)
            return False

        item_id = rules.roll_loot(table.entries, rng=self.rng)
        item = await self.world.get_item(item_id)
        if item is None:
            logger.warning("Loot item %s from table %s not found", item_id, table.table_id)
            return False

        room.items.append(item.item_id)
        turn.emit({
            "type": "loot_dropped",
            "item_id": item.item_id,
            "item_name": item.name,
            "item_tier": item.tier,
        })
        return True

    async def _run_aggro_pass(self, turn: TurnContext) -> None:
        """
        Every hostile, living entity in the player's room attacks once.

        Entities the player already engaged this turn are skipped. Stops as
        soon as the player dies; one save covers all damage from the pass.
        """
        player = turn.player
        room = await self.world.get_room(player.location)
        if room is None or not room.entities:
            return

        attacked = False
        for entity_id in room.entities:
            if turn.has_engaged(entity_id):
                continue
            entity = await self.world.get_entity(entity_id)
            if entity is None or not entity.is_hostile():
                continue

            result = self.combat.resolve_entity_attack(player, entity)
            turn.extend(result.events)
            attacked = True
            if result.player_dead:
                self._kill_player(player, entity.name)
                break

        if attacked:
            await self.players.save(player)

    def _kill_player(self, player: WorldPlayer, killed_by: str) -> None:
        player.alive = False
        logger.info("Player %s was killed by %s", player.id, killed_by)

    # ---------- Progression ----------

    def _award_xp(self, turn: TurnContext, amount: int) -> None:
        player = turn.player
        player.xp += amount
        turn.emit(ev.xp_gained(amount, player.xp))
        turn.extend(self._check_level_up(player))

    def _check_level_up(self, player: WorldPlayer) -> List[Event]:
        """Level up as many times as the XP pool allows, carrying the remainder."""
        events: List[Event] = []
        while player.xp >= rules.xp_to_next_level(player.level):
            player.xp -= rules.xp_to_next_level(player.level)
            player.level += 1
            player.stat_points_available += rules.STAT_POINTS_PER_LEVEL
            player.max_hp = rules.calculate_max_hp(player.level, player.stats["constitution"])
            player.hp = player.max_hp  # Full heal on level up
            logger.info("Player %s reached level %d", player.id, player.level)
            events.append(ev.level_up(player.level, player.stat_points_available, player.max_hp))
        return events

    def _maybe_level_skill(self, turn: TurnContext, skill: str) -> None:
        level = turn.player.get_skill_level(skill)
        if rules.check_skill_level_up(level, rng=self.rng):
            turn.player.skills[skill] = level + 1
            turn.emit(ev.skill_level_up(rules.SKILLS[skill].label, level + 1))

    async def _handle_allocate(self, turn: TurnContext, intent: AllocateIntent) -> None:
        player = turn.player
        if player.stat_points_available <= 0:
            turn.fail("No stat points available.")
            return

        stat = rules.resolve_stat_name(intent.target)
        if stat is None:
            turn.fail(f"Invalid stat: {intent.target}. Valid: {', '.join(rules.STAT_NAMES)}")
            return

        player.stats[stat] += 1
        player.stat_points_available -= 1
        player.max_hp = rules.calculate_max_hp(player.level, player.stats["constitution"])
        player.hp = min(player.hp, player.max_hp)

        turn.emit({
            "type": "stat_allocated",
            "stat": stat,
            "new_value": player.stats[stat],
            "stat_points_remaining": player.stat_points_available,
            "new_max_hp": player.max_hp,
        })
        await self.players.save(player)

    # ---------- Items ----------

    async def _handle_pickup(self, turn: TurnContext, intent: PickupIntent) -> None:
        player = turn.player
        room = await self.world.get_room(player.location)
        if room is None:
            turn.fail("Location data missing.")
            return

        capacity = player.get_inventory_capacity()
        if player.inventory_full():
            turn.fail(f"Inventory full ({capacity} slots). Drop or use something first.")
            return

        target = (intent.target or "").strip()
        if not target:
            turn.fail("Pick up what?")
            return

        found_index = -1
        item: ItemInstance | None = None
        for idx, item_id in enumerate(room.items):
            candidate = await self.world.get_item(item_id)
            if candidate is None:
                continue
            if item_id == target or candidate.matches(target):
                found_index, item = idx, candidate
                break

        if item is None:
            turn.fail(f'No item "{target}" found here.')
            return

        room.items.pop(found_index)
        await self.world.save_room(room)

        player.inventory.append(item)
        turn.emit({
            "type": "item_pickup",
            "item_id": item.item_id,
            "item_name": item.name,
            "item_type": item.type,
            "item_tier": item.tier,
        })
        await self.players.save(player)

    async def _handle_use(self, turn: TurnContext, intent: UseIntent) -> None:
        player = turn.player
        target = (intent.target or "").strip()
        if not target:
            turn.fail("Use what?")
            return

        idx = player.find_inventory_item(target)
        if idx == -1:
            turn.fail(f'You don\'t have "{target}" in your inventory.')
            return

        item = player.inventory[idx]
        if item.type != "consumable":
            turn.fail(f'{item.name} is not consumable. Try "equip" for gear.')
            return

        heal = item.stat("heal_amount")
        amount = max(0, min(heal, player.max_hp - player.hp))
        player.hp += amount
        player.inventory.pop(idx)

        turn.emit({
            "type": "item_used",
            "item_id": item.item_id,
            "item_name": item.name,
            "effect": "heal" if heal else "none",
            "amount": amount,
            "player_hp": player.hp,
            "player_max_hp": player.max_hp,
        })
        await self.players.save(player)

    async def _handle_equip(self, turn: TurnContext, intent: EquipIntent) -> None:
        player = turn.player
        target = (intent.target or "").strip()
        if not target:
            turn.fail("Equip what?")
            return

        idx = player.find_inventory_item(target)
        if idx == -1:
            turn.fail(f'You don\'t have "{target}" in your inventory.')
            return

        item = player.inventory[idx]
        slot = item.slot or ("weapon" if item.type == "weapon" else None)
        if slot not in EQUIPMENT_SLOTS:
            turn.fail(f"{item.name} cannot be equipped.")
            return
        if item.slot != slot:
            item = dataclasses.replace(item, slot=slot)

        player.inventory.pop(idx)
        current = player.equipment.get(slot)
        if current is not None:
            player.inventory.append(current)
            turn.emit({"type": "item_unequipped", "item_name": current.name, "slot": slot})

        player.equipment[slot] = item
        player.max_hp = rules.calculate_max_hp(player.level, player.stats["constitution"])
        player.hp = min(player.hp, player.max_hp)

        turn.emit({
            "type": "item_equipped",
            "item_name": item.name,
            "item_type": item.type,
            "slot": slot,
            "stats": dict(item.stats),
        })
        await self.players.save(player)

    async def _handle_open(self, turn: TurnContext, intent: OpenIntent) -> None:
        player = turn.player
        target = (intent.target or "").strip()

        idx = player.find_inventory_item(target, item_type="lootbox")
        if idx == -1:
            turn.fail(f'No loot box "{target}" in inventory.')
            return

        box = player.inventory[idx]
        table = await self.world.get_loot_table(f"lootbox_{box.tier}")
        if table is None:
            turn.fail(f"Loot table for {box.tier} not found.")
            return

        item_id = rules.roll_loot(table.entries, rng=self.rng)
        item = await self.world.get_item(item_id)

        player.inventory.pop(idx)
        if item is not None:
            player.inventory.append(item)
            turn.emit({
                "type": "lootbox_opened",
                "box_name": box.name,
                "box_tier": box.tier,
                "received_item": item.name,
                "received_tier": item.tier,
                "received_type": item.type,
            })
        else:
            logger.warning("Loot item %s from %s not found", item_id, table.table_id)

        player.statistics["lootboxes_opened"] = player.statistics.get("lootboxes_opened", 0) + 1
        xp = rules.lootbox_xp_reward(box.tier)
        player.xp += xp
        turn.emit({"type": "lootbox_xp", "amount": xp, "tier": box.tier, "total_xp": player.xp})
        turn.extend(self._check_level_up(player))

        await self.players.save(player)

    async def _handle_inspect(self, turn: TurnContext, intent: InspectIntent) -> None:
        target = (intent.target or "").strip()
        if not target:
            turn.fail("Inspect what?")
            return

        player = turn.player
        idx = player.find_inventory_item(target)
        if idx != -1:
            turn.emit({
                "type": "item_inspected",
                "location": "inventory",
                "item": player.inventory[idx].to_doc(),
            })
            return

        room = await self.world.get_room(player.location)
        for item in await self.world.get_items(room.items if room else []):
            if item.matches(target):
                turn.emit({"type": "item_inspected", "location": "room", "item": item.to_doc()})
                return

        turn.fail(f'No item matching "{target}" found in inventory or room.')

    # ---------- Read-only views ----------

    async def _handle_inventory(self, turn: TurnContext, intent: InventoryIntent) -> None:
        player = turn.player
        turn.emit({
            "type": "inventory_list",
            "inventory": [
                {"item_id": i.item_id, "name": i.name, "type": i.type, "tier": i.tier}
                for i in player.inventory
            ],
            "equipment": {
                slot: (item.name if item else None)
                for slot, item in player.equipment.items()
            },
            "used": len(player.inventory),
            "capacity": player.get_inventory_capacity(),
        })

    async def _handle_stats(self, turn: TurnContext, intent: StatsIntent) -> None:
        player = turn.player
        turn.emit({
            "type": "stats_display",
            "name": player.name,
            "level": player.level,
            "xp": player.xp,
            "xp_to_next": rules.xp_to_next_level(player.level),
            "hp": player.hp,
            "max_hp": player.max_hp,
            "stats": dict(player.stats),
            "skills": dict(player.skills),
            "attack": player.get_attack(),
            "defense": player.get_defense(),
            "stat_points_available": player.stat_points_available,
            "statistics": dict(player.statistics),
        })

    async def _handle_talk(self, turn: TurnContext, intent: TalkIntent) -> None:
        target = (intent.target or "").strip()
        if not target:
            turn.fail("Talk to whom?")
            return

        room = await self.world.get_room(turn.player.location)
        entities = await self.world.get_entities(room.entities if room else [])
        speaker = next((e for e in entities if e.is_alive() and e.matches(target)), None)
        if speaker is None:
            turn.fail(f'Nobody named "{target}" here to talk to.')
            return

        if speaker.dialogue:
            line = speaker.dialogue[math.floor(self.rng.random() * len(speaker.dialogue))]
        else:
            line = f"{speaker.name} ignores you."

        turn.emit({
            "type": "talk",
            "entity_id": speaker.entity_id,
            "entity_name": speaker.name,
            "entity_class": speaker.entity_class,
            "message": line,
            "action_tags": list(speaker.action_tags),
        })

    async def _handle_unknown(self, turn: TurnContext, intent: UnknownIntent) -> None:
        turn.emit({"type": "unknown_action", "text": intent.text})

    async def _describe_room(self, room: WorldRoom) -> Event:
        entities = [e for e in await self.world.get_entities(room.entities) if e.is_alive()]
        items = await self.world.get_items(room.items)
        return ev.room_description(room, entities, items)
