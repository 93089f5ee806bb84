"""
地牢探索

A multi-floor run of unlogged encounters. Rewards pile up on the run and
are only committed on completion:

    ACTIVE -> COMPLETED | FAILED | ABANDONED

Death and abandon throw away everything accumulated. Only completion
touches player skills, gold and the dungeon loot store.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional

from realm.combat.models.combat_result import ActionResult
from realm.combat.models.dungeon_run import DungeonRun, DungeonStatus
from realm.combat.models.monster import Monster
from realm.combat.rules import HITPOINTS_SKILL, hitpoints_xp, split_combat_xp
from realm.combat.simulation import simulate_encounter
from realm.combat.stats import sum_equipment
from realm.models.catalog import Dungeon, DungeonFloor
from realm.models.player import Inventory, PlayerState, utcnow

from .combat_base import CombatServiceBase
from .document_store import Transaction
from .dungeon_loot_store import DungeonLootStore
from .exceptions import CombatStateError
from .player_repository import (
    DUNGEON_FLOW,
    ENCOUNTER_FLOW,
    active_marker_path,
    dungeon_run_path,
    to_document,
)

logger = logging.getLogger(__name__)

ALREADY_IN_DUNGEON = "You are already in a dungeon."
NOT_IN_DUNGEON = "You are not in a dungeon."


class DungeonService(CombatServiceBase):
    """地牢状态机"""

    def __init__(self, *args, loot_store: Optional[DungeonLootStore] = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.loot_store = loot_store or DungeonLootStore(
            self.store, self.inventory, self.config.dungeon_loot_expiry_days
        )

    # ============================================
    # 读取
    # ============================================

    def _check_run(self, player_id: str, run_id: str, data: Optional[Dict[str, Any]]) -> DungeonRun:
        if data is None:
            logger.error("active dungeon marker for %s points at missing run %s", player_id, run_id)
            raise CombatStateError(f"active run {run_id} not found", player_id=player_id)
        run = DungeonRun(**data)
        if not run.is_active:
            logger.error("active dungeon marker for %s points at %s run %s", player_id, run.status.value, run_id)
            raise CombatStateError(f"run {run_id} is {run.status.value} but still marked active", player_id=player_id)
        return run

    def _load_run(self, txn: Transaction, player_id: str) -> Optional[DungeonRun]:
        marker = txn.get(active_marker_path(player_id, DUNGEON_FLOW))
        if marker is None:
            return None
        run_id = marker.get("run_id", "")
        return self._check_run(player_id, run_id, txn.get(dungeon_run_path(player_id, run_id)))

    def _dungeon_for(self, run: DungeonRun) -> Dungeon:
        dungeon = self.catalog.get_dungeon(run.dungeon_id)
        if dungeon is None:
            raise CombatStateError(f"dungeon {run.dungeon_id} missing from catalog", player_id=run.player_id)
        return dungeon

    def _floor_for(self, run: DungeonRun, dungeon: Dungeon) -> DungeonFloor:
        floor = dungeon.get_floor(run.current_floor)
        if floor is None:
            raise CombatStateError(
                f"dungeon {dungeon.dungeon_id} has no floor {run.current_floor}", player_id=run.player_id
            )
        return floor

    # ============================================
    # 写入
    # ============================================

    def _persist(self, txn: Transaction, player: PlayerState, inventory: Optional[Inventory], run: DungeonRun) -> None:
        run.updated_at = utcnow()
        self.repository.save_player(txn, player)
        if inventory is not None:
            self.repository.save_inventory(txn, inventory)
        txn.set(dungeon_run_path(player.player_id, run.run_id), to_document(run))
        if not run.is_active:
            txn.delete(active_marker_path(player.player_id, DUNGEON_FLOW))

    # ============================================
    # 规则
    # ============================================

    def select_monster(self, run: DungeonRun, dungeon: Dungeon, floor: DungeonFloor) -> Optional[Monster]:
        """
        The last monster of a boss floor is the dungeon boss, if one is
        configured. Everything else is a weighted pick from the floor table.
        """
        if (
            floor.is_boss_floor
            and run.monsters_defeated == run.total_monsters_on_floor - 1
            and dungeon.boss_monster_id
        ):
            boss = self.catalog.get_monster(dungeon.boss_monster_id)
            if boss is not None:
                return boss

        spawns = [s for s in floor.spawns if self.catalog.get_monster(s.monster_id) is not None]
        pick = self.dice.weighted_choice(spawns, [s.weight for s in spawns])
        if pick is None:
            return None
        return self.catalog.get_monster(pick.monster_id)

    def _fail(self, player: PlayerState, run: DungeonRun) -> Dict[str, Any]:
        forfeited = run.forfeit_rewards()
        run.status = DungeonStatus.FAILED
        self._apply_death(player, self.clock())
        logger.info("%s died in %s (run %s), forfeiting %s", player.player_id, run.dungeon_id, run.run_id, forfeited)
        return {
            "forfeited": forfeited,
            "energy": player.energy,
            "infirmary": self.infirmary.status(player),
        }

    def _complete(self, txn: Transaction, player: PlayerState, run: DungeonRun, dungeon: Dungeon) -> Dict[str, Any]:
        """Add the completion bonus, then commit everything accumulated."""
        bonus_gold = self.dice.roll(dungeon.gold_reward_min, dungeon.gold_reward_max) if dungeon.gold_reward_max > 0 else 0
        run.add_xp(dungeon.xp_reward_base)
        run.add_gold(bonus_gold)
        run.status = DungeonStatus.COMPLETED

        style = self.styles.resolve(run.weapon_subtype, run.attack_style_index)
        skill_xp = split_combat_xp(run.xp_accumulated, style.xp_skills)
        gains = [self.skills.add_xp(player, skill, xp).to_dict() for skill, xp in skill_xp.items() if xp > 0]
        hp_xp = hitpoints_xp(run.xp_accumulated)
        if hp_xp > 0:
            gains.append(self.skills.add_xp(player, HITPOINTS_SKILL, hp_xp).to_dict())

        player.gold += run.gold_accumulated
        # Reads the loot entries, so it runs before _persist writes anything.
        self.loot_store.deposit_loot(txn, player.player_id, run.kingdom_id, run.loot_accumulated, now=self.clock())

        logger.info(
            "%s completed %s: xp=%d gold=%d items=%s",
            player.player_id,
            dungeon.dungeon_id,
            run.xp_accumulated,
            run.gold_accumulated,
            run.loot_accumulated,
        )
        return {
            "completion_bonus": {"xp": dungeon.xp_reward_base, "gold": bonus_gold},
            "total_rewards": {
                "xp": run.xp_accumulated,
                "gold": run.gold_accumulated,
                "skills": gains,
                "items": dict(run.loot_accumulated),
            },
        }

    # ============================================
    # 公共接口
    # ============================================

    async def enter_dungeon(self, player_id: str, dungeon_id: str, style_index: int = 0) -> ActionResult:
        """进入地牢: style is resolved once here and fixed for the run."""

        def _enter(txn: Transaction) -> ActionResult:
            player = self.repository.load_player(txn, player_id)
            inventory = self.repository.load_inventory(txn, player_id)
            encounter_marker = txn.get(active_marker_path(player_id, ENCOUNTER_FLOW))
            dungeon_marker = txn.get(active_marker_path(player_id, DUNGEON_FLOW))
            now = self.clock()

            blocker = self._fight_blocker(player, now, "enter a dungeon")
            if blocker:
                return ActionResult.rejected_with(blocker)
            if encounter_marker is not None:
                return ActionResult.rejected_with("You are in combat and cannot enter a dungeon.")
            if dungeon_marker is not None:
                return ActionResult.rejected_with(ALREADY_IN_DUNGEON)

            dungeon = self.catalog.get_dungeon(dungeon_id)
            if dungeon is None:
                return ActionResult.rejected_with("Dungeon not found.")
            first_floor = dungeon.get_floor(1)
            if first_floor is None:
                return ActionResult.rejected_with("This dungeon has no floors.")
            if self.skills.combat_level(player) < dungeon.min_combat_level:
                return ActionResult.rejected_with(
                    f"You need combat level {dungeon.min_combat_level} to enter this dungeon."
                )
            if not self.energy.consume_energy(player, dungeon.energy_cost):
                return ActionResult.rejected_with(f"You need {dungeon.energy_cost} energy to enter this dungeon.")

            weapon_subtype = self.inventory.weapon_subtype(inventory)
            index = self.styles.clamp_index(weapon_subtype, style_index)
            style = self.styles.resolve(weapon_subtype, index)
            run = DungeonRun(
                run_id=f"run_{uuid.uuid4().hex[:12]}",
                player_id=player_id,
                dungeon_id=dungeon.dungeon_id,
                kingdom_id=dungeon.kingdom_id,
                current_floor=1,
                total_monsters_on_floor=first_floor.monster_count,
                training_style=style.training_style,
                attack_style_index=index,
                weapon_subtype=weapon_subtype,
                entry_location=player.location,
                created_at=now,
                updated_at=now,
            )

            self.repository.save_player(txn, player)
            txn.set(dungeon_run_path(player_id, run.run_id), to_document(run))
            txn.create(
                active_marker_path(player_id, DUNGEON_FLOW),
                {"run_id": run.run_id, "created_at": now.isoformat()},
            )
            logger.info("%s entered %s (run %s)", player_id, dungeon.dungeon_id, run.run_id)
            return ActionResult(
                success=True,
                message=f"You enter {dungeon.name}. Floor 1: {first_floor.name}.",
                status=run.status.value,
                data={"run": run.to_view(), "attack_style": style.to_dict(), "energy": player.energy},
            )

        return await self._run_action(player_id, "enter_dungeon", _enter, ALREADY_IN_DUNGEON)

    async def fight_monster(self, player_id: str) -> ActionResult:
        """
        与下一只怪物战斗

        The whole fight is simulated in one step; only the outcome is
        stored on the run.
        """

        def _fight(txn: Transaction) -> ActionResult:
            player = self.repository.load_player(txn, player_id)
            inventory = self.repository.load_inventory(txn, player_id)
            run = self._load_run(txn, player_id)
            if run is None:
                return ActionResult.rejected_with(NOT_IN_DUNGEON)
            if run.is_floor_cleared():
                return ActionResult.rejected_with("This floor is already cleared. Proceed to the next floor.")
            dungeon = self._dungeon_for(run)

            if not player.is_alive():
                death = self._fail(player, run)
                self._persist(txn, player, None, run)
                return self._death_result(run, death)

            floor = self._floor_for(run, dungeon)
            monster = self.select_monster(run, dungeon, floor)
            if monster is None:
                raise CombatStateError(
                    f"dungeon {dungeon.dungeon_id} floor {floor.floor_number} has no spawnable monsters",
                    player_id=player_id,
                )

            setup = self._setup(player, inventory, run.weapon_subtype, run.attack_style_index)
            outcome = simulate_encounter(
                setup.stats,
                player.hp,
                monster,
                setup.style,
                setup.speed,
                setup.effectiveness_against(monster),
                self.dice,
                max_rounds=self.config.max_dungeon_rounds,
            )
            player.hp = outcome.player_hp_remaining
            run.encounters_fought += 1

            if not outcome.player_won:
                death = self._fail(player, run)
                death["combat"] = outcome.to_dict()
                death["monster"] = monster.name
                self._persist(txn, player, None, run)
                return self._death_result(run, death)

            xp = outcome.damage_dealt * self.config.xp_per_damage
            gold = self.loot.roll_gold(monster)
            drops = self.loot.roll_table(monster, floor.loot_multiplier)
            run.add_xp(xp)
            run.add_gold(gold)
            for drop in drops:
                run.add_loot(drop.item_id, drop.quantity)
            run.monsters_defeated += 1

            rewards = {"xp": xp, "gold": gold, "items": [d.to_dict() for d in drops]}
            floor_cleared = run.is_floor_cleared()

            if floor_cleared and dungeon.is_final_floor(run.current_floor):
                summary = self._complete(txn, player, run, dungeon)
                self._persist(txn, player, None, run)
                return ActionResult(
                    success=True,
                    message=f"Dungeon complete! You conquered {dungeon.name}!",
                    status=run.status.value,
                    data={
                        "run": run.to_view(),
                        "monster": monster.name,
                        "combat": outcome.to_dict(),
                        "combat_rewards": rewards,
                        **summary,
                    },
                )

            self._persist(txn, player, None, run)
            return ActionResult(
                success=True,
                message=f"You defeated {monster.name}!",
                status=run.status.value,
                data={
                    "run": run.to_view(),
                    "monster": monster.name,
                    "combat": outcome.to_dict(),
                    "rewards": rewards,
                    "floor_cleared": floor_cleared,
                },
            )

        return await self._run_action(player_id, "fight_monster", _fight, NOT_IN_DUNGEON)

    def _death_result(self, run: DungeonRun, death: Dict[str, Any]) -> ActionResult:
        return ActionResult(
            success=False,
            message="You died in the dungeon. All accumulated rewards are lost.",
            status=run.status.value,
            data={"run": run.to_view(), **death},
        )

    async def next_floor(self, player_id: str) -> ActionResult:
        def _next(txn: Transaction) -> ActionResult:
            player = self.repository.load_player(txn, player_id)
            run = self._load_run(txn, player_id)
            if run is None:
                return ActionResult.rejected_with(NOT_IN_DUNGEON)
            if not run.is_floor_cleared():
                return ActionResult.rejected_with("You must defeat all monsters on this floor first.")
            dungeon = self._dungeon_for(run)
            if dungeon.is_final_floor(run.current_floor):
                return ActionResult.rejected_with("You are on the final floor. Complete the dungeon.")

            floor = dungeon.get_floor(run.current_floor + 1)
            if floor is None:
                raise CombatStateError(
                    f"dungeon {dungeon.dungeon_id} has no floor {run.current_floor + 1}", player_id=player_id
                )
            run.current_floor = floor.floor_number
            run.monsters_defeated = 0
            run.total_monsters_on_floor = floor.monster_count

            self._persist(txn, player, None, run)
            logger.info("%s advanced to floor %d of %s", player_id, run.current_floor, dungeon.dungeon_id)
            return ActionResult(
                success=True,
                message=f"You descend to floor {floor.floor_number}: {floor.name}.",
                status=run.status.value,
                data={"run": run.to_view(), "floor": floor.model_dump(mode="json")},
            )

        return await self._run_action(player_id, "next_floor", _next, NOT_IN_DUNGEON)

    async def abandon_dungeon(self, player_id: str) -> ActionResult:
        """放弃地牢: rewards are discarded, no death penalty."""

        def _abandon(txn: Transaction) -> ActionResult:
            player = self.repository.load_player(txn, player_id)
            run = self._load_run(txn, player_id)
            if run is None:
                return ActionResult.rejected_with(NOT_IN_DUNGEON)
            forfeited = run.forfeit_rewards()
            run.status = DungeonStatus.ABANDONED
            self._persist(txn, player, None, run)
            logger.info("%s abandoned %s (run %s)", player_id, run.dungeon_id, run.run_id)
            return ActionResult(
                success=True,
                message="You fled the dungeon. All accumulated rewards are lost.",
                status=run.status.value,
                data={"run": run.to_view(), "forfeited": forfeited},
            )

        return await self._run_action(player_id, "abandon_dungeon", _abandon, NOT_IN_DUNGEON)

    async def eat_food(self, player_id: str, item_id: str) -> ActionResult:
        """Heal between fights. No monster gets a free hit."""

        def _eat(txn: Transaction) -> ActionResult:
            player = self.repository.load_player(txn, player_id)
            inventory = self.repository.load_inventory(txn, player_id)
            run = self._load_run(txn, player_id)
            if run is None:
                return ActionResult.rejected_with(NOT_IN_DUNGEON)

            rejection, item, hp_restored = self._eat(player, inventory, item_id)
            if rejection:
                return ActionResult.rejected_with(rejection)

            self.repository.save_player(txn, player)
            self.repository.save_inventory(txn, inventory)
            return ActionResult(
                success=True,
                message=f"You ate {item.name} and restored {hp_restored} HP.",
                status=run.status.value,
                data={"hp_restored": hp_restored, "current_hp": player.hp},
            )

        return await self._run_action(player_id, "eat_food", _eat, NOT_IN_DUNGEON)

    async def claim_loot(self, player_id: str, entry_id: str, quantity: Optional[int] = None) -> ActionResult:
        async with self.locks.hold(player_id):
            outcome = await self._read(
                lambda: self.loot_store.claim_loot(player_id, entry_id, quantity, now=self.clock())
            )
        if not outcome["success"]:
            return ActionResult.rejected_with(outcome["message"])
        return ActionResult(
            success=True,
            message=outcome["message"],
            data={"quantity": outcome["quantity"], "remaining": outcome["remaining"]},
        )

    async def claim_all_loot(self, player_id: str, kingdom_id: str) -> ActionResult:
        async with self.locks.hold(player_id):
            outcome = await self._read(
                lambda: self.loot_store.claim_all_loot(player_id, kingdom_id, now=self.clock())
            )
        if not outcome["success"]:
            return ActionResult.rejected_with(outcome["message"])
        return ActionResult(
            success=True,
            message=outcome["message"],
            data={"claimed": outcome["claimed"], "failed": outcome["failed"]},
        )

    # ============================================
    # 查询
    # ============================================

    def _active_run_view(self, player_id: str) -> Optional[DungeonRun]:
        marker = self.store.get(active_marker_path(player_id, DUNGEON_FLOW))
        if marker is None:
            return None
        run_id = marker.get("run_id", "")
        return self._check_run(player_id, run_id, self.store.get(dungeon_run_path(player_id, run_id)))

    async def get_active_run(self, player_id: str) -> Optional[Dict[str, Any]]:
        run = await self._read(lambda: self._active_run_view(player_id))
        if run is None:
            return None
        dungeon = self._dungeon_for(run)
        return {
            "run": run.to_view(),
            "dungeon": dungeon.model_dump(mode="json"),
            "is_final_floor": dungeon.is_final_floor(run.current_floor),
        }

    async def get_dungeon_info(self, player_id: str) -> Dict[str, Any]:
        def _load() -> Dict[str, Any]:
            player = self.repository.get_player(player_id)
            inventory = self.repository.get_inventory(player_id)
            run = self._active_run_view(player_id)
            return {
                "in_dungeon": run is not None,
                "run": run.to_view() if run else None,
                "player_stats": {
                    "hp": player.hp,
                    "max_hp": player.max_hp,
                    "combat_level": self.skills.combat_level(player),
                    "attack": player.skill_level("attack"),
                    "strength": player.skill_level("strength"),
                    "defense": player.skill_level("defense"),
                },
                "equipment": sum_equipment(self.inventory.equipped_items(inventory)).to_dict(),
                "energy": {"current": player.energy},
                "food": self.inventory.food(inventory),
            }

        return await self._read(_load)

    async def get_available_dungeons(self, player_id: str) -> List[Dict[str, Any]]:
        """Dungeons in the player's current kingdom that their level allows."""

        def _load() -> List[Dict[str, Any]]:
            player = self.repository.get_player(player_id)
            kingdom_id = player.location.kingdom_id
            if not kingdom_id:
                return []
            level = self.skills.combat_level(player)
            dungeons = [
                d for d in self.catalog.dungeons()
                if d.kingdom_id == kingdom_id and d.min_combat_level <= level
            ]
            dungeons.sort(key=lambda d: d.min_combat_level)
            return [d.model_dump(mode="json") for d in dungeons]

        return await self._read(_load)

    async def get_player_loot(self, player_id: str, kingdom_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Sweeps expired entries first, then lists what is still claimable."""

        def _load() -> List[Dict[str, Any]]:
            now = self.clock()
            self.loot_store.cleanup_expired(player_id, now=now)
            return [e.model_dump(mode="json") for e in self.loot_store.get_player_loot(player_id, kingdom_id, now)]

        async with self.locks.hold(player_id):
            return await self._read(_load)
