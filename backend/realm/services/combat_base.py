"""
Shared plumbing for the encounter and dungeon state machines.

Each public action:
1. takes the per-player lock;
2. runs one storage transaction in a worker thread (reads first, then
   buffered writes);
3. turns a lost create() race on an active marker into a rejection.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Tuple

from realm.combat.attack_styles import DEFAULT_ATTACK_STYLES, AttackStyleTable
from realm.combat.dice import DiceRoller
from realm.combat.models.combat_result import ActionResult
from realm.combat.models.combatant import EffectiveStats
from realm.combat.models.monster import Monster
from realm.combat.models.style import AttackStyleProfile, SpeedProfile
from realm.combat.stats import aggregate_stats, build_snapshot
from realm.combat.strike import weapon_effectiveness
from realm.config import Settings, settings
from realm.models.catalog import GameCatalog, Item
from realm.models.player import Inventory, PlayerState, utcnow

from .document_store import AlreadyExistsError, DocumentStore, Transaction
from .energy_service import EnergyService
from .infirmary_service import InfirmaryService
from .inventory_service import InventoryService
from .loot_service import LootService
from .player_locks import PlayerLocks
from .player_repository import PlayerRepository
from .skill_service import SkillService

logger = logging.getLogger(__name__)


@dataclass
class CombatSetup:
    """Resolved style, speed and stats for one action."""

    style: AttackStyleProfile
    speed: SpeedProfile
    stats: EffectiveStats
    weapon: Optional[Item]

    def effectiveness_against(self, monster: Monster) -> float:
        return weapon_effectiveness(self.weapon, monster)


class CombatServiceBase:
    def __init__(
        self,
        store: DocumentStore,
        catalog: GameCatalog,
        locks: Optional[PlayerLocks] = None,
        dice: Optional[DiceRoller] = None,
        styles: AttackStyleTable = DEFAULT_ATTACK_STYLES,
        config: Settings = settings,
        energy: Optional[EnergyService] = None,
        inventory: Optional[InventoryService] = None,
        loot: Optional[LootService] = None,
        skills: Optional[SkillService] = None,
        infirmary: Optional[InfirmaryService] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.locks = locks or PlayerLocks()
        self.dice = dice or DiceRoller()
        self.styles = styles
        self.config = config
        self.repository = PlayerRepository(store)
        self.energy = energy or EnergyService(config.death_energy_percent)
        self.inventory = inventory or InventoryService(catalog)
        self.loot = loot or LootService(catalog, self.inventory, self.dice)
        self.skills = skills or SkillService()
        self.infirmary = infirmary or InfirmaryService(config.infirmary_minutes)
        self.clock = clock

    # ============================================
    # 执行框架
    # ============================================

    async def _run_action(
        self,
        player_id: str,
        action: str,
        body: Callable[[Transaction], ActionResult],
        conflict_message: str,
    ) -> ActionResult:
        async with self.locks.hold(player_id):
            try:
                result = await asyncio.to_thread(self.store.run_transaction, body)
            except AlreadyExistsError:
                logger.debug("%s %s lost the active-marker race", player_id, action)
                return ActionResult.rejected_with(conflict_message)
        if result.rejected:
            logger.debug("%s %s rejected: %s", player_id, action, result.message)
        return result

    async def _read(self, fn: Callable[[], object]):
        return await asyncio.to_thread(fn)

    # ============================================
    # 通用前置检查 / 计算
    # ============================================

    def _fight_blocker(self, player: PlayerState, now: datetime, verb: str) -> Optional[str]:
        """Reason the player cannot start a fight, or None."""
        self.infirmary.check_and_discharge(player, now)
        if player.is_traveling(now):
            return f"You cannot {verb} while traveling."
        if self.infirmary.is_in_infirmary(player, now):
            return f"You cannot {verb} while recovering in the infirmary."
        if not player.is_alive():
            return f"You are too injured to {verb}."
        return None

    def _setup(self, player: PlayerState, inventory: Inventory, weapon_subtype: str, style_index: int) -> CombatSetup:
        """
        Style and speed come from the subtype fixed at start; equipment
        bonuses come from what is equipped right now.
        """
        equipped = self.inventory.equipped_items(inventory)
        style = self.styles.resolve(weapon_subtype, style_index)
        snapshot = build_snapshot(player, equipped)
        return CombatSetup(
            style=style,
            speed=self.styles.speed_profile(weapon_subtype),
            stats=aggregate_stats(snapshot, style, self.styles),
            weapon=self.inventory.equipped_weapon(inventory),
        )

    def _eat(self, player: PlayerState, inventory: Inventory, item_id: str) -> Tuple[Optional[str], Optional[Item], int]:
        """
        Eat one unit of food.

        Returns (rejection, item, hp_restored). Healing is capped at the
        missing HP.
        """
        item = self.catalog.get_item(item_id)
        if item is None or not self.inventory.has_item(inventory, item_id):
            return "Item not found in your inventory.", None, 0
        if not item.is_food:
            return "This item cannot be eaten.", item, 0

        hp_restored = max(0, min(item.hp_bonus, player.max_hp - player.hp))
        self.inventory.remove_item(inventory, item_id, 1)
        player.hp += hp_restored
        return None, item, hp_restored

    def _apply_death(self, player: PlayerState, now: datetime) -> None:
        self.energy.set_energy_on_death(player)
        self.infirmary.admit_player(player, now)
