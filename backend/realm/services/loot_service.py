"""
掉落服务
"""
import logging
from typing import List

from realm.combat.dice import DiceRoller
from realm.combat.models.combat_result import LootDrop, LootRoll
from realm.combat.models.monster import Monster
from realm.models.catalog import GameCatalog
from realm.models.player import Inventory, PlayerState

from .inventory_service import InventoryService

logger = logging.getLogger(__name__)


class LootService:
    def __init__(self, catalog: GameCatalog, inventory: InventoryService, dice: DiceRoller) -> None:
        self.catalog = catalog
        self.inventory = inventory
        self.dice = dice

    def roll_gold(self, monster: Monster) -> int:
        if monster.gold_drop_max <= 0:
            return 0
        return self.dice.roll(monster.gold_drop_min, monster.gold_drop_max)

    def roll_table(self, monster: Monster, multiplier: float = 1.0) -> List[LootDrop]:
        """Each entry rolls independently; chance is scaled then capped at 100."""
        drops = []
        for entry in monster.loot_table:
            chance = min(100.0, entry.drop_chance * multiplier)
            if not self.dice.chance(chance):
                continue
            quantity = self.dice.roll(entry.quantity_min, entry.quantity_max)
            if quantity <= 0:
                continue
            item = self.catalog.get_item(entry.item_id)
            drops.append(LootDrop(item_id=entry.item_id, name=item.name if item else entry.item_id, quantity=quantity))
        return drops

    def roll_and_give_loot(self, player: PlayerState, inventory: Inventory, monster: Monster) -> LootRoll:
        """Roll gold and items and credit them. Items that don't fit are dropped."""
        gold = self.roll_gold(monster)
        player.gold += gold

        given = []
        for drop in self.roll_table(monster):
            if self.inventory.add_item(inventory, drop.item_id, drop.quantity):
                given.append(drop)
            else:
                logger.info("%s inventory full, dropped %dx %s", player.player_id, drop.quantity, drop.item_id)
        return LootRoll(gold=gold, items=given)
