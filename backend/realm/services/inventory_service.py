"""
背包服务

Operates on an already-loaded Inventory document; the caller persists it.
"""
from typing import Any, Dict, List, Optional

from realm.combat.attack_styles import UNARMED
from realm.models.catalog import GameCatalog, Item
from realm.models.player import Inventory, InventorySlot


class InventoryService:
    def __init__(self, catalog: GameCatalog) -> None:
        self.catalog = catalog

    def has_item(self, inventory: Inventory, item_id: str, quantity: int = 1) -> bool:
        return inventory.quantity_of(item_id) >= quantity

    def remove_item(self, inventory: Inventory, item_id: str, quantity: int = 1) -> bool:
        """Remove unequipped units, emptying slots as needed."""
        if quantity <= 0 or not self.has_item(inventory, item_id, quantity):
            return False
        remaining = quantity
        for slot in list(inventory.slots):
            if remaining <= 0:
                break
            if slot.item_id != item_id or slot.equipped:
                continue
            taken = min(slot.quantity, remaining)
            slot.quantity -= taken
            remaining -= taken
            if slot.quantity <= 0:
                inventory.slots.remove(slot)
        return True

    def space_for(self, inventory: Inventory, item_id: str) -> int:
        """How many units of item_id still fit."""
        item = self.catalog.get_item(item_id)
        if item is None:
            return 0
        free = inventory.free_slots()
        if not item.stackable:
            return free
        max_stack = max(1, item.max_stack)
        partial = sum(
            max_stack - slot.quantity
            for slot in inventory.slots
            if slot.item_id == item_id and not slot.equipped and slot.quantity < max_stack
        )
        return partial + free * max_stack

    def add_item(self, inventory: Inventory, item_id: str, quantity: int = 1) -> bool:
        """All-or-nothing add. Returns False when the items don't fit."""
        if quantity <= 0:
            return True
        item = self.catalog.get_item(item_id)
        if item is None or self.space_for(inventory, item_id) < quantity:
            return False

        remaining = quantity
        if item.stackable:
            max_stack = max(1, item.max_stack)
            for slot in inventory.slots:
                if remaining <= 0:
                    break
                if slot.item_id == item_id and not slot.equipped and slot.quantity < max_stack:
                    added = min(max_stack - slot.quantity, remaining)
                    slot.quantity += added
                    remaining -= added
            while remaining > 0:
                added = min(max_stack, remaining)
                inventory.slots.append(
                    InventorySlot(slot_id=inventory.new_slot_id(), item_id=item_id, quantity=added)
                )
                remaining -= added
        else:
            for _ in range(remaining):
                inventory.slots.append(InventorySlot(slot_id=inventory.new_slot_id(), item_id=item_id))
        return True

    def equipped_items(self, inventory: Inventory) -> List[Item]:
        items = []
        for slot in inventory.slots:
            if not slot.equipped:
                continue
            item = self.catalog.get_item(slot.item_id)
            if item is not None:
                items.append(item)
        return items

    def equipped_weapon(self, inventory: Inventory) -> Optional[Item]:
        for item in self.equipped_items(inventory):
            if item.is_weapon:
                return item
        return None

    def weapon_subtype(self, inventory: Inventory) -> str:
        weapon = self.equipped_weapon(inventory)
        if weapon is None or not weapon.subtype:
            return UNARMED
        return weapon.subtype

    def food(self, inventory: Inventory) -> List[Dict[str, Any]]:
        """Edible stacks, one row per item."""
        rows: Dict[str, Dict[str, Any]] = {}
        for slot in inventory.slots:
            if slot.equipped:
                continue
            item = self.catalog.get_item(slot.item_id)
            if item is None or not item.is_food:
                continue
            row = rows.setdefault(
                item.item_id,
                {"item_id": item.item_id, "name": item.name, "hp_bonus": item.hp_bonus, "quantity": 0},
            )
            row["quantity"] += slot.quantity
        return list(rows.values())
