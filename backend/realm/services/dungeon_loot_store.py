"""
地牢战利品仓库

Completed-run loot is parked per (player, kingdom, item) instead of going
straight to the inventory. Deposits add to the stored quantity and push the
expiry out again; players claim into their inventory later.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from realm.config import settings
from realm.models.player import Inventory, as_aware, utcnow

from .document_store import DocumentStore, Transaction
from .inventory_service import InventoryService
from .player_repository import dungeon_loot_collection, inventory_path, to_document

logger = logging.getLogger(__name__)

NO_KINGDOM = "unaligned"


class DungeonLootEntry(BaseModel):
    entry_id: str
    player_id: str
    kingdom_id: str
    item_id: str
    quantity: int = 0
    expires_at: datetime
    updated_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return as_aware(self.expires_at) <= (now or utcnow())


def loot_entry_id(kingdom_id: Optional[str], item_id: str) -> str:
    return f"{kingdom_id or NO_KINGDOM}_{item_id}"


class DungeonLootStore:
    def __init__(
        self,
        store: DocumentStore,
        inventory: InventoryService,
        expiry_days: int = settings.dungeon_loot_expiry_days,
    ) -> None:
        self.store = store
        self.inventory = inventory
        self.expiry_days = expiry_days

    def _entry_path(self, player_id: str, entry_id: str) -> str:
        return f"{dungeon_loot_collection(player_id)}/{entry_id}"

    def deposit_loot(
        self,
        txn: Transaction,
        player_id: str,
        kingdom_id: Optional[str],
        loot: Dict[str, int],
        now: Optional[datetime] = None,
    ) -> None:
        """
        Additive deposit of several items inside the caller's transaction.

        Reads every target entry before writing, so it must run before the
        caller's own writes. An entry that has expired but was not cleaned up
        yet starts again from the deposited quantity.
        """
        now = now or utcnow()
        wanted = {item_id: quantity for item_id, quantity in loot.items() if quantity > 0}
        stale = set()
        for item_id in wanted:
            data = txn.get(self._entry_path(player_id, loot_entry_id(kingdom_id, item_id)))
            if data is not None and DungeonLootEntry(**data).is_expired(now):
                stale.add(item_id)

        for item_id, quantity in wanted.items():
            entry_id = loot_entry_id(kingdom_id, item_id)
            fields = {
                "entry_id": entry_id,
                "player_id": player_id,
                "kingdom_id": kingdom_id or NO_KINGDOM,
                "item_id": item_id,
                "expires_at": (now + timedelta(days=self.expiry_days)).isoformat(),
                "updated_at": now.isoformat(),
            }
            path = self._entry_path(player_id, entry_id)
            if item_id in stale:
                txn.set(path, {**fields, "quantity": quantity})
            else:
                txn.increment(path, "quantity", quantity, extra=fields)

    def add_loot(
        self,
        txn: Transaction,
        player_id: str,
        kingdom_id: Optional[str],
        item_id: str,
        quantity: int,
        now: Optional[datetime] = None,
    ) -> None:
        self.deposit_loot(txn, player_id, kingdom_id, {item_id: quantity}, now=now)

    def get_player_loot(
        self,
        player_id: str,
        kingdom_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[DungeonLootEntry]:
        entries = []
        for _, data in self.store.list(dungeon_loot_collection(player_id)):
            entry = DungeonLootEntry(**data)
            if entry.is_expired(now) or entry.quantity <= 0:
                continue
            if kingdom_id and entry.kingdom_id != kingdom_id:
                continue
            entries.append(entry)
        entries.sort(key=lambda e: (e.kingdom_id, as_aware(e.expires_at)))
        return entries

    def claim_loot(
        self,
        player_id: str,
        entry_id: str,
        quantity: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Move stored loot into the inventory, capped to what fits.

        Returns {"success", "message", "quantity"}; a missing/expired entry
        or a full inventory is success=False.
        """
        entry_path = self._entry_path(player_id, entry_id)

        def _claim(txn: Transaction) -> Dict[str, Any]:
            data = txn.get(entry_path)
            inv_data = txn.get(inventory_path(player_id))
            if data is None:
                return {"success": False, "message": "Loot not found or has expired."}
            entry = DungeonLootEntry(**data)
            if entry.is_expired(now):
                return {"success": False, "message": "Loot not found or has expired."}

            wanted = entry.quantity if quantity is None else min(quantity, entry.quantity)
            if wanted <= 0:
                return {"success": False, "message": "Invalid quantity."}

            inventory = Inventory(**inv_data) if inv_data else Inventory(player_id=player_id)
            fits = self.inventory.space_for(inventory, entry.item_id)
            if fits <= 0:
                return {"success": False, "message": "Your inventory is full. Free up some space first."}

            claimed = min(wanted, fits)
            self.inventory.add_item(inventory, entry.item_id, claimed)
            txn.set(inventory_path(player_id), to_document(inventory))

            remaining = entry.quantity - claimed
            if remaining <= 0:
                txn.delete(entry_path)
            else:
                txn.set(entry_path, {"quantity": remaining}, merge=True)

            message = f"Claimed {claimed}x {entry.item_id}."
            if remaining > 0:
                message += f" {remaining}x left in storage."
            return {"success": True, "message": message, "quantity": claimed, "remaining": remaining}

        result = self.store.run_transaction(_claim)
        if result["success"]:
            logger.info("%s claimed %sx %s", player_id, result["quantity"], entry_id)
        return result

    def claim_all_loot(self, player_id: str, kingdom_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        领取某王国的全部战利品

        Every live entry of the kingdom is moved in one transaction, each
        capped to what still fits. Returns {"success", "message", "claimed",
        "failed"} keyed by item id; failed holds what stayed in storage.
        """
        entry_ids = [e.entry_id for e in self.get_player_loot(player_id, kingdom_id, now)]
        if not entry_ids:
            return {"success": False, "message": "No loot to claim."}

        def _claim_all(txn: Transaction) -> Dict[str, Any]:
            paths = [self._entry_path(player_id, entry_id) for entry_id in entry_ids]
            docs = [(path, txn.get(path)) for path in paths]
            inv_data = txn.get(inventory_path(player_id))
            inventory = Inventory(**inv_data) if inv_data else Inventory(player_id=player_id)

            claimed: Dict[str, int] = {}
            failed: Dict[str, int] = {}
            for path, data in docs:
                if data is None:
                    continue
                entry = DungeonLootEntry(**data)
                if entry.is_expired(now) or entry.quantity <= 0:
                    continue
                take = min(entry.quantity, self.inventory.space_for(inventory, entry.item_id))
                if take <= 0 or not self.inventory.add_item(inventory, entry.item_id, take):
                    failed[entry.item_id] = failed.get(entry.item_id, 0) + entry.quantity
                    continue
                claimed[entry.item_id] = claimed.get(entry.item_id, 0) + take
                if take >= entry.quantity:
                    txn.delete(path)
                else:
                    txn.set(path, {"quantity": entry.quantity - take}, merge=True)
                    failed[entry.item_id] = failed.get(entry.item_id, 0) + entry.quantity - take

            if not claimed:
                return {"success": False, "message": "Could not claim any items. Your inventory may be full."}
            txn.set(inventory_path(player_id), to_document(inventory))

            message = f"Claimed {sum(claimed.values())} items ({len(claimed)} types)."
            if failed:
                message += f" {len(failed)} item(s) could not be claimed due to insufficient inventory space."
            return {"success": True, "message": message, "claimed": claimed, "failed": failed}

        result = self.store.run_transaction(_claim_all)
        if result["success"]:
            logger.info("%s claimed all %s loot: %s", player_id, kingdom_id, result["claimed"])
        return result

    def cleanup_expired(self, player_id: str, now: Optional[datetime] = None) -> int:
        """Delete expired entries for one player. Returns how many were removed."""
        expired = [
            doc_id
            for doc_id, data in self.store.list(dungeon_loot_collection(player_id))
            if DungeonLootEntry(**data).is_expired(now)
        ]
        if not expired:
            return 0

        def _delete(txn: Transaction) -> int:
            paths = [self._entry_path(player_id, doc_id) for doc_id in expired]
            stale = []
            for path in paths:
                data = txn.get(path)
                if data is not None and DungeonLootEntry(**data).is_expired(now):
                    stale.append(path)
            for path in stale:
                txn.delete(path)
            return len(stale)

        removed = self.store.run_transaction(_delete)
        logger.info("Removed %d expired loot entries for %s", removed, player_id)
        return removed
