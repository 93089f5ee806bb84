"""
Player document paths and load/save helpers.

Layout:
    players/{player_id}                               PlayerState
    players/{player_id}/inventory/main                Inventory
    players/{player_id}/active/{encounter|dungeon}    unique active marker
    players/{player_id}/encounters/{session_id}       EncounterSession
    players/{player_id}/encounters/{session_id}/logs  CombatLogEntry
    players/{player_id}/dungeon_runs/{run_id}         DungeonRun
    players/{player_id}/dungeon_loot/{entry_id}       DungeonLootEntry
"""
import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel

from realm.models.player import Inventory, PlayerState, utcnow

from .document_store import DocumentStore, Transaction
from .exceptions import CombatStateError

logger = logging.getLogger(__name__)

ENCOUNTER_FLOW = "encounter"
DUNGEON_FLOW = "dungeon"


def player_path(player_id: str) -> str:
    return f"players/{player_id}"


def inventory_path(player_id: str) -> str:
    return f"players/{player_id}/inventory/main"


def active_marker_path(player_id: str, flow: str) -> str:
    return f"players/{player_id}/active/{flow}"


def encounter_path(player_id: str, session_id: str) -> str:
    return f"players/{player_id}/encounters/{session_id}"


def encounter_logs_collection(player_id: str, session_id: str) -> str:
    return f"{encounter_path(player_id, session_id)}/logs"


def encounter_log_path(player_id: str, session_id: str, seq: int) -> str:
    # zero-padded so lexical order == seq order
    return f"{encounter_logs_collection(player_id, session_id)}/{seq:06d}"


def dungeon_run_path(player_id: str, run_id: str) -> str:
    return f"players/{player_id}/dungeon_runs/{run_id}"


def dungeon_loot_collection(player_id: str) -> str:
    return f"players/{player_id}/dungeon_loot"


def to_document(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json")


class PlayerRepository:
    """玩家状态读写"""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    # ----- inside a transaction -----

    def load_player(self, txn: Transaction, player_id: str) -> PlayerState:
        data = txn.get(player_path(player_id))
        if data is None:
            raise CombatStateError(f"player document missing: {player_id}", player_id=player_id)
        return PlayerState(**data)

    def load_inventory(self, txn: Transaction, player_id: str) -> Inventory:
        data = txn.get(inventory_path(player_id))
        if data is None:
            return Inventory(player_id=player_id)
        return Inventory(**data)

    def save_player(self, txn: Transaction, player: PlayerState) -> None:
        player.updated_at = utcnow()
        txn.set(player_path(player.player_id), to_document(player))

    def save_inventory(self, txn: Transaction, inventory: Inventory) -> None:
        txn.set(inventory_path(inventory.player_id), to_document(inventory))

    # ----- outside a transaction -----

    def get_player(self, player_id: str) -> PlayerState:
        data = self.store.get(player_path(player_id))
        if data is None:
            raise CombatStateError(f"player document missing: {player_id}", player_id=player_id)
        return PlayerState(**data)

    def get_inventory(self, player_id: str) -> Inventory:
        data = self.store.get(inventory_path(player_id))
        if data is None:
            return Inventory(player_id=player_id)
        return Inventory(**data)

    def create_player(self, player: PlayerState, inventory: Optional[Inventory] = None) -> PlayerState:
        """Create a player (and inventory). Fails if the player exists."""
        inventory = inventory or Inventory(player_id=player.player_id)

        def _create(txn: Transaction) -> PlayerState:
            txn.create(player_path(player.player_id), to_document(player))
            txn.set(inventory_path(player.player_id), to_document(inventory))
            return player

        created = self.store.run_transaction(_create)
        logger.info("Created player %s", player.player_id)
        return created
