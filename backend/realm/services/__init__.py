"""
业务逻辑服务包
"""
from .document_store import (
    AlreadyExistsError,
    DocumentStore,
    FirestoreDocumentStore,
    MemoryDocumentStore,
    ReadAfterWriteError,
    TransactionConflictError,
    create_document_store,
)
from .exceptions import CombatStateError
from .player_locks import PlayerLocks
from .player_repository import PlayerRepository
from .energy_service import EnergyService
from .inventory_service import InventoryService
from .skill_service import SkillService
from .loot_service import LootService
from .infirmary_service import InfirmaryService
from .dungeon_loot_store import DungeonLootEntry, DungeonLootStore
from .encounter_service import EncounterService
from .dungeon_service import DungeonService

__all__ = [
    "AlreadyExistsError",
    "DocumentStore",
    "FirestoreDocumentStore",
    "MemoryDocumentStore",
    "ReadAfterWriteError",
    "TransactionConflictError",
    "create_document_store",
    "CombatStateError",
    "PlayerLocks",
    "PlayerRepository",
    "EnergyService",
    "InventoryService",
    "SkillService",
    "LootService",
    "InfirmaryService",
    "DungeonLootEntry",
    "DungeonLootStore",
    "EncounterService",
    "DungeonService",
]
