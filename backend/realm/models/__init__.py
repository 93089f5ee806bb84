"""Persisted and catalog data models."""

from .player import Inventory, InventorySlot, PlayerLocation, PlayerState, SkillRecord
from .catalog import Dungeon, DungeonFloor, FloorSpawn, GameCatalog, Item

__all__ = [
    "Inventory",
    "InventorySlot",
    "PlayerLocation",
    "PlayerState",
    "SkillRecord",
    "Dungeon",
    "DungeonFloor",
    "FloorSpawn",
    "GameCatalog",
    "Item",
]
