"""Data models for the combat system."""

from .style import AttackStyleProfile, AttackType, SpeedClass, SpeedProfile, StanceBonus, WeaponStyle
from .combatant import CombatantSnapshot, EffectiveStats, EquipmentBonuses
from .monster import LootEntry, Monster
from .combat_session import (
    CombatLogEntry,
    EncounterSession,
    EncounterStatus,
    LogAction,
    LogActor,
)
from .dungeon_run import DungeonRun, DungeonStatus
from .combat_result import ActionResult, EncounterSimulation, LootDrop, LootRoll, StrikeResult

__all__ = [
    "AttackStyleProfile",
    "AttackType",
    "SpeedClass",
    "SpeedProfile",
    "StanceBonus",
    "WeaponStyle",
    "CombatantSnapshot",
    "EffectiveStats",
    "EquipmentBonuses",
    "LootEntry",
    "Monster",
    "CombatLogEntry",
    "EncounterSession",
    "EncounterStatus",
    "LogAction",
    "LogActor",
    "DungeonRun",
    "DungeonStatus",
    "ActionResult",
    "EncounterSimulation",
    "LootDrop",
    "LootRoll",
    "StrikeResult",
]
