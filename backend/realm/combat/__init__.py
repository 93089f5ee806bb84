"""
战斗系统

Pure combat engine: stat aggregation, strike resolution, attack-style
tables and the unlogged dungeon encounter loop. Persistence lives in
realm.services.
"""
from .attack_styles import DEFAULT_ATTACK_STYLES, AttackStyleTable
from .dice import DiceRoller
from .simulation import simulate_encounter
from .stats import aggregate_stats, build_snapshot, sum_equipment
from .strike import monster_strike, player_strike, resolve_strike, weapon_effectiveness

__all__ = [
    "AttackStyleTable",
    "DEFAULT_ATTACK_STYLES",
    "DiceRoller",
    "aggregate_stats",
    "build_snapshot",
    "sum_equipment",
    "resolve_strike",
    "player_strike",
    "monster_strike",
    "weapon_effectiveness",
    "simulate_encounter",
]
