"""
战斗规则

Formula constants shared by the strike resolver and both state machines.
Tunable balance values (energy cost, flee chance, XP per damage, round cap)
live in realm.config.Settings; the values here define the shape of the
formulas themselves.
"""
import math
from typing import Dict


# ============================================
# 命中判定
# ============================================

BASE_HIT_CHANCE = 50
HIT_CHANCE_PER_LEVEL = 2
MIN_HIT_CHANCE = 10
MAX_HIT_CHANCE = 95

# max_hit = floor((strength + bonus) * MAX_HIT_FACTOR)
MAX_HIT_FACTOR = 0.5


# ============================================
# 武器克制
# ============================================

EFFECTIVE_DAMAGE_MULTIPLIER = 1.5
WEAK_DAMAGE_MULTIPLIER = 0.5


# ============================================
# 地牢
# ============================================

# Overridden by Settings.max_dungeon_rounds in the services.
DEFAULT_MAX_DUNGEON_ROUNDS = 50


# ============================================
# 经验分配
# ============================================

# Hit Points always receives a third of the combat XP on commit.
HITPOINTS_XP_DIVISOR = 3
HITPOINTS_SKILL = "hitpoints"

COMBAT_SKILLS = ("attack", "strength", "defense")


# ============================================
# 规则函数
# ============================================


def clamp_hit_chance(raw: int) -> int:
    """Clamp a raw hit chance into [MIN_HIT_CHANCE, MAX_HIT_CHANCE]."""
    return max(MIN_HIT_CHANCE, min(MAX_HIT_CHANCE, raw))


def calculate_hit_chance(effective_attack: int, defender_defense: int, accuracy_bonus: int = 0) -> int:
    """
    计算命中概率（百分比）

    hit_chance = clamp(50 + (attack - defense) * 2 + accuracy_bonus, 10, 95)
    """
    raw = BASE_HIT_CHANCE + (effective_attack - defender_defense) * HIT_CHANCE_PER_LEVEL + accuracy_bonus
    return clamp_hit_chance(raw)


def calculate_max_hit(effective_strength: int, strength_bonus: int = 0) -> int:
    """floor((strength + bonus) * 0.5). Can be 0; the damage roll floors it at 1."""
    return math.floor((effective_strength + strength_bonus) * MAX_HIT_FACTOR)


def split_combat_xp(total_xp: int, xp_skills) -> Dict[str, int]:
    """
    Distribute combat XP across the style's XP skills.

    A single skill gets everything. Several skills (controlled style) each
    get floor(total / n); the remainder is dropped. Hit Points is not part
    of the split, see hitpoints_xp().
    """
    skills = list(xp_skills)
    if not skills:
        return {}
    if len(skills) == 1:
        return {skills[0]: total_xp}
    per_skill = total_xp // len(skills)
    return {skill: per_skill for skill in skills}


def hitpoints_xp(total_xp: int) -> int:
    return total_xp // HITPOINTS_XP_DIVISOR
