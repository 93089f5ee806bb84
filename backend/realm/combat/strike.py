"""
攻击判定

One strike: hit roll, damage roll, then effectiveness and speed scaling.
"""
import logging
import math
from typing import Optional

from .dice import DiceRoller
from .models.combat_result import StrikeResult
from .models.combatant import EffectiveStats
from .models.monster import Monster
from .models.style import AttackStyleProfile, SpeedProfile
from .rules import (
    EFFECTIVE_DAMAGE_MULTIPLIER,
    WEAK_DAMAGE_MULTIPLIER,
    calculate_hit_chance,
    calculate_max_hit,
)

logger = logging.getLogger(__name__)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def resolve_strike(
    effective_attack: int,
    defender_defense: int,
    effective_strength: int,
    accuracy_bonus: int = 0,
    strength_bonus: int = 0,
    speed_multiplier: float = 1.0,
    effectiveness: float = 1.0,
    dice: Optional[DiceRoller] = None,
) -> StrikeResult:
    """
    解析一次攻击

    Args:
        effective_attack: attack level + stance bonus
        defender_defense: defense the target uses against this attack type
        effective_strength: strength level + stance bonus
        accuracy_bonus: equipment attack bonus
        strength_bonus: equipment strength bonus
        speed_multiplier: weapon speed damage multiplier
        effectiveness: 1.5 / 0.5 / 1.0 weapon-vs-monster modifier

    Returns:
        StrikeResult
    """
    dice = dice or DiceRoller()
    hit_chance = calculate_hit_chance(effective_attack, defender_defense, accuracy_bonus)
    if not dice.chance(hit_chance):
        return StrikeResult(hit=False, damage=0, hit_chance=hit_chance)

    max_hit = calculate_max_hit(effective_strength, strength_bonus)
    damage = dice.roll(1, max(1, max_hit))
    if effectiveness != 1.0:
        damage = math.floor(damage * effectiveness)
    if speed_multiplier != 1.0:
        damage = _round_half_up(damage * speed_multiplier)
    return StrikeResult(hit=True, damage=damage, hit_chance=hit_chance)


def weapon_effectiveness(weapon, monster: Monster) -> float:
    """Damage modifier of the equipped weapon against the monster's type."""
    if weapon is None:
        return 1.0
    if monster.type in (weapon.effective_against or []):
        return EFFECTIVE_DAMAGE_MULTIPLIER
    if monster.type in (weapon.weak_against or []):
        return WEAK_DAMAGE_MULTIPLIER
    return 1.0


def player_strike(
    stats: EffectiveStats,
    monster: Monster,
    style: AttackStyleProfile,
    speed: SpeedProfile,
    effectiveness: float,
    dice: DiceRoller,
) -> StrikeResult:
    result = resolve_strike(
        effective_attack=stats.attack,
        defender_defense=monster.defense_for(style.attack_type),
        effective_strength=stats.strength,
        accuracy_bonus=stats.equipment.attack,
        strength_bonus=stats.equipment.strength,
        speed_multiplier=speed.damage_multiplier,
        effectiveness=effectiveness,
        dice=dice,
    )
    logger.debug(
        "player -> %s: hit=%s dmg=%s chance=%s",
        monster.monster_id,
        result.hit,
        result.damage,
        result.hit_chance,
    )
    return result


def monster_strike(monster: Monster, stats: EffectiveStats, dice: DiceRoller) -> StrikeResult:
    """Monster retaliation; player defense includes stance and armour."""
    result = resolve_strike(
        effective_attack=monster.attack_level,
        defender_defense=stats.total_defense,
        effective_strength=monster.strength_level,
        dice=dice,
    )
    logger.debug(
        "%s -> player: hit=%s dmg=%s chance=%s",
        monster.monster_id,
        result.hit,
        result.damage,
        result.hit_chance,
    )
    return result
