"""
属性聚合

Turns a combatant snapshot plus the chosen attack style into the effective
numbers the strike resolver consumes.
"""
from typing import Iterable, List, Optional

from realm.models.player import PlayerState

from .attack_styles import DEFAULT_ATTACK_STYLES, AttackStyleTable
from .models.combatant import CombatantSnapshot, EffectiveStats, EquipmentBonuses
from .models.style import AttackStyleProfile


def sum_equipment(items: Iterable) -> EquipmentBonuses:
    """Sum the bonuses of every equipped catalog item."""
    total = EquipmentBonuses()
    for item in items:
        total = total + EquipmentBonuses(
            attack=item.atk_bonus,
            strength=item.str_bonus,
            defense=item.def_bonus,
            hp=item.hp_bonus,
        )
    return total


def build_snapshot(player: PlayerState, equipped_items: Optional[List] = None) -> CombatantSnapshot:
    return CombatantSnapshot(
        attack_level=player.skill_level("attack"),
        strength_level=player.skill_level("strength"),
        defense_level=player.skill_level("defense"),
        hp=player.hp,
        max_hp=player.max_hp,
        equipment=sum_equipment(equipped_items or []),
    )


def aggregate_stats(
    combatant: CombatantSnapshot,
    style: AttackStyleProfile,
    table: AttackStyleTable = DEFAULT_ATTACK_STYLES,
) -> EffectiveStats:
    """
    计算有效属性

    level + stance bonus per stat; equipment is carried alongside and not
    folded in, since the resolver adds it as separate accuracy/strength
    terms.
    """
    stance = table.stance_bonus(style.weapon_style)
    return EffectiveStats(
        attack=combatant.attack_level + stance.attack,
        strength=combatant.strength_level + stance.strength,
        defense=combatant.defense_level + stance.defense,
        equipment=combatant.equipment,
        stance=stance,
    )
