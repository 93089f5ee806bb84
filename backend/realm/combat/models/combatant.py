"""
战斗单位数据模型
"""
from dataclasses import dataclass, field
from typing import Any, Dict

from .style import StanceBonus


@dataclass(frozen=True)
class EquipmentBonuses:
    """Summed bonuses of every equipped item."""

    attack: int = 0
    strength: int = 0
    defense: int = 0
    hp: int = 0

    def __add__(self, other: "EquipmentBonuses") -> "EquipmentBonuses":
        return EquipmentBonuses(
            attack=self.attack + other.attack,
            strength=self.strength + other.strength,
            defense=self.defense + other.defense,
            hp=self.hp + other.hp,
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "atk_bonus": self.attack,
            "str_bonus": self.strength,
            "def_bonus": self.defense,
            "hp_bonus": self.hp,
        }


@dataclass
class CombatantSnapshot:
    """
    战斗单位快照

    Computed on demand from the player's skills and gear; never stored.
    """

    attack_level: int
    strength_level: int
    defense_level: int
    hp: int
    max_hp: int
    equipment: EquipmentBonuses = field(default_factory=EquipmentBonuses)

    def __post_init__(self):
        if self.max_hp < 0:
            raise ValueError("max_hp must be >= 0")
        self.hp = max(0, min(self.hp, self.max_hp))

    @property
    def is_alive(self) -> bool:
        return self.hp > 0


@dataclass(frozen=True)
class EffectiveStats:
    """
    Stat aggregator output.

    attack/strength/defense are base level + stance bonus. Equipment
    bonuses are carried separately because the strike formulas add them as
    their own terms; total_* gives the full sum.
    """

    attack: int
    strength: int
    defense: int
    equipment: EquipmentBonuses = field(default_factory=EquipmentBonuses)
    stance: StanceBonus = field(default_factory=StanceBonus)

    @property
    def total_attack(self) -> int:
        return self.attack + self.equipment.attack

    @property
    def total_strength(self) -> int:
        return self.strength + self.equipment.strength

    @property
    def total_defense(self) -> int:
        return self.defense + self.equipment.defense

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attack": self.attack,
            "strength": self.strength,
            "defense": self.defense,
            "equipment": self.equipment.to_dict(),
        }
