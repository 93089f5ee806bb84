"""
攻击风格数据模型
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Tuple


class AttackType(str, Enum):
    """攻击类型（决定怪物使用哪种防御）"""

    STAB = "stab"
    SLASH = "slash"
    CRUSH = "crush"


class WeaponStyle(str, Enum):
    """战斗姿态"""

    ACCURATE = "accurate"
    AGGRESSIVE = "aggressive"
    DEFENSIVE = "defensive"
    CONTROLLED = "controlled"


class SpeedClass(str, Enum):
    """武器速度等级"""

    FAST = "fast"
    NORMAL = "normal"
    SLOW = "slow"
    VERY_SLOW = "very_slow"


@dataclass(frozen=True)
class StanceBonus:
    """Invisible level boosts granted by a weapon style."""

    attack: int = 0
    strength: int = 0
    defense: int = 0


@dataclass(frozen=True)
class SpeedProfile:
    hits_per_round: int = 1
    damage_multiplier: float = 1.0

    def __post_init__(self):
        if self.hits_per_round < 1:
            raise ValueError("hits_per_round must be >= 1")


@dataclass(frozen=True)
class AttackStyleProfile:
    """
    One selectable attack style for a weapon subtype.

    xp_skills is ordered; the first entry doubles as the session's
    training_style. More than one entry means the XP is split (controlled).
    """

    name: str
    attack_type: AttackType
    weapon_style: WeaponStyle
    xp_skills: Tuple[str, ...]

    def __post_init__(self):
        if not self.xp_skills:
            raise ValueError(f"attack style '{self.name}' needs at least one xp skill")

    @property
    def training_style(self) -> str:
        return self.xp_skills[0]

    @property
    def is_split(self) -> bool:
        return len(self.xp_skills) > 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "attack_type": self.attack_type.value,
            "weapon_style": self.weapon_style.value,
            "xp_skills": list(self.xp_skills),
        }
