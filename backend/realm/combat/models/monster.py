"""
怪物数据模型（只读配置）
"""
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from .style import AttackType


class LootEntry(BaseModel):
    """掉落表条目：每条独立判定"""

    item_id: str
    drop_chance: float = 100.0  # percent
    quantity_min: int = 1
    quantity_max: int = 1

    @model_validator(mode="after")
    def _check_quantities(self) -> "LootEntry":
        if self.quantity_min < 0 or self.quantity_max < self.quantity_min:
            raise ValueError(
                f"loot entry {self.item_id}: invalid quantity range "
                f"{self.quantity_min}..{self.quantity_max}"
            )
        return self


class Monster(BaseModel):
    """A monster definition from the catalog."""

    monster_id: str
    name: str
    type: str = "beast"
    biome: Optional[str] = None
    description: str = ""

    attack_level: int = 1
    strength_level: int = 1
    defense_level: int = 1
    # Typed defenses; None or 0 falls back to defense_level.
    stab_defense: Optional[int] = None
    slash_defense: Optional[int] = None
    crush_defense: Optional[int] = None

    max_hp: int = Field(default=10, ge=1)
    combat_level: int = 1
    min_player_combat_level: int = 1

    # None means the reward is derived from max_hp * xp_per_damage.
    xp_reward: Optional[int] = None
    gold_drop_min: int = 0
    gold_drop_max: int = 0
    is_boss: bool = False

    loot_table: List[LootEntry] = Field(default_factory=list)

    def defense_for(self, attack_type: AttackType) -> int:
        """获取针对某攻击类型的防御值"""
        typed = {
            AttackType.STAB: self.stab_defense,
            AttackType.SLASH: self.slash_defense,
            AttackType.CRUSH: self.crush_defense,
        }.get(attack_type)
        return typed or self.defense_level

    def can_be_attacked_by(self, combat_level: int) -> bool:
        return combat_level >= self.min_player_combat_level

    def xp_reward_for_kill(self, xp_per_damage: int) -> int:
        if self.xp_reward is not None:
            return self.xp_reward
        return self.max_hp * xp_per_damage
