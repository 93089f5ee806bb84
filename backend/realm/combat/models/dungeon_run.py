"""
地牢探索数据模型
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from realm.models.player import PlayerLocation, utcnow


class DungeonStatus(str, Enum):
    """地牢状态"""

    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    ABANDONED = "abandoned"


class DungeonRun(BaseModel):
    """
    Batch dungeon run: players/{player_id}/dungeon_runs/{run_id}.

    Rewards accumulate here and are only committed to the player on
    completion. Per-strike detail is never stored.
    """

    run_id: str
    player_id: str
    dungeon_id: str
    kingdom_id: Optional[str] = None

    current_floor: int = Field(default=1, ge=1)
    monsters_defeated: int = 0
    total_monsters_on_floor: int = 0
    encounters_fought: int = 0

    status: DungeonStatus = DungeonStatus.ACTIVE

    xp_accumulated: int = 0
    gold_accumulated: int = 0
    loot_accumulated: Dict[str, int] = Field(default_factory=dict)

    training_style: str = "attack"
    attack_style_index: int = 0
    weapon_subtype: str = "unarmed"

    entry_location: PlayerLocation = Field(default_factory=PlayerLocation)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == DungeonStatus.ACTIVE

    def is_floor_cleared(self) -> bool:
        return self.monsters_defeated >= self.total_monsters_on_floor

    def add_xp(self, amount: int) -> None:
        self.xp_accumulated += max(0, amount)

    def add_gold(self, amount: int) -> None:
        self.gold_accumulated += max(0, amount)

    def add_loot(self, item_id: str, quantity: int) -> None:
        if quantity <= 0:
            return
        self.loot_accumulated[item_id] = self.loot_accumulated.get(item_id, 0) + quantity

    def forfeit_rewards(self) -> Dict[str, Any]:
        """Summary of what is being thrown away on death/abandon."""
        return {
            "xp": self.xp_accumulated,
            "gold": self.gold_accumulated,
            "items": dict(self.loot_accumulated),
        }

    def to_view(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
