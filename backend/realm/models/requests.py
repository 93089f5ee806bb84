"""
API 请求模型
"""
from typing import Optional

from pydantic import BaseModel, Field


class StartCombatRequest(BaseModel):
    """开始战斗请求"""

    monster_id: str
    attack_style_index: int = Field(default=0, ge=0)


class EatRequest(BaseModel):
    item_id: str


class EnterDungeonRequest(BaseModel):
    """进入地牢请求"""

    dungeon_id: str
    attack_style_index: int = Field(default=0, ge=0)


class ClaimLootRequest(BaseModel):
    quantity: Optional[int] = Field(default=None, ge=1)


class ClaimAllLootRequest(BaseModel):
    """领取某王国全部战利品"""

    kingdom_id: str
