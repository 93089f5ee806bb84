"""
战斗结果数据模型
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class StrikeResult:
    """单次攻击判定结果"""

    hit: bool
    damage: int
    hit_chance: int

    def to_dict(self) -> Dict[str, Any]:
        return {"hit": self.hit, "damage": self.damage, "hit_chance": self.hit_chance}


@dataclass
class EncounterSimulation:
    """
    Outcome of one unlogged dungeon encounter.

    damage_dealt is already capped at the monster's max HP.
    """

    player_won: bool
    rounds: int
    player_hp_remaining: int
    damage_dealt: int
    damage_taken: int
    hit_round_cap: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_won": self.player_won,
            "rounds": self.rounds,
            "player_hp_remaining": self.player_hp_remaining,
            "damage_dealt": self.damage_dealt,
            "damage_taken": self.damage_taken,
            "hit_round_cap": self.hit_round_cap,
        }


@dataclass
class LootDrop:
    item_id: str
    name: str
    quantity: int

    def to_dict(self) -> Dict[str, Any]:
        return {"item_id": self.item_id, "name": self.name, "quantity": self.quantity}


@dataclass
class LootRoll:
    """Result of a loot-table roll."""

    gold: int = 0
    items: List[LootDrop] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"gold": self.gold, "items": [item.to_dict() for item in self.items]}


@dataclass
class ActionResult:
    """
    Result of one state-machine action.

    success is the business outcome (a failed flee or a defeat is
    success=False). rejected marks a precondition failure: nothing was
    mutated and the action should be reported back as refused.
    """

    success: bool
    message: str
    status: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    rejected: bool = False

    @classmethod
    def rejected_with(cls, message: str) -> "ActionResult":
        return cls(success=False, message=message, rejected=True)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "success": self.success,
            "message": self.message,
            "data": self.data,
        }
        if self.status is not None:
            payload["status"] = self.status
        if self.rejected:
            payload["rejected"] = True
        return payload
