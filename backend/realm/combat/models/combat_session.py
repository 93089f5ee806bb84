"""
战斗会话数据模型
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from realm.models.player import PlayerLocation, utcnow


class EncounterStatus(str, Enum):
    """战斗状态"""

    ACTIVE = "active"
    VICTORY = "victory"
    DEFEAT = "defeat"
    FLED = "fled"


class LogActor(str, Enum):
    PLAYER = "player"
    MONSTER = "monster"


class LogAction(str, Enum):
    ATTACK = "attack"
    EAT = "eat"
    FLEE = "flee"


class CombatLogEntry(BaseModel):
    """
    战斗日志条目

    One half of an exchange. Written once, never updated.
    """

    model_config = ConfigDict(frozen=True)

    seq: int
    round: int
    actor: LogActor
    action: LogAction
    hit: bool = False
    damage: int = 0
    player_hp_after: int
    monster_hp_after: int
    item_id: Optional[str] = None
    hp_restored: int = 0
    created_at: datetime = Field(default_factory=utcnow)


class EncounterSession(BaseModel):
    """
    Interactive combat session: players/{player_id}/encounters/{session_id}.
    """

    session_id: str
    player_id: str
    monster_id: str

    player_hp: int
    monster_hp: int
    round: int = 1

    training_style: str = "attack"
    attack_style_index: int = 0
    weapon_subtype: str = "unarmed"

    status: EncounterStatus = EncounterStatus.ACTIVE
    location: PlayerLocation = Field(default_factory=PlayerLocation)

    xp_gained: int = 0
    log_count: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == EncounterStatus.ACTIVE

    def is_monster_dead(self) -> bool:
        return self.monster_hp <= 0

    def is_player_dead(self) -> bool:
        return self.player_hp <= 0

    def append_log(
        self,
        actor: LogActor,
        action: LogAction,
        hit: bool = False,
        damage: int = 0,
        item_id: Optional[str] = None,
        hp_restored: int = 0,
    ) -> CombatLogEntry:
        """Build the next log entry with the current HP snapshot."""
        self.log_count += 1
        return CombatLogEntry(
            seq=self.log_count,
            round=self.round,
            actor=actor,
            action=action,
            hit=hit,
            damage=damage,
            player_hp_after=self.player_hp,
            monster_hp_after=self.monster_hp,
            item_id=item_id,
            hp_restored=hp_restored,
        )

    def to_view(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
