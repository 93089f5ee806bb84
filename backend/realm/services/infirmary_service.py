"""
医务室服务
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from realm.config import settings
from realm.models.player import PlayerState, utcnow

logger = logging.getLogger(__name__)


class InfirmaryService:
    def __init__(self, heal_minutes: int = settings.infirmary_minutes) -> None:
        self.heal_minutes = heal_minutes

    def admit_player(self, player: PlayerState, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        player.is_in_infirmary = True
        player.infirmary_started_at = now
        player.infirmary_heals_at = now + timedelta(minutes=self.heal_minutes)
        logger.info("%s admitted to infirmary until %s", player.player_id, player.infirmary_heals_at)

    def is_in_infirmary(self, player: PlayerState, now: Optional[datetime] = None) -> bool:
        return player.is_in_infirmary_at(now)

    def check_and_discharge(self, player: PlayerState, now: Optional[datetime] = None) -> bool:
        """Discharge with full HP once the timer has run out."""
        if not player.is_in_infirmary or player.is_in_infirmary_at(now):
            return False
        player.hp = player.max_hp
        player.is_in_infirmary = False
        player.infirmary_started_at = None
        player.infirmary_heals_at = None
        logger.info("%s discharged from infirmary", player.player_id)
        return True

    def status(self, player: PlayerState) -> Dict[str, Any]:
        return {
            "is_in_infirmary": player.is_in_infirmary,
            "started_at": player.infirmary_started_at.isoformat() if player.infirmary_started_at else None,
            "heals_at": player.infirmary_heals_at.isoformat() if player.infirmary_heals_at else None,
        }
