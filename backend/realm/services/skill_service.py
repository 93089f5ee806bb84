"""
技能经验服务
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict

from realm.combat.rules import COMBAT_SKILLS
from realm.models.player import PlayerState, SkillRecord

logger = logging.getLogger(__name__)

MAX_LEVEL = 99
XP_PER_LEVEL_FACTOR = 60


def xp_for_level(level: int) -> int:
    """Total XP needed to reach `level`: sum of l^2 * 60 for l < level."""
    if level < 1:
        return 0
    return sum(l * l * XP_PER_LEVEL_FACTOR for l in range(1, min(level, MAX_LEVEL)))


def level_from_xp(xp: int) -> int:
    level = 1
    total = 0
    while level < MAX_LEVEL:
        needed = level * level * XP_PER_LEVEL_FACTOR
        if total + needed > xp:
            break
        total += needed
        level += 1
    return level


@dataclass
class XpGain:
    skill: str
    xp: int
    old_level: int
    new_level: int

    @property
    def levels_gained(self) -> int:
        return self.new_level - self.old_level

    @property
    def leveled_up(self) -> bool:
        return self.levels_gained > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "skill": self.skill,
            "xp": self.xp,
            "levels_gained": self.levels_gained,
            "current_level": self.new_level,
        }


class SkillService:
    def get_level(self, player: PlayerState, skill: str) -> int:
        return player.skill_level(skill)

    def combat_level(self, player: PlayerState) -> int:
        return sum(player.skill_level(skill) for skill in COMBAT_SKILLS) // len(COMBAT_SKILLS)

    def add_xp(self, player: PlayerState, skill: str, amount: int) -> XpGain:
        """Add XP, creating the skill at level 1 if the player lacks it."""
        record = player.skills.get(skill)
        if record is None:
            record = SkillRecord(level=1, xp=0)
            player.skills[skill] = record

        old_level = record.level
        if amount > 0:
            record.xp += amount
            new_level = level_from_xp(record.xp)
            if new_level > record.level:
                record.level = min(new_level, MAX_LEVEL)
                logger.info("%s reached %s level %d", player.player_id, skill, record.level)
        return XpGain(skill=skill, xp=max(0, amount), old_level=old_level, new_level=record.level)
