"""
静态目录（怪物 / 物品 / 地牢）

Read-only game content loaded once from JSON.
"""
import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from realm.combat.models.monster import Monster

logger = logging.getLogger(__name__)


class Item(BaseModel):
    """物品定义"""

    item_id: str
    name: str
    type: str = "resource"  # weapon / armor / consumable / resource
    subtype: Optional[str] = None
    equipment_slot: Optional[str] = None

    atk_bonus: int = 0
    str_bonus: int = 0
    def_bonus: int = 0
    hp_bonus: int = 0

    effective_against: List[str] = Field(default_factory=list)
    weak_against: List[str] = Field(default_factory=list)

    stackable: bool = False
    max_stack: int = 1

    @property
    def is_weapon(self) -> bool:
        return self.type == "weapon"

    @property
    def is_food(self) -> bool:
        return self.type == "consumable" and self.hp_bonus > 0


class FloorSpawn(BaseModel):
    monster_id: str
    weight: int = Field(default=1, ge=1)


class DungeonFloor(BaseModel):
    floor_number: int
    name: str = ""
    monster_count: int = Field(default=1, ge=1)
    is_boss_floor: bool = False
    loot_multiplier: float = 1.0
    spawns: List[FloorSpawn] = Field(default_factory=list)


class Dungeon(BaseModel):
    """地牢定义"""

    dungeon_id: str
    name: str
    description: str = ""
    kingdom_id: Optional[str] = None
    min_combat_level: int = 1
    energy_cost: int = 0
    boss_monster_id: Optional[str] = None
    xp_reward_base: int = 0
    gold_reward_min: int = 0
    gold_reward_max: int = 0
    floors: List[DungeonFloor] = Field(default_factory=list)

    @property
    def floor_count(self) -> int:
        return len(self.floors)

    def get_floor(self, floor_number: int) -> Optional[DungeonFloor]:
        for floor in self.floors:
            if floor.floor_number == floor_number:
                return floor
        return None

    def is_final_floor(self, floor_number: int) -> bool:
        return floor_number >= self.floor_count


class GameCatalog:
    """
    不可变游戏目录

    Lookups return None for unknown ids; callers turn that into a rejection.
    """

    def __init__(
        self,
        monsters: List[Monster],
        items: List[Item],
        dungeons: Optional[List[Dungeon]] = None,
    ) -> None:
        self._monsters = MappingProxyType({m.monster_id: m for m in monsters})
        self._items = MappingProxyType({i.item_id: i for i in items})
        self._dungeons = MappingProxyType({d.dungeon_id: d for d in dungeons or []})
        self._check_references()

    def _check_references(self) -> None:
        for monster in self._monsters.values():
            for entry in monster.loot_table:
                if entry.item_id not in self._items:
                    raise ValueError(f"monster {monster.monster_id} drops unknown item {entry.item_id}")
        for dungeon in self._dungeons.values():
            if dungeon.boss_monster_id and dungeon.boss_monster_id not in self._monsters:
                raise ValueError(f"dungeon {dungeon.dungeon_id} has unknown boss {dungeon.boss_monster_id}")
            if not dungeon.floors:
                raise ValueError(f"dungeon {dungeon.dungeon_id} has no floors")
            numbers = [floor.floor_number for floor in dungeon.floors]
            if numbers != list(range(1, len(numbers) + 1)):
                raise ValueError(f"dungeon {dungeon.dungeon_id} floors must be numbered 1..n in order, got {numbers}")
            for floor in dungeon.floors:
                boss_only = floor.is_boss_floor and dungeon.boss_monster_id and floor.monster_count == 1
                if not floor.spawns and not boss_only:
                    raise ValueError(f"dungeon {dungeon.dungeon_id} floor {floor.floor_number} has no spawns")
                for spawn in floor.spawns:
                    if spawn.monster_id not in self._monsters:
                        raise ValueError(
                            f"dungeon {dungeon.dungeon_id} floor {floor.floor_number} "
                            f"spawns unknown monster {spawn.monster_id}"
                        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameCatalog":
        return cls(
            monsters=[Monster(**m) for m in data.get("monsters", [])],
            items=[Item(**i) for i in data.get("items", [])],
            dungeons=[Dungeon(**d) for d in data.get("dungeons", [])],
        )

    @classmethod
    def load(cls, path: Union[str, Path]) -> "GameCatalog":
        path = Path(path)
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        catalog = cls.from_dict(data)
        logger.info(
            "Loaded catalog %s: %d monsters, %d items, %d dungeons",
            path.name,
            len(catalog._monsters),
            len(catalog._items),
            len(catalog._dungeons),
        )
        return catalog

    def get_monster(self, monster_id: str) -> Optional[Monster]:
        return self._monsters.get(monster_id)

    def get_item(self, item_id: str) -> Optional[Item]:
        return self._items.get(item_id)

    def get_dungeon(self, dungeon_id: str) -> Optional[Dungeon]:
        return self._dungeons.get(dungeon_id)

    def monsters(self) -> List[Monster]:
        return list(self._monsters.values())

    def dungeons(self) -> List[Dungeon]:
        return list(self._dungeons.values())
