from datetime import datetime, timedelta, timezone

import pytest

from realm.combat.dice import DiceRoller
from realm.config import Settings
from realm.models.catalog import GameCatalog
from realm.models.player import Inventory, InventorySlot, PlayerLocation, PlayerState, SkillRecord
from realm.services import (
    DungeonService,
    EncounterService,
    MemoryDocumentStore,
    PlayerLocks,
    PlayerRepository,
)

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

# level 10 with exactly the XP that level needs
LEVEL_10_XP = 17100

CATALOG_DATA = {
    "monsters": [
        {
            "monster_id": "dummy",
            "name": "Training Dummy",
            "type": "beast",
            "max_hp": 5,
            "attack_level": 1,
            "strength_level": 1,
            "defense_level": 1,
            "xp_reward": 10,
            "loot_table": [{"item_id": "bones", "drop_chance": 100, "quantity_min": 1, "quantity_max": 1}],
        },
        {
            "monster_id": "brute",
            "name": "Brute",
            "type": "humanoid",
            "max_hp": 100,
            "attack_level": 50,
            "strength_level": 40,
            "defense_level": 1,
        },
        {
            "monster_id": "ghoul",
            "name": "Ghoul",
            "type": "undead",
            "biome": "swamp",
            "max_hp": 40,
            "attack_level": 5,
            "strength_level": 5,
            "defense_level": 5,
            "min_player_combat_level": 20,
        },
        {
            "monster_id": "boss_rat",
            "name": "Boss Rat",
            "type": "beast",
            "max_hp": 5,
            "defense_level": 1,
            "is_boss": True,
        },
    ],
    "items": [
        {"item_id": "bones", "name": "Bones", "stackable": True, "max_stack": 100},
        {"item_id": "trophy", "name": "Trophy"},
        {"item_id": "bread", "name": "Bread", "type": "consumable", "hp_bonus": 5, "stackable": True, "max_stack": 10},
        {"item_id": "feast", "name": "Feast", "type": "consumable", "hp_bonus": 20, "stackable": True, "max_stack": 10},
        {
            "item_id": "iron_mace",
            "name": "Iron Mace",
            "type": "weapon",
            "subtype": "mace",
            "equipment_slot": "weapon",
            "effective_against": ["undead"],
        },
        {
            "item_id": "bronze_dagger",
            "name": "Bronze Dagger",
            "type": "weapon",
            "subtype": "dagger",
            "equipment_slot": "weapon",
            "atk_bonus": 2,
            "str_bonus": 1,
        },
        {"item_id": "leather_vest", "name": "Leather Vest", "type": "armor", "equipment_slot": "body", "def_bonus": 3},
    ],
    "dungeons": [
        {
            "dungeon_id": "crypt",
            "name": "Crypt",
            "kingdom_id": "valdoria",
            "energy_cost": 10,
            "boss_monster_id": "boss_rat",
            "xp_reward_base": 100,
            "floors": [
                {"floor_number": 1, "name": "Antechamber", "monster_count": 1, "spawns": [{"monster_id": "dummy", "weight": 10}]},
                {
                    "floor_number": 2,
                    "name": "Tomb",
                    "monster_count": 2,
                    "is_boss_floor": True,
                    "spawns": [{"monster_id": "dummy", "weight": 10}],
                },
            ],
        },
        {
            "dungeon_id": "pit",
            "name": "Pit",
            "kingdom_id": "valdoria",
            "energy_cost": 5,
            "xp_reward_base": 100,
            "gold_reward_min": 30,
            "gold_reward_max": 30,
            "floors": [
                {
                    "floor_number": 1,
                    "name": "Bottom",
                    "monster_count": 1,
                    "is_boss_floor": True,
                    "loot_multiplier": 1.5,
                    "spawns": [{"monster_id": "dummy", "weight": 10}],
                },
            ],
        },
        {
            "dungeon_id": "fortress",
            "name": "Fortress",
            "kingdom_id": "norrland",
            "min_combat_level": 40,
            "energy_cost": 5,
            "floors": [{"floor_number": 1, "spawns": [{"monster_id": "brute"}]}],
        },
    ],
}


class _ScriptedDice(DiceRoller):
    """
    Returns queued values first, then the top of each range.

    The fallback makes every strike miss (hit chance never exceeds 95)
    while 100% loot chances still succeed.
    """

    def __init__(self, *values: int) -> None:
        super().__init__(seed=0)
        self.queue = list(values)
        self.calls = []

    def script(self, *values: int) -> None:
        self.queue.extend(values)

    def roll(self, low: int, high: int) -> int:
        if high < low:
            low, high = high, low
        self.calls.append((low, high))
        if self.queue:
            return self.queue.pop(0)
        return high


class _Clock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)

    def __call__(self) -> datetime:
        return self.now


def make_player(player_id: str = "p1", **overrides) -> PlayerState:
    data = {
        "player_id": player_id,
        "name": "Tester",
        "hp": 50,
        "max_hp": 50,
        "energy": 100,
        "skills": {
            "attack": SkillRecord(level=10, xp=LEVEL_10_XP),
            "strength": SkillRecord(level=10, xp=LEVEL_10_XP),
            "defense": SkillRecord(level=10, xp=LEVEL_10_XP),
            "hitpoints": SkillRecord(level=10, xp=LEVEL_10_XP),
        },
        "location": PlayerLocation(type="town", id="riverbend", kingdom_id="valdoria"),
    }
    data.update(overrides)
    return PlayerState(**data)


def make_inventory(player_id: str = "p1", *slots, **overrides) -> Inventory:
    inventory_slots = [
        InventorySlot(slot_id=f"slot_{index}", item_id=item_id, quantity=quantity, equipped=equipped)
        for index, (item_id, quantity, equipped) in enumerate(slots, start=1)
    ]
    return Inventory(player_id=player_id, slots=inventory_slots, next_slot_seq=len(inventory_slots), **overrides)


@pytest.fixture
def catalog():
    return GameCatalog.from_dict(CATALOG_DATA)


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def dice():
    return _ScriptedDice()


@pytest.fixture
def clock():
    return _Clock()


@pytest.fixture
def config():
    return Settings(
        storage_backend="memory",
        combat_energy_cost=1,
        flee_success_chance=50,
        death_energy_percent=25,
        xp_per_damage=4,
        max_dungeon_rounds=50,
        infirmary_minutes=10,
        dungeon_loot_expiry_days=14,
    )


@pytest.fixture
def repository(store):
    return PlayerRepository(store)


@pytest.fixture
def seed_player(repository):
    """Create a player holding an equipped mace, a vest and some food."""

    def _seed(player_id: str = "p1", inventory: Inventory = None, **overrides) -> PlayerState:
        player = make_player(player_id, **overrides)
        if inventory is None:
            inventory = make_inventory(
                player_id,
                ("iron_mace", 1, True),
                ("bread", 3, False),
                ("feast", 2, False),
            )
        repository.create_player(player, inventory)
        return player

    return _seed


@pytest.fixture
def locks():
    return PlayerLocks()


@pytest.fixture
def encounters(store, catalog, locks, dice, config, clock):
    return EncounterService(store, catalog, locks=locks, dice=dice, config=config, clock=clock)


@pytest.fixture
def dungeons(store, catalog, locks, dice, config, clock):
    return DungeonService(store, catalog, locks=locks, dice=dice, config=config, clock=clock)
