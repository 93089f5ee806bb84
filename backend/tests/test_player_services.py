from datetime import timedelta
from pathlib import Path

import pytest

from realm.config import settings
from realm.models.catalog import GameCatalog
from realm.services.energy_service import EnergyService
from realm.services.infirmary_service import InfirmaryService
from realm.services.inventory_service import InventoryService
from realm.services.skill_service import MAX_LEVEL, SkillService, level_from_xp, xp_for_level

from conftest import CATALOG_DATA, NOW, make_inventory, make_player


# ============================================
# Skills
# ============================================


def test_xp_curve():
    assert xp_for_level(1) == 0
    assert xp_for_level(2) == 60
    assert xp_for_level(3) == 300
    assert level_from_xp(0) == 1
    assert level_from_xp(59) == 1
    assert level_from_xp(60) == 2
    assert level_from_xp(299) == 2
    assert level_from_xp(10 ** 9) == MAX_LEVEL


def test_add_xp_levels_up_and_creates_missing_skill():
    player = make_player(skills={})
    skills = SkillService()

    gain = skills.add_xp(player, "attack", 300)

    assert gain.leveled_up
    assert gain.levels_gained == 2
    assert player.skills["attack"].level == 3
    assert skills.add_xp(player, "attack", 0).levels_gained == 0
    assert skills.get_level(player, "attack") == 3
    assert skills.get_level(player, "magic") == 1


def test_combat_level_defaults_missing_skills_to_one():
    player = make_player(skills={})
    assert SkillService().combat_level(player) == 1
    assert SkillService().combat_level(make_player()) == 10


# ============================================
# Energy / infirmary
# ============================================


def test_energy_consumption_and_death_penalty():
    energy = EnergyService(death_energy_percent=25)
    player = make_player(energy=3)

    assert not energy.consume_energy(player, 5)
    assert player.energy == 3
    assert energy.consume_energy(player, 3)
    assert player.energy == 0

    player.energy = 99
    assert energy.set_energy_on_death(player) == 24


def test_infirmary_admission_and_discharge():
    infirmary = InfirmaryService(heal_minutes=10)
    player = make_player(hp=0)

    infirmary.admit_player(player, NOW)

    assert infirmary.is_in_infirmary(player, NOW + timedelta(minutes=9))
    assert not infirmary.check_and_discharge(player, NOW + timedelta(minutes=9))
    assert player.hp == 0
    assert infirmary.check_and_discharge(player, NOW + timedelta(minutes=10))
    assert player.hp == player.max_hp
    assert infirmary.status(player)["heals_at"] is None


# ============================================
# Inventory
# ============================================


@pytest.fixture
def inventory_service():
    return InventoryService(GameCatalog.from_dict(CATALOG_DATA))


def test_add_item_stacks_then_opens_new_slots(inventory_service):
    inventory = make_inventory("p1", ("bread", 8, False), max_slots=3)

    assert inventory_service.space_for(inventory, "bread") == 22
    assert inventory_service.add_item(inventory, "bread", 5)
    assert [slot.quantity for slot in inventory.slots] == [10, 3]


def test_add_item_is_all_or_nothing(inventory_service):
    inventory = make_inventory("p1", ("iron_mace", 1, True), max_slots=2)

    assert not inventory_service.add_item(inventory, "trophy", 2)
    assert len(inventory.slots) == 1


def test_equipped_items_are_not_consumable(inventory_service):
    inventory = make_inventory("p1", ("iron_mace", 1, True))

    assert not inventory_service.has_item(inventory, "iron_mace")
    assert not inventory_service.remove_item(inventory, "iron_mace")
    assert inventory_service.weapon_subtype(inventory) == "mace"
    assert inventory_service.weapon_subtype(make_inventory("p1")) == "unarmed"


def test_remove_item_spans_slots(inventory_service):
    inventory = make_inventory("p1", ("bread", 2, False), ("bread", 3, False))

    assert inventory_service.remove_item(inventory, "bread", 4)
    assert [(slot.item_id, slot.quantity) for slot in inventory.slots] == [("bread", 1)]


# ============================================
# Catalog
# ============================================


def test_bundled_catalog_loads():
    catalog = GameCatalog.load(Path(settings.catalog_path))
    assert catalog.get_dungeon("goblin_warrens").floor_count == 3
    assert catalog.get_monster("goblin_king").is_boss


def test_catalog_rejects_dangling_references():
    data = dict(CATALOG_DATA)
    data["dungeons"] = [{"dungeon_id": "x", "name": "X", "boss_monster_id": "ghost", "floors": []}]
    with pytest.raises(ValueError, match="unknown boss"):
        GameCatalog.from_dict(data)


@pytest.mark.parametrize(
    "floors, message",
    [
        ([], "has no floors"),
        (
            [
                {"floor_number": 1, "spawns": [{"monster_id": "dummy"}]},
                {"floor_number": 3, "spawns": [{"monster_id": "dummy"}]},
            ],
            "numbered 1..n",
        ),
        ([{"floor_number": 1, "spawns": []}], "has no spawns"),
        ([{"floor_number": 1, "is_boss_floor": True, "monster_count": 2}], "has no spawns"),
    ],
)
def test_catalog_rejects_unplayable_dungeon_floors(floors, message):
    data = dict(CATALOG_DATA)
    data["dungeons"] = [{"dungeon_id": "x", "name": "X", "boss_monster_id": "boss_rat", "floors": floors}]
    with pytest.raises(ValueError, match=message):
        GameCatalog.from_dict(data)


def test_catalog_allows_boss_only_floor():
    data = dict(CATALOG_DATA)
    data["dungeons"] = [
        {
            "dungeon_id": "lair",
            "name": "Lair",
            "boss_monster_id": "boss_rat",
            "floors": [{"floor_number": 1, "is_boss_floor": True, "monster_count": 1}],
        }
    ]
    assert GameCatalog.from_dict(data).get_dungeon("lair").is_final_floor(1)
