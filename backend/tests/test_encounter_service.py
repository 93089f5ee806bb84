from datetime import timedelta

import pytest

from realm.services.player_repository import ENCOUNTER_FLOW, active_marker_path, encounter_path

from conftest import LEVEL_10_XP, NOW, make_inventory


async def _start(encounters, monster_id="dummy", style_index=0):
    result = await encounters.start_combat("p1", monster_id, style_index)
    assert result.success, result.message
    return result.data["session"]["session_id"]


@pytest.mark.asyncio
async def test_start_combat_creates_session_and_marker(encounters, seed_player, repository, store):
    seed_player()

    result = await encounters.start_combat("p1", "dummy", 0)

    assert result.success
    assert result.status == "active"
    session = result.data["session"]
    assert session["monster_hp"] == 5
    assert session["player_hp"] == 50
    assert session["training_style"] == "attack"
    assert session["weapon_subtype"] == "mace"
    assert repository.get_player("p1").energy == 99
    assert store.get(active_marker_path("p1", ENCOUNTER_FLOW))["session_id"] == session["session_id"]


@pytest.mark.asyncio
async def test_start_combat_clamps_style_index(encounters, seed_player):
    seed_player()
    result = await encounters.start_combat("p1", "dummy", 42)
    assert result.data["session"]["attack_style_index"] == 3
    assert result.data["attack_style"]["weapon_style"] == "defensive"


@pytest.mark.asyncio
async def test_second_start_is_rejected_without_spending_energy(encounters, seed_player, repository):
    seed_player()
    await _start(encounters)

    result = await encounters.start_combat("p1", "dummy", 0)

    assert result.rejected
    assert result.message == "You are already in combat."
    assert repository.get_player("p1").energy == 99


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides,monster_id,message",
    [
        ({}, "dragon", "Monster not found."),
        ({}, "ghoul", "You need combat level 20 to fight Ghoul."),
        ({"energy": 0}, "dummy", "You need 1 energy to fight."),
        ({"hp": 0}, "dummy", "You are too injured to fight."),
        ({"traveling_until": NOW + timedelta(minutes=5)}, "dummy", "You cannot fight while traveling."),
    ],
)
async def test_start_combat_rejections(encounters, seed_player, repository, overrides, monster_id, message):
    seed_player(**overrides)
    before = repository.get_player("p1")

    result = await encounters.start_combat("p1", monster_id, 0)

    assert result.rejected
    assert result.message == message
    assert repository.get_player("p1").energy == before.energy


@pytest.mark.asyncio
async def test_start_combat_rejected_during_dungeon_run(encounters, dungeons, seed_player):
    seed_player()
    entered = await dungeons.enter_dungeon("p1", "crypt", 0)
    assert entered.success

    result = await encounters.start_combat("p1", "dummy", 0)

    assert result.rejected
    assert "dungeon" in result.message


@pytest.mark.asyncio
async def test_attack_kills_monster_and_awards_rewards(encounters, seed_player, repository, store, dice):
    seed_player()
    session_id = await _start(encounters)
    dice.script(1, 5)

    result = await encounters.attack("p1")

    assert result.success
    assert result.status == "victory"
    rewards = result.data["rewards"]
    assert rewards["xp"] == 10
    assert rewards["skill"] == "attack"
    assert rewards["gold"] == 0
    assert rewards["items"] == [{"item_id": "bones", "name": "Bones", "quantity": 1}]

    player = repository.get_player("p1")
    assert player.skills["attack"].xp == LEVEL_10_XP + 10
    assert repository.get_inventory("p1").quantity_of("bones") == 1
    assert store.get(active_marker_path("p1", ENCOUNTER_FLOW)) is None
    stored = store.get(encounter_path("p1", session_id))
    assert stored["status"] == "victory"
    assert stored["xp_gained"] == 10

    again = await encounters.attack("p1")
    assert again.rejected
    assert again.message == "You are not in combat."


@pytest.mark.asyncio
async def test_attack_round_without_kill_logs_both_sides(encounters, seed_player, repository, dice):
    seed_player()
    await _start(encounters)
    # player misses, dummy hits for 1
    dice.script(100, 1, 1)

    result = await encounters.attack("p1")

    assert result.success
    assert result.status == "active"
    assert result.data["session"]["round"] == 2
    assert result.data["session"]["player_hp"] == 49
    log = result.data["log"]
    assert [(e["seq"], e["actor"], e["hit"]) for e in log] == [(1, "player", False), (2, "monster", True)]
    assert log[1]["player_hp_after"] == 49
    assert repository.get_player("p1").hp == 49


@pytest.mark.asyncio
async def test_defeat_sends_player_to_infirmary(encounters, seed_player, repository, store, dice, clock):
    seed_player(hp=3)
    await _start(encounters, "brute")
    # player misses, brute hits for 20
    dice.script(100, 1, 20)

    result = await encounters.attack("p1")

    assert not result.success
    assert result.status == "defeat"
    player = repository.get_player("p1")
    assert player.hp == 0
    assert player.energy == 24
    assert player.is_in_infirmary
    assert store.get(active_marker_path("p1", ENCOUNTER_FLOW)) is None

    blocked = await encounters.start_combat("p1", "dummy", 0)
    assert blocked.rejected
    assert "infirmary" in blocked.message

    clock.advance(minutes=11)
    restarted = await encounters.start_combat("p1", "dummy", 0)
    assert restarted.success
    player = repository.get_player("p1")
    assert player.hp == player.max_hp
    assert not player.is_in_infirmary


@pytest.mark.asyncio
async def test_flee_succeeds_on_roll_at_chance(encounters, seed_player, repository, store, dice):
    seed_player()
    await _start(encounters)
    dice.script(50)

    result = await encounters.flee("p1")

    assert result.success
    assert result.status == "fled"
    assert len(result.data["log"]) == 1
    assert store.get(active_marker_path("p1", ENCOUNTER_FLOW)) is None
    assert repository.get_player("p1").energy == 99


@pytest.mark.asyncio
async def test_failed_flee_gives_monster_a_strike(encounters, seed_player, dice):
    seed_player()
    await _start(encounters)
    dice.script(51, 1, 1)

    result = await encounters.flee("p1")

    assert not result.success
    assert not result.rejected
    assert result.message == "You failed to escape!"
    assert result.status == "active"
    assert [e["action"] for e in result.data["log"]] == ["flee", "attack"]
    assert result.data["session"]["player_hp"] == 49


@pytest.mark.asyncio
async def test_eat_heals_only_missing_hp(encounters, seed_player, repository):
    seed_player(hp=45)
    await _start(encounters)

    result = await encounters.eat("p1", "feast")

    assert result.success
    assert result.data["hp_restored"] == 5
    assert result.data["log"][0]["hp_restored"] == 5
    assert result.data["session"]["player_hp"] == 50
    assert repository.get_inventory("p1").quantity_of("feast") == 1


@pytest.mark.asyncio
async def test_eat_unknown_or_inedible_item_is_rejected(encounters, seed_player, repository):
    inventory = make_inventory("p1", ("iron_mace", 1, True), ("bones", 4, False))
    seed_player(inventory=inventory)
    await _start(encounters)

    missing = await encounters.eat("p1", "feast")
    inedible = await encounters.eat("p1", "bones")

    assert missing.rejected
    assert inedible.rejected
    assert inedible.message == "This item cannot be eaten."
    assert repository.get_inventory("p1").quantity_of("bones") == 4
    assert await encounters.get_combat_log("p1") == []


@pytest.mark.asyncio
async def test_combat_log_is_replayable_after_the_fight(encounters, seed_player, dice):
    seed_player()
    session_id = await _start(encounters)
    dice.script(100, 100, 1, 5)
    await encounters.attack("p1")
    await encounters.attack("p1")

    log = await encounters.get_combat_log("p1", session_id=session_id)

    assert [entry["seq"] for entry in log] == [1, 2, 3]
    assert log[-1]["monster_hp_after"] == 0
    assert await encounters.get_combat_log("p1") == []


@pytest.mark.asyncio
async def test_read_views(encounters, seed_player):
    seed_player()

    monsters = await encounters.get_available_monsters("p1")
    assert [m["monster_id"] for m in monsters] == ["brute", "dummy"]

    food = await encounters.get_available_food("p1")
    assert {row["item_id"]: row["quantity"] for row in food} == {"bread": 3, "feast": 2}

    info = await encounters.get_combat_info("p1")
    assert not info["in_combat"]
    assert info["weapon_speed"]["class"] == "normal"
    assert info["player_stats"]["combat_level"] == 10
    assert len(info["attack_styles"]) == 4

    assert await encounters.get_active_combat("p1") is None
    await _start(encounters)
    active = await encounters.get_active_combat("p1")
    assert active["monster"]["monster_id"] == "dummy"
