import asyncio

import pytest

from realm.services import AlreadyExistsError, DungeonService, EncounterService, MemoryDocumentStore, PlayerLocks
from realm.services.player_repository import ENCOUNTER_FLOW, active_marker_path, encounter_path


class _RacingStore(MemoryDocumentStore):
    """Another process always wins the active-marker create."""

    def run_transaction(self, fn, max_attempts=5):
        raise AlreadyExistsError("document already exists: players/p1/active/encounter")


def _active_sessions(store, player_id="p1"):
    return [data for _, data in store.list(f"players/{player_id}/encounters") if data["status"] == "active"]


@pytest.mark.asyncio
async def test_parallel_starts_create_one_session(encounters, seed_player, repository, store):
    seed_player()

    results = await asyncio.gather(*[encounters.start_combat("p1", "dummy", 0) for _ in range(5)])

    assert sum(1 for r in results if r.success) == 1
    assert all(r.rejected for r in results if not r.success)
    assert len(_active_sessions(store)) == 1
    assert repository.get_player("p1").energy == 99


@pytest.mark.asyncio
async def test_starts_from_separate_processes_still_create_one_session(
    store, catalog, dice, config, clock, seed_player, repository
):
    seed_player()
    workers = [
        EncounterService(store, catalog, locks=PlayerLocks(), dice=dice, config=config, clock=clock)
        for _ in range(4)
    ]

    results = await asyncio.gather(*[worker.start_combat("p1", "dummy", 0) for worker in workers])

    assert sum(1 for r in results if r.success) == 1
    assert len(_active_sessions(store)) == 1
    assert repository.get_player("p1").energy == 99


@pytest.mark.asyncio
async def test_lost_marker_race_is_a_rejection(catalog, dice, config, clock):
    service = EncounterService(_RacingStore(), catalog, dice=dice, config=config, clock=clock)

    result = await service.start_combat("p1", "dummy", 0)

    assert result.rejected
    assert result.message == "You are already in combat."


@pytest.mark.asyncio
async def test_players_do_not_block_each_other(encounters, seed_player, store):
    seed_player("p1")
    seed_player("p2")

    first, second = await asyncio.gather(
        encounters.start_combat("p1", "dummy", 0),
        encounters.start_combat("p2", "dummy", 0),
    )

    assert first.success and second.success
    assert len(_active_sessions(store, "p1")) == 1
    assert len(_active_sessions(store, "p2")) == 1


@pytest.mark.asyncio
async def test_failed_commit_rolls_back_start(encounters, seed_player, repository, store):
    seed_player()

    def _explode(writes):
        raise RuntimeError("storage unavailable")

    store.before_commit = _explode
    with pytest.raises(RuntimeError):
        await encounters.start_combat("p1", "dummy", 0)

    assert repository.get_player("p1").energy == 100
    assert store.get(active_marker_path("p1", ENCOUNTER_FLOW)) is None
    assert store.list("players/p1/encounters") == []


@pytest.mark.asyncio
async def test_failed_commit_rolls_back_attack(encounters, seed_player, repository, store, dice):
    seed_player()
    started = await encounters.start_combat("p1", "dummy", 0)
    session_id = started.data["session"]["session_id"]
    dice.script(100, 1, 1)

    def _explode(writes):
        raise RuntimeError("storage unavailable")

    store.before_commit = _explode
    with pytest.raises(RuntimeError):
        await encounters.attack("p1")
    store.before_commit = None

    session = store.get(encounter_path("p1", session_id))
    assert session["player_hp"] == 50
    assert session["round"] == 1
    assert session["log_count"] == 0
    assert repository.get_player("p1").hp == 50
    assert await encounters.get_combat_log("p1") == []


def _active_runs(store, player_id="p1"):
    return [data for _, data in store.list(f"players/{player_id}/dungeon_runs") if data["status"] == "active"]


@pytest.mark.asyncio
async def test_dungeon_entries_from_separate_processes_create_one_run(
    store, catalog, dice, config, clock, seed_player, repository
):
    seed_player()
    workers = [
        DungeonService(store, catalog, locks=PlayerLocks(), dice=dice, config=config, clock=clock)
        for _ in range(4)
    ]

    results = await asyncio.gather(*[worker.enter_dungeon("p1", "crypt", 0) for worker in workers])

    assert sum(1 for r in results if r.success) == 1
    assert all(r.rejected for r in results if not r.success)
    assert len(_active_runs(store)) == 1
    assert repository.get_player("p1").energy == 90


@pytest.mark.asyncio
async def test_combat_racing_dungeon_entry_leaves_one_activity(
    store, catalog, dice, config, clock, seed_player, repository
):
    seed_player()
    encounters = EncounterService(store, catalog, locks=PlayerLocks(), dice=dice, config=config, clock=clock)
    dungeons = DungeonService(store, catalog, locks=PlayerLocks(), dice=dice, config=config, clock=clock)

    started, entered = await asyncio.gather(
        encounters.start_combat("p1", "dummy", 0),
        dungeons.enter_dungeon("p1", "crypt", 0),
    )

    assert [started.success, entered.success].count(True) == 1
    assert started.rejected or entered.rejected
    assert len(_active_sessions(store)) + len(_active_runs(store)) == 1
    assert repository.get_player("p1").energy in (99, 90)


@pytest.mark.asyncio
async def test_locks_are_released_once_idle(locks):
    async with locks.hold("p1"):
        async with locks.hold("p2"):
            assert len(locks) == 2
        assert len(locks) == 1

    assert len(locks) == 0

    async def _worker():
        async with locks.hold("p1"):
            await asyncio.sleep(0)

    await asyncio.gather(*[_worker() for _ in range(3)])
    assert len(locks) == 0
