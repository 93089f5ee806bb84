from httpx import ASGITransport, AsyncClient
import pytest

from realm.dependencies import get_dungeon_service, get_encounter_service
from realm.main import app
from realm.services.player_repository import ENCOUNTER_FLOW, active_marker_path


@pytest.fixture
def client(encounters, dungeons):
    app.dependency_overrides[get_encounter_service] = lambda: encounters
    app.dependency_overrides[get_dungeon_service] = lambda: dungeons
    yield AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_start_and_attack_over_http(client, seed_player, dice):
    seed_player()
    async with client:
        started = await client.post("/api/combat/p1/start", json={"monster_id": "dummy"})
        assert started.status_code == 200
        assert started.json()["status"] == "active"

        dice.script(1, 5)
        attacked = await client.post("/api/combat/p1/attack")
        assert attacked.status_code == 200
        body = attacked.json()
        assert body["success"] is True
        assert body["data"]["rewards"]["xp"] == 10

        log = await client.get("/api/combat/p1/log", params={"session_id": body["data"]["session"]["session_id"]})
        assert len(log.json()["log"]) == 1


@pytest.mark.asyncio
async def test_rejections_map_to_409(client, seed_player):
    seed_player()
    async with client:
        response = await client.post("/api/combat/p1/attack")
        assert response.status_code == 409
        assert response.json()["detail"] == "You are not in combat."

        response = await client.post("/api/dungeons/p1/enter", json={"dungeon_id": "atlantis"})
        assert response.status_code == 409


@pytest.mark.asyncio
async def test_failed_flee_is_not_an_error(client, seed_player, dice):
    seed_player()
    async with client:
        await client.post("/api/combat/p1/start", json={"monster_id": "dummy"})
        dice.script(99)
        response = await client.post("/api/combat/p1/flee")

    assert response.status_code == 200
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_missing_active_state_is_404(client, seed_player):
    seed_player()
    async with client:
        assert (await client.get("/api/combat/p1/active")).status_code == 404
        assert (await client.get("/api/dungeons/p1/active")).status_code == 404


@pytest.mark.asyncio
async def test_dangling_marker_is_a_server_error(client, seed_player, store):
    seed_player()
    store.run_transaction(
        lambda txn: txn.set(active_marker_path("p1", ENCOUNTER_FLOW), {"session_id": "enc_gone"})
    )
    async with client:
        response = await client.post("/api/combat/p1/attack")

    assert response.status_code == 500
    assert "enc_gone" in response.json()["detail"]


@pytest.mark.asyncio
async def test_invalid_payload_is_422(client, seed_player):
    seed_player()
    async with client:
        response = await client.post("/api/combat/p1/start", json={"monster_id": "dummy", "attack_style_index": -1})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_dungeon_flow_and_loot_claim_over_http(client, seed_player, dice):
    seed_player()
    async with client:
        entered = await client.post("/api/dungeons/p1/enter", json={"dungeon_id": "pit", "attack_style_index": 0})
        assert entered.status_code == 200

        dice.script(1, 1, 5)
        fought = await client.post("/api/dungeons/p1/fight")
        assert fought.json()["status"] == "completed"

        loot = (await client.get("/api/dungeons/p1/loot", params={"kingdom_id": "valdoria"})).json()["loot"]
        assert loot[0]["entry_id"] == "valdoria_bones"

        claimed = await client.post("/api/dungeons/p1/loot/valdoria_bones/claim", json={"quantity": 1})
        assert claimed.status_code == 200
        assert claimed.json()["data"]["quantity"] == 1

        info = (await client.get("/api/dungeons/p1")).json()
        assert not info["in_dungeon"]
        assert {d["dungeon_id"] for d in info["available"]} == {"crypt", "pit"}


@pytest.mark.asyncio
async def test_claim_all_loot_over_http(client, seed_player, dice):
    seed_player()
    async with client:
        empty = await client.post("/api/dungeons/p1/loot/claim-all", json={"kingdom_id": "valdoria"})
        assert empty.status_code == 409
        assert empty.json()["detail"] == "No loot to claim."

        await client.post("/api/dungeons/p1/enter", json={"dungeon_id": "pit"})
        dice.script(1, 1, 5)
        await client.post("/api/dungeons/p1/fight")

        claimed = await client.post("/api/dungeons/p1/loot/claim-all", json={"kingdom_id": "valdoria"})
        assert claimed.status_code == 200
        assert claimed.json()["data"]["claimed"] == {"bones": 1}

        missing_kingdom = await client.post("/api/dungeons/p1/loot/claim-all", json={})
        assert missing_kingdom.status_code == 422
