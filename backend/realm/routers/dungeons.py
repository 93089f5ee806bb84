"""
Dungeon run API routes.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from realm.dependencies import get_dungeon_service
from realm.models.requests import ClaimAllLootRequest, ClaimLootRequest, EatRequest, EnterDungeonRequest
from realm.services.dungeon_service import DungeonService

from ._responses import _map_exception_to_http, action_response

router = APIRouter(prefix="/dungeons", tags=["Dungeons"])


@router.get("/{player_id}")
async def get_dungeon_info(player_id: str, service: DungeonService = Depends(get_dungeon_service)):
    """地牢面板：当前探索、属性、可进入的地牢"""
    try:
        info = await service.get_dungeon_info(player_id)
        info["available"] = await service.get_available_dungeons(player_id)
        return info
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc


@router.get("/{player_id}/active")
async def get_active_run(player_id: str, service: DungeonService = Depends(get_dungeon_service)):
    try:
        active = await service.get_active_run(player_id)
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc
    if active is None:
        raise HTTPException(status_code=404, detail="No active dungeon run")
    return active


@router.post("/{player_id}/enter")
async def enter_dungeon(
    player_id: str,
    payload: EnterDungeonRequest,
    service: DungeonService = Depends(get_dungeon_service),
):
    try:
        result = await service.enter_dungeon(player_id, payload.dungeon_id, payload.attack_style_index)
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc
    return action_response(result)


@router.post("/{player_id}/fight")
async def fight_monster(player_id: str, service: DungeonService = Depends(get_dungeon_service)):
    try:
        result = await service.fight_monster(player_id)
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc
    return action_response(result)


@router.post("/{player_id}/next-floor")
async def next_floor(player_id: str, service: DungeonService = Depends(get_dungeon_service)):
    try:
        result = await service.next_floor(player_id)
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc
    return action_response(result)


@router.post("/{player_id}/abandon")
async def abandon_dungeon(player_id: str, service: DungeonService = Depends(get_dungeon_service)):
    try:
        result = await service.abandon_dungeon(player_id)
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc
    return action_response(result)


@router.post("/{player_id}/eat")
async def eat_food(
    player_id: str,
    payload: EatRequest,
    service: DungeonService = Depends(get_dungeon_service),
):
    try:
        result = await service.eat_food(player_id, payload.item_id)
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc
    return action_response(result)


@router.get("/{player_id}/loot")
async def list_loot(
    player_id: str,
    kingdom_id: Optional[str] = Query(default=None),
    service: DungeonService = Depends(get_dungeon_service),
):
    """地牢战利品仓库"""
    try:
        return {"loot": await service.get_player_loot(player_id, kingdom_id=kingdom_id)}
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc


@router.post("/{player_id}/loot/{entry_id}/claim")
async def claim_loot(
    player_id: str,
    entry_id: str,
    payload: Optional[ClaimLootRequest] = None,
    service: DungeonService = Depends(get_dungeon_service),
):
    quantity = payload.quantity if payload else None
    try:
        result = await service.claim_loot(player_id, entry_id, quantity)
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc
    return action_response(result)


@router.post("/{player_id}/loot/claim-all")
async def claim_all_loot(
    player_id: str,
    payload: ClaimAllLootRequest,
    service: DungeonService = Depends(get_dungeon_service),
):
    try:
        result = await service.claim_all_loot(player_id, payload.kingdom_id)
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc
    return action_response(result)
