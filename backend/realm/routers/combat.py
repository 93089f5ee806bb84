"""
Interactive combat API routes.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from realm.dependencies import get_encounter_service
from realm.models.requests import EatRequest, StartCombatRequest
from realm.services.encounter_service import EncounterService

from ._responses import _map_exception_to_http, action_response

router = APIRouter(prefix="/combat", tags=["Combat"])


@router.get("/{player_id}")
async def get_combat_info(player_id: str, service: EncounterService = Depends(get_encounter_service)):
    """战斗面板：属性、装备、攻击风格、当前会话"""
    try:
        return await service.get_combat_info(player_id)
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc


@router.get("/{player_id}/monsters")
async def list_monsters(
    player_id: str,
    biome: Optional[str] = Query(default=None),
    service: EncounterService = Depends(get_encounter_service),
):
    try:
        return {"monsters": await service.get_available_monsters(player_id, biome=biome)}
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc


@router.get("/{player_id}/active")
async def get_active_combat(player_id: str, service: EncounterService = Depends(get_encounter_service)):
    try:
        active = await service.get_active_combat(player_id)
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc
    if active is None:
        raise HTTPException(status_code=404, detail="No active combat")
    return active


@router.get("/{player_id}/food")
async def list_food(player_id: str, service: EncounterService = Depends(get_encounter_service)):
    try:
        return {"food": await service.get_available_food(player_id)}
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc


@router.get("/{player_id}/log")
async def get_combat_log(
    player_id: str,
    session_id: Optional[str] = Query(default=None),
    service: EncounterService = Depends(get_encounter_service),
):
    """战斗日志（默认当前会话）"""
    try:
        return {"log": await service.get_combat_log(player_id, session_id=session_id)}
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc


@router.post("/{player_id}/start")
async def start_combat(
    player_id: str,
    payload: StartCombatRequest,
    service: EncounterService = Depends(get_encounter_service),
):
    try:
        result = await service.start_combat(player_id, payload.monster_id, payload.attack_style_index)
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc
    return action_response(result)


@router.post("/{player_id}/attack")
async def attack(player_id: str, service: EncounterService = Depends(get_encounter_service)):
    try:
        result = await service.attack(player_id)
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc
    return action_response(result)


@router.post("/{player_id}/eat")
async def eat(
    player_id: str,
    payload: EatRequest,
    service: EncounterService = Depends(get_encounter_service),
):
    try:
        result = await service.eat(player_id, payload.item_id)
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc
    return action_response(result)


@router.post("/{player_id}/flee")
async def flee(player_id: str, service: EncounterService = Depends(get_encounter_service)):
    try:
        result = await service.flee(player_id)
    except Exception as exc:
        raise _map_exception_to_http(exc) from exc
    return action_response(result)
