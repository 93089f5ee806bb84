"""
FastAPI dependencies.
"""
from functools import lru_cache

from realm.combat.dice import DiceRoller
from realm.config import settings
from realm.models.catalog import GameCatalog
from realm.services.document_store import DocumentStore, create_document_store
from realm.services.dungeon_service import DungeonService
from realm.services.encounter_service import EncounterService
from realm.services.player_locks import PlayerLocks


@lru_cache()
def get_catalog() -> GameCatalog:
    return GameCatalog.load(settings.catalog_path)


@lru_cache()
def get_document_store() -> DocumentStore:
    return create_document_store()


@lru_cache()
def get_player_locks() -> PlayerLocks:
    return PlayerLocks()


@lru_cache()
def get_dice() -> DiceRoller:
    return DiceRoller()


@lru_cache()
def get_encounter_service() -> EncounterService:
    return EncounterService(get_document_store(), get_catalog(), locks=get_player_locks(), dice=get_dice())


@lru_cache()
def get_dungeon_service() -> DungeonService:
    return DungeonService(get_document_store(), get_catalog(), locks=get_player_locks(), dice=get_dice())
