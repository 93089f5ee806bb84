"""
Shared result/exception mapping for the combat routers.
"""
import logging
from typing import Any, Dict

from fastapi import HTTPException

from realm.combat.models.combat_result import ActionResult
from realm.services.document_store import TransactionConflictError
from realm.services.exceptions import CombatStateError

logger = logging.getLogger(__name__)


def action_response(result: ActionResult) -> Dict[str, Any]:
    """Rejected preconditions become 409; every resolved outcome is 200."""
    if result.rejected:
        raise HTTPException(status_code=409, detail=result.message)
    return result.to_dict()


def _map_exception_to_http(exc: Exception) -> HTTPException:
    if isinstance(exc, CombatStateError):
        logger.error("combat state error for %s: %s", exc.player_id or "?", exc)
        return HTTPException(status_code=500, detail=str(exc))
    if isinstance(exc, TransactionConflictError):
        logger.warning("transaction conflict: %s", exc)
        return HTTPException(status_code=503, detail=str(exc))
    logger.exception("unexpected combat error")
    return HTTPException(status_code=500, detail=str(exc))
