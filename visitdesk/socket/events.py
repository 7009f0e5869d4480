import logging
from typing import Any

from visitdesk.core.config import get_settings
from visitdesk.core.security import principal_from_token
from visitdesk.db.session import SessionLocal
from visitdesk.services.premise_service import get_premise_for_owner

settings = get_settings()
logger = logging.getLogger(__name__)


def premise_room(premise_id: str) -> str:
    return f"premise:{premise_id}"


def _lookup_premise_id(principal_id: str) -> str | None:
    db = SessionLocal()
    try:
        premise = get_premise_for_owner(db, principal_id)
        return premise.id if premise else None
    finally:
        db.close()


def register_socket_events(sio):
    @sio.on("connect", namespace=settings.DASHBOARD_NAMESPACE)
    async def dashboard_connect(sid, environ, auth=None):
        principal_id = principal_from_token((auth or {}).get("token"))
        if not principal_id:
            logger.info("dashboard socket rejected sid=%s reason=unauthenticated", sid)
            return False

        premise_id = _lookup_premise_id(principal_id)
        if not premise_id:
            logger.info("dashboard socket rejected sid=%s reason=no_premise principal=%s", sid, principal_id)
            return False

        await sio.enter_room(sid, premise_room(premise_id), namespace=settings.DASHBOARD_NAMESPACE)
        await sio.save_session(
            sid,
            {"principalId": principal_id, "premiseId": premise_id},
            namespace=settings.DASHBOARD_NAMESPACE,
        )
        return True

    @sio.on("disconnect", namespace=settings.DASHBOARD_NAMESPACE)
    async def dashboard_disconnect(sid, *args):
        logger.debug("dashboard socket disconnected sid=%s", sid)


async def broadcast_visit_event(sio, event: str, premise_id: str, visit: dict[str, Any]) -> None:
    """Fan a visit change out to the owner's dashboard; delivery is best-effort."""
    try:
        await sio.emit(
            event,
            {"data": visit},
            room=premise_room(premise_id),
            namespace=settings.DASHBOARD_NAMESPACE,
        )
    except Exception:
        logger.warning("realtime emit failed event=%s premise_id=%s", event, premise_id, exc_info=True)
