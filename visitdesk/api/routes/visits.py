import logging
from time import perf_counter

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from visitdesk.api.deps import get_current_premise, get_current_principal
from visitdesk.core.exceptions import AppException
from visitdesk.db.models import Premise, Visit
from visitdesk.db.session import get_db
from visitdesk.schemas.visit import VisitDenyRequest, VisitSubmitRequest, VisitSubmitResponse, VisitTransitionRequest
from visitdesk.services.identity_service import get_visitor
from visitdesk.services.intake_service import submit_visit
from visitdesk.services.visit_service import (
    get_owned_visit,
    get_visit_board,
    list_premise_visits,
    parse_status_filter,
    serialize_visit,
    serialize_visits,
    transition_visit,
)
from visitdesk.socket.events import broadcast_visit_event
from visitdesk.socket.server import sio

router = APIRouter()
logger = logging.getLogger(__name__)


async def _announce_created(db: Session, visit: Visit) -> None:
    """Dashboard fan-out for a stored visit; never fails the submission."""
    try:
        data = serialize_visit(visit, get_visitor(db, visit.visitor_id))
    except SQLAlchemyError:
        db.rollback()
        logger.warning("visit.created payload lookup failed visit_id=%s", visit.id, exc_info=True)
        return
    await broadcast_visit_event(sio, "visit.created", visit.premise_id, data)


@router.post("/submit", status_code=status.HTTP_201_CREATED)
async def visit_submit(payload: VisitSubmitRequest, db: Session = Depends(get_db)):
    started = perf_counter()
    phase = "intake"
    try:
        visit = submit_visit(db, payload.qrIdentifier, payload.formData)
        # Visit is committed; fan-out below is best-effort.
        body = VisitSubmitResponse(visitId=visit.id, status=visit.status).model_dump()

        phase = "emit_visit_created"
        await _announce_created(db, visit)

        elapsed_ms = (perf_counter() - started) * 1000
        logger.info(
            "visit.submit completed in %.1fms qr_identifier=%s visit_id=%s",
            elapsed_ms,
            payload.qrIdentifier,
            body["visitId"],
        )
        return {"data": body}
    except AppException as exc:
        elapsed_ms = (perf_counter() - started) * 1000
        logger.info(
            "visit.submit rejected in %.1fms phase=%s qr_identifier=%s reason=%s",
            elapsed_ms,
            phase,
            payload.qrIdentifier,
            exc.message,
        )
        raise
    except Exception:
        elapsed_ms = (perf_counter() - started) * 1000
        logger.exception(
            "visit.submit failed in %.1fms phase=%s qr_identifier=%s",
            elapsed_ms,
            phase,
            payload.qrIdentifier,
        )
        raise


@router.get("")
def visits_index(
    status_filter: str | None = Query(default=None, alias="status"),
    form_id: str | None = Query(default=None, alias="formId"),
    db: Session = Depends(get_db),
    premise: Premise = Depends(get_current_premise),
):
    visits = list_premise_visits(db, premise.id, statuses=parse_status_filter(status_filter), form_id=form_id)
    return {"data": serialize_visits(db, visits)}


@router.get("/board")
def visits_board(
    db: Session = Depends(get_db),
    premise: Premise = Depends(get_current_premise),
):
    return {"data": get_visit_board(db, premise.id)}


@router.get("/{visit_id}")
def visits_show(
    visit_id: str,
    db: Session = Depends(get_db),
    principal_id: str = Depends(get_current_principal),
):
    visit = get_owned_visit(db, principal_id, visit_id)
    return {"data": serialize_visit(visit, get_visitor(db, visit.visitor_id))}


async def _transition(db: Session, principal_id: str, visit_id: str, action: str, reason: str | None = None):
    visit = transition_visit(db, principal_id, visit_id, action, reason=reason)
    data = serialize_visit(visit, get_visitor(db, visit.visitor_id))
    await broadcast_visit_event(sio, "visit.updated", visit.premise_id, data)
    return {"data": data}


@router.post("/{visit_id}/approve")
async def visits_approve(
    visit_id: str,
    db: Session = Depends(get_db),
    principal_id: str = Depends(get_current_principal),
):
    return await _transition(db, principal_id, visit_id, "approve")


@router.post("/{visit_id}/deny")
async def visits_deny(
    visit_id: str,
    payload: VisitDenyRequest | None = None,
    db: Session = Depends(get_db),
    principal_id: str = Depends(get_current_principal),
):
    return await _transition(db, principal_id, visit_id, "deny", reason=payload.reason if payload else None)


@router.post("/{visit_id}/checkout")
async def visits_checkout(
    visit_id: str,
    db: Session = Depends(get_db),
    principal_id: str = Depends(get_current_principal),
):
    return await _transition(db, principal_id, visit_id, "checkout")


@router.post("/{visit_id}/transition")
async def visits_transition(
    visit_id: str,
    payload: VisitTransitionRequest,
    db: Session = Depends(get_db),
    principal_id: str = Depends(get_current_principal),
):
    return await _transition(db, principal_id, visit_id, payload.action, reason=payload.reason)
