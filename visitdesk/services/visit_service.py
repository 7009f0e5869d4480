from typing import Any, Iterable

from sqlalchemy.orm import Session

from visitdesk.core.exceptions import InvalidInput, VisitNotFound
from visitdesk.db.models import Visit, VisitorIdentity, VisitStatus
from visitdesk.services import visit_state
from visitdesk.services.audit_service import write_audit_log
from visitdesk.services.authorization_service import ResourceRef, require_owner

STATUS_LABELS = {
    VisitStatus.pending_approval.value: "Pending approval",
    VisitStatus.checked_in.value: "Pending approval",
    VisitStatus.approved.value: "Admitted",
    VisitStatus.denied.value: "Denied",
    VisitStatus.checked_out.value: "Checked out",
}

HISTORY_STATUSES = (VisitStatus.checked_out.value, VisitStatus.denied.value)


def parse_status_filter(raw: str | None) -> list[str] | None:
    if not raw:
        return None
    statuses = [part.strip().lower() for part in raw.split(",") if part.strip()]
    unknown = [status for status in statuses if status not in visit_state.ALL_STATUSES]
    if unknown:
        raise InvalidInput(f"Unknown visit status: {', '.join(unknown)}")
    return statuses or None


def _visitor_index(db: Session, visits: Iterable[Visit]) -> dict[str, VisitorIdentity]:
    visitor_ids = {visit.visitor_id for visit in visits if visit.visitor_id}
    if not visitor_ids:
        return {}
    rows = db.query(VisitorIdentity).filter(VisitorIdentity.id.in_(visitor_ids)).all()
    return {row.id: row for row in rows}


def serialize_visit(visit: Visit, visitor: VisitorIdentity | None = None) -> dict[str, Any]:
    return {
        "id": visit.id,
        "premiseId": visit.premise_id,
        "formId": visit.form_id,
        "qrcodeId": visit.qrcode_id,
        "visitorId": visit.visitor_id,
        "visitor": (
            {"id": visitor.id, "fullName": visitor.full_name, "email": visitor.email}
            if visitor
            else None
        ),
        "formData": visit.form_data or {},
        "status": visit.status,
        "statusLabel": STATUS_LABELS.get(visit.status, visit.status.replace("_", " ").title()),
        "canDecide": visit_state.is_awaiting_decision(visit.status),
        "canCheckout": visit.status == VisitStatus.approved.value,
        "isFinal": visit.status in visit_state.TERMINAL,
        "checkInTime": visit.check_in_time.isoformat() if visit.check_in_time else None,
        "checkOutTime": visit.check_out_time.isoformat() if visit.check_out_time else None,
        "denialReason": visit.denial_reason,
        "updatedAt": visit.updated_at.isoformat() if visit.updated_at else None,
    }


def serialize_visits(db: Session, visits: list[Visit]) -> list[dict[str, Any]]:
    visitors = _visitor_index(db, visits)
    return [serialize_visit(visit, visitors.get(visit.visitor_id)) for visit in visits]


def list_premise_visits(
    db: Session,
    premise_id: str,
    statuses: list[str] | None = None,
    form_id: str | None = None,
    limit: int = 200,
) -> list[Visit]:
    query = db.query(Visit).filter(Visit.premise_id == premise_id)
    if statuses:
        query = query.filter(Visit.status.in_(statuses))
    if form_id:
        query = query.filter(Visit.form_id == form_id)
    return query.order_by(Visit.check_in_time.desc()).limit(limit).all()


def get_visit_board(db: Session, premise_id: str, limit: int = 200) -> dict[str, list[dict[str, Any]]]:
    pending = (
        db.query(Visit)
        .filter(Visit.premise_id == premise_id, Visit.status.in_(sorted(visit_state.AWAITING_DECISION)))
        .order_by(Visit.created_at.desc())
        .limit(limit)
        .all()
    )
    admitted = (
        db.query(Visit)
        .filter(
            Visit.premise_id == premise_id,
            Visit.status == VisitStatus.approved.value,
            Visit.check_out_time.is_(None),
        )
        .order_by(Visit.check_in_time.desc())
        .limit(limit)
        .all()
    )
    history = (
        db.query(Visit)
        .filter(Visit.premise_id == premise_id, Visit.status.in_(HISTORY_STATUSES))
        .order_by(Visit.updated_at.desc())
        .limit(limit)
        .all()
    )
    return {
        "pending": serialize_visits(db, pending),
        "admitted": serialize_visits(db, admitted),
        "history": serialize_visits(db, history),
    }


def get_owned_visit(db: Session, principal_id: str, visit_id: str) -> Visit:
    require_owner(db, principal_id, ResourceRef.visit(visit_id))
    visit = db.query(Visit).filter(Visit.id == visit_id).first()
    if not visit:
        raise VisitNotFound()
    return visit


def transition_visit(
    db: Session,
    principal_id: str,
    visit_id: str,
    action: str,
    reason: str | None = None,
) -> Visit:
    """Owner-initiated approve / deny / checkout."""
    visit = get_owned_visit(db, principal_id, visit_id)
    transition = visit_state.get_transition(action)
    previous_status = visit.status
    visit = visit_state.apply_transition(db, visit, transition.action, reason=reason)
    write_audit_log(
        db,
        actor_id=principal_id,
        action=f"visit.{transition.action}",
        resource_type="visit",
        resource_id=visit.id,
        premise_id=visit.premise_id,
        meta={"from": previous_status, "to": visit.status, "reason": visit.denial_reason},
    )
    return visit
