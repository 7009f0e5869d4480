"""Visit lifecycle.

    pending_approval ─┬─> approved ──> checked_out
    (checked_in)      └─> denied

``pending_approval`` is the canonical awaiting-decision state; ``checked_in`` is
kept as an alias written by the legacy self-service intake and is treated the
same everywhere. ``denied`` and ``checked_out`` are terminal.

Transitions are written as a conditional UPDATE on the expected prior status,
so two concurrent decisions on the same visit cannot both succeed.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from visitdesk.core.config import get_settings
from visitdesk.core.exceptions import (
    AlreadyCheckedOut,
    InvalidInput,
    InvalidStateTransition,
    NotApproved,
    VisitNotFound,
)
from visitdesk.db.models import Visit, VisitStatus

settings = get_settings()

AWAITING_DECISION = frozenset({VisitStatus.pending_approval.value, VisitStatus.checked_in.value})
TERMINAL = frozenset({VisitStatus.denied.value, VisitStatus.checked_out.value})
ALL_STATUSES = frozenset(status.value for status in VisitStatus)


@dataclass(frozen=True)
class Transition:
    action: str
    sources: frozenset[str]
    target: str


APPROVE = Transition("approve", AWAITING_DECISION, VisitStatus.approved.value)
DENY = Transition("deny", AWAITING_DECISION, VisitStatus.denied.value)
CHECKOUT = Transition("checkout", frozenset({VisitStatus.approved.value}), VisitStatus.checked_out.value)

TRANSITIONS = {transition.action: transition for transition in (APPROVE, DENY, CHECKOUT)}


def is_awaiting_decision(status: str | None) -> bool:
    return status in AWAITING_DECISION


def get_transition(action: str | None) -> Transition:
    transition = TRANSITIONS.get((action or "").strip().lower())
    if transition is None:
        raise InvalidInput(f"Action must be one of: {', '.join(TRANSITIONS)}")
    return transition


def check_transition(transition: Transition, current_status: str) -> None:
    if current_status in transition.sources:
        return
    if transition is CHECKOUT:
        if current_status == VisitStatus.checked_out.value:
            raise AlreadyCheckedOut()
        raise NotApproved(current_status=current_status)
    raise InvalidStateTransition(
        f"Cannot {transition.action} a visit that is {current_status}",
        current_status=current_status,
    )


def create_visit(
    db: Session,
    *,
    premise_id: str,
    form_id: str,
    qrcode_id: str | None,
    form_data: dict[str, Any],
    initial_status: str | None = None,
) -> Visit:
    status = initial_status or settings.VISIT_INITIAL_STATUS
    if status not in AWAITING_DECISION:
        raise InvalidInput(f"A new visit cannot start as {status}")

    now = datetime.utcnow()
    visit = Visit(
        premise_id=premise_id,
        form_id=form_id,
        qrcode_id=qrcode_id,
        form_data=form_data,
        status=status,
        check_in_time=now,
        check_out_time=None,
        created_at=now,
        updated_at=now,
    )
    db.add(visit)
    db.commit()
    db.refresh(visit)
    return visit


def _clean_reason(reason: str | None) -> str:
    cleaned = (reason or "").strip()
    if not cleaned:
        raise InvalidInput("A denial reason is required")
    return cleaned


def apply_transition(db: Session, visit: Visit, action: str, reason: str | None = None) -> Visit:
    transition = get_transition(action)
    denial_reason = _clean_reason(reason) if transition is DENY else None

    # Fast path on the status we loaded; the conditional UPDATE below is what actually decides.
    check_transition(transition, visit.status)

    now = datetime.utcnow()
    values: dict[Any, Any] = {Visit.status: transition.target, Visit.updated_at: now}
    if transition is DENY:
        values[Visit.denial_reason] = denial_reason
    if transition is CHECKOUT:
        values[Visit.check_out_time] = now

    updated = (
        db.query(Visit)
        .filter(
            Visit.id == visit.id,
            Visit.premise_id == visit.premise_id,
            Visit.status.in_(sorted(transition.sources)),
        )
        .update(values, synchronize_session=False)
    )
    if updated != 1:
        db.rollback()
        current = db.query(Visit.status).filter(Visit.id == visit.id).scalar()
        if current is None:
            raise VisitNotFound()
        check_transition(transition, current)
        raise InvalidStateTransition(
            f"Visit changed while trying to {transition.action}",
            current_status=current,
        )

    db.commit()
    db.refresh(visit)
    return visit


def approve(db: Session, visit: Visit) -> Visit:
    return apply_transition(db, visit, APPROVE.action)


def deny(db: Session, visit: Visit, reason: str | None) -> Visit:
    return apply_transition(db, visit, DENY.action, reason=reason)


def checkout(db: Session, visit: Visit) -> Visit:
    return apply_transition(db, visit, CHECKOUT.action)
