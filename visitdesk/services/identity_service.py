import logging
from datetime import datetime
from typing import Any, Mapping

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from visitdesk.core.exceptions import IdentityResolutionError
from visitdesk.db.models import Visit, VisitorIdentity
from visitdesk.services.field_normalization import VisitorFields, extract_visitor_fields, normalize_form_data

logger = logging.getLogger(__name__)


def _find_identity(db: Session, fields: VisitorFields) -> str | None:
    """Email first, then phone. An empty result is the normal not-found outcome."""
    if fields.email:
        row = db.query(VisitorIdentity.id).filter(VisitorIdentity.email == fields.email).first()
        if row:
            return row[0]
    if fields.phone:
        row = db.query(VisitorIdentity.id).filter(VisitorIdentity.phone_number == fields.phone).first()
        if row:
            return row[0]
    return None


def _provision_identity(db: Session, fields: VisitorFields) -> str:
    identity = VisitorIdentity(
        full_name=fields.full_name,
        email=fields.email,
        phone_number=fields.phone,
        id_number=fields.id_number,
    )
    db.add(identity)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent submission provisioned the same email/phone first; link to theirs.
        db.rollback()
        existing = _find_identity(db, fields)
        if existing is None:
            raise
        logger.info("visitor identity race lost, linking existing visitor_id=%s", existing)
        return existing
    db.refresh(identity)
    logger.info("visitor identity provisioned visitor_id=%s", identity.id)
    return identity.id


def resolve_or_create_visitor(db: Session, candidate_fields: Mapping[str, Any]) -> str | None:
    """Find or provision the visitor identity behind a submission.

    Lookups run in a fixed order (email, then phone) and the first match wins.
    A new identity is provisioned when the submission carries an id number, or
    some profile data (name or email) together with a natural matching key
    (email or phone). A bare name, or a bare phone number, stays an anonymous
    visit and returns None.

    Must be called with no pending work on ``db``: a lost provisioning race
    rolls the session back.
    """
    fields = extract_visitor_fields(normalize_form_data(candidate_fields))
    try:
        existing = _find_identity(db, fields)
        if existing:
            return existing
        if not fields.can_provision:
            return None
        return _provision_identity(db, fields)
    except SQLAlchemyError as exc:
        db.rollback()
        raise IdentityResolutionError("Visitor identity lookup failed") from exc


def link_visitor_to_visit(db: Session, visit_id: str, visitor_id: str) -> None:
    try:
        db.query(Visit).filter(Visit.id == visit_id).update(
            {Visit.visitor_id: visitor_id, Visit.updated_at: datetime.utcnow()},
            synchronize_session=False,
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise IdentityResolutionError(f"Failed to link visitor to visit {visit_id}") from exc


def get_visitor(db: Session, visitor_id: str | None) -> VisitorIdentity | None:
    if not visitor_id:
        return None
    return db.query(VisitorIdentity).filter(VisitorIdentity.id == visitor_id).first()
