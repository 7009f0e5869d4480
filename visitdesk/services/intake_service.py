import logging
from typing import Any, Mapping

from sqlalchemy.orm import Session

from visitdesk.core.exceptions import IdentityResolutionError, InvalidInput
from visitdesk.db.models import Visit
from visitdesk.services.field_normalization import merge_form_data, normalize_form_data
from visitdesk.services.identity_service import link_visitor_to_visit, resolve_or_create_visitor
from visitdesk.services.qr_service import resolve_qr
from visitdesk.services.visit_state import create_visit

logger = logging.getLogger(__name__)


def _link_visitor(db: Session, visit: Visit, normalized: Mapping[str, Any]) -> str | None:
    """Best-effort: the visit is already stored, so linkage failures never reach the visitor."""
    try:
        visitor_id = resolve_or_create_visitor(db, normalized)
        if visitor_id:
            link_visitor_to_visit(db, visit.id, visitor_id)
        return visitor_id
    except IdentityResolutionError:
        logger.exception("visitor linkage failed visit_id=%s", visit.id)
        return None


def submit_visit(db: Session, qr_identifier: str | None, raw_form_data: Mapping[str, Any] | None) -> Visit:
    qr_identifier = (qr_identifier or "").strip()
    if not qr_identifier or not raw_form_data:
        raise InvalidInput("Missing qrIdentifier or formData")
    if not isinstance(raw_form_data, Mapping):
        raise InvalidInput("formData must be an object of field values")

    qr, form = resolve_qr(db, qr_identifier)

    normalized = normalize_form_data(raw_form_data)
    visit = create_visit(
        db,
        premise_id=qr.premise_id,
        form_id=form.id,
        qrcode_id=qr.id,
        form_data=merge_form_data(raw_form_data),
    )

    visitor_id = _link_visitor(db, visit, normalized)
    logger.info(
        "visit created visit_id=%s premise_id=%s form_id=%s status=%s visitor_linked=%s",
        visit.id,
        visit.premise_id,
        visit.form_id,
        visit.status,
        bool(visitor_id),
    )
    return visit
