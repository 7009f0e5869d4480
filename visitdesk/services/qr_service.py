import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from visitdesk.core.config import get_settings
from visitdesk.core.exceptions import (
    ConfigurationFault,
    Conflict,
    FormInactive,
    FormNotFound,
    QRCodeInactive,
    QRCodeNotFound,
)
from visitdesk.db.models import Form, QRCode

settings = get_settings()
logger = logging.getLogger(__name__)


def _next_qr_identifier() -> str:
    return f"{settings.QR_IDENTIFIER_PREFIX}-{uuid.uuid4().hex}"


def resolve_qr(db: Session, qr_identifier: str) -> tuple[QRCode, Form]:
    """Resolve a scanned identifier to its active QR code and active form.

    Each failure is distinct so the visitor can be told exactly what is wrong.
    """
    qr = db.query(QRCode).filter(QRCode.qr_identifier == qr_identifier).first()
    if not qr:
        raise QRCodeNotFound()
    if not qr.is_active:
        raise QRCodeInactive()

    form = db.query(Form).filter(Form.id == qr.form_id).first()
    if not form:
        raise FormNotFound()
    if not form.is_active:
        raise FormInactive()

    if form.premise_id != qr.premise_id:
        logger.error(
            "premise mismatch qr_identifier=%s qr_premise_id=%s form_id=%s form_premise_id=%s",
            qr.qr_identifier,
            qr.premise_id,
            form.id,
            form.premise_id,
        )
        raise ConfigurationFault("Form configuration error.")
    return qr, form


def get_active_qr(db: Session, form_id: str) -> QRCode | None:
    return (
        db.query(QRCode)
        .filter(QRCode.form_id == form_id, QRCode.is_active.is_(True))
        .order_by(QRCode.version.desc(), QRCode.created_at.desc())
        .first()
    )


def _insert_qr(db: Session, form: Form, version: int) -> QRCode:
    qr = QRCode(
        qr_identifier=_next_qr_identifier(),
        form_id=form.id,
        premise_id=form.premise_id,
        version=version,
        is_active=True,
    )
    db.add(qr)
    db.commit()
    db.refresh(qr)
    return qr


def _latest_version(db: Session, form_id: str) -> int:
    row = db.query(QRCode.version).filter(QRCode.form_id == form_id).order_by(QRCode.version.desc()).first()
    return row[0] if row else 0


def ensure_form_qr(db: Session, form: Form) -> QRCode:
    """Return the form's active QR code, creating it on first use."""
    qr = get_active_qr(db, form.id)
    if qr:
        if qr.premise_id != form.premise_id:
            logger.error("qr premise drift qr_id=%s form_id=%s", qr.id, form.id)
            raise ConfigurationFault("QR code configuration error.")
        return qr

    try:
        qr = _insert_qr(db, form, _latest_version(db, form.id) + 1)
    except IntegrityError:
        # The active-per-form index rejected us: a concurrent ensure inserted first.
        db.rollback()
        qr = get_active_qr(db, form.id)
        if not qr:
            raise
        return qr

    logger.info("qr created form_id=%s qr_identifier=%s version=%s", form.id, qr.qr_identifier, qr.version)
    return qr


def regenerate_form_qr(db: Session, form: Form) -> QRCode:
    """Retire every active QR code of the form and issue a fresh identifier."""
    now = datetime.utcnow()
    retired = (
        db.query(QRCode)
        .filter(QRCode.form_id == form.id, QRCode.is_active.is_(True))
        .update({QRCode.is_active: False, QRCode.updated_at: now}, synchronize_session=False)
    )
    try:
        qr = _insert_qr(db, form, _latest_version(db, form.id) + 1)
    except IntegrityError:
        # A concurrent regenerate or ensure already issued the replacement.
        db.rollback()
        qr = get_active_qr(db, form.id)
        if not qr:
            raise
        return qr
    logger.info(
        "qr regenerated form_id=%s retired=%s qr_identifier=%s version=%s",
        form.id,
        retired,
        qr.qr_identifier,
        qr.version,
    )
    return qr


def set_qr_active(db: Session, qr: QRCode, active: bool) -> QRCode:
    now = datetime.utcnow()
    if active:
        # Keep a single active identifier per form.
        db.query(QRCode).filter(
            QRCode.form_id == qr.form_id,
            QRCode.id != qr.id,
            QRCode.is_active.is_(True),
        ).update({QRCode.is_active: False, QRCode.updated_at: now}, synchronize_session=False)
    qr.is_active = active
    qr.updated_at = now
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("Another QR code for this form was activated at the same time.") from exc
    db.refresh(qr)
    return qr


def serialize_qr(qr: QRCode) -> dict[str, Any]:
    return {
        "id": qr.id,
        "qrIdentifier": qr.qr_identifier,
        "formId": qr.form_id,
        "premiseId": qr.premise_id,
        "version": qr.version,
        "isActive": qr.is_active,
        "scanUrl": settings.scan_url(qr.qr_identifier),
        "createdAt": qr.created_at.isoformat() if qr.created_at else None,
    }


def resolve_public_form(db: Session, qr_identifier: str) -> dict[str, Any]:
    qr, form = resolve_qr(db, qr_identifier)
    return {
        "qrIdentifier": qr.qr_identifier,
        "formId": form.id,
        "premiseId": form.premise_id,
        "name": form.name,
        "definition": form.definition or [],
        "version": form.version,
    }
