import logging
from typing import Any, Iterable, Mapping

from sqlalchemy.orm import Session

from visitdesk.core.exceptions import Conflict, InvalidInput, NotFound
from visitdesk.db.models import Form, Premise, QRCode
from visitdesk.services.field_normalization import normalize_field_key

logger = logging.getLogger(__name__)

INPUT_KINDS = ("text", "email", "phone", "id_number", "textarea")


def clean_definition(fields: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Validate an ordered field list; labels must stay distinct once normalized."""
    cleaned: list[dict[str, Any]] = []
    seen: set[str] = set()
    for position, field in enumerate(fields, start=1):
        label = str(field.get("label") or "").strip()
        if not label:
            raise InvalidInput(f"Field {position} needs a label")
        key = normalize_field_key(label)
        if key in seen:
            raise InvalidInput(f"Duplicate field label: {label}")
        seen.add(key)

        kind = str(field.get("type") or "text").strip().lower()
        if kind not in INPUT_KINDS:
            raise InvalidInput(f"Unsupported field type '{kind}' for {label}")

        cleaned.append({"label": label, "type": kind, "required": bool(field.get("required", False))})
    return cleaned


def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidInput("Form name is required")
    return cleaned


def get_form(db: Session, form_id: str) -> Form:
    form = db.query(Form).filter(Form.id == form_id).first()
    if not form:
        raise NotFound("Form not found")
    return form


def list_forms(db: Session, premise_id: str) -> list[Form]:
    return db.query(Form).filter(Form.premise_id == premise_id).order_by(Form.created_at.desc()).all()


def create_form(db: Session, premise: Premise, name: str, definition: Iterable[Mapping[str, Any]]) -> Form:
    form = Form(
        premise_id=premise.id,
        owner_id=premise.owner_id,
        name=_clean_name(name),
        definition=clean_definition(definition),
        version=1,
        is_active=True,
    )
    db.add(form)
    db.commit()
    db.refresh(form)
    logger.info("form created form_id=%s premise_id=%s", form.id, premise.id)
    return form


def update_form(
    db: Session,
    form: Form,
    name: str | None = None,
    definition: Iterable[Mapping[str, Any]] | None = None,
) -> Form:
    if name is not None:
        form.name = _clean_name(name)
    if definition is not None:
        cleaned = clean_definition(definition)
        if cleaned != (form.definition or []):
            form.definition = cleaned
            form.version = (form.version or 1) + 1
    db.commit()
    db.refresh(form)
    return form


def set_form_active(db: Session, form: Form, active: bool) -> Form:
    form.is_active = active
    db.commit()
    db.refresh(form)
    return form


def delete_form(db: Session, form: Form) -> None:
    referencing = db.query(QRCode.id).filter(QRCode.form_id == form.id).count()
    if referencing:
        raise Conflict("Form has QR codes and cannot be deleted. Deactivate it instead.")
    db.delete(form)
    db.commit()


def serialize_form(form: Form, qr: QRCode | None = None) -> dict[str, Any]:
    data = {
        "id": form.id,
        "premiseId": form.premise_id,
        "name": form.name,
        "definition": form.definition or [],
        "version": form.version,
        "isActive": form.is_active,
        "createdAt": form.created_at.isoformat() if form.created_at else None,
        "updatedAt": form.updated_at.isoformat() if form.updated_at else None,
    }
    if qr is not None:
        data["qrIdentifier"] = qr.qr_identifier
    return data
