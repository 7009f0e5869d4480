from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from visitdesk.api.deps import get_current_premise, get_current_principal
from visitdesk.db.models import Premise
from visitdesk.db.session import get_db
from visitdesk.schemas.form import FormCreate, FormStatusUpdate, FormUpdate
from visitdesk.services.audit_service import write_audit_log
from visitdesk.services.authorization_service import ResourceRef, require_owner
from visitdesk.services.form_service import (
    create_form,
    delete_form,
    get_form,
    list_forms,
    serialize_form,
    set_form_active,
    update_form,
)
from visitdesk.services.qr_service import ensure_form_qr, get_active_qr, regenerate_form_qr, serialize_qr
from visitdesk.services.visit_service import list_premise_visits, serialize_visits

router = APIRouter()


def _owned_form(db: Session, principal_id: str, form_id: str):
    require_owner(db, principal_id, ResourceRef.form(form_id))
    return get_form(db, form_id)


@router.get("")
def forms_index(
    db: Session = Depends(get_db),
    premise: Premise = Depends(get_current_premise),
):
    forms = list_forms(db, premise.id)
    return {"data": [serialize_form(form, get_active_qr(db, form.id)) for form in forms]}


@router.post("", status_code=status.HTTP_201_CREATED)
def forms_create(
    payload: FormCreate,
    db: Session = Depends(get_db),
    principal_id: str = Depends(get_current_principal),
    premise: Premise = Depends(get_current_premise),
):
    form = create_form(
        db,
        premise,
        name=payload.name,
        definition=[field.model_dump() for field in payload.definition],
    )
    qr = ensure_form_qr(db, form)
    write_audit_log(
        db,
        actor_id=principal_id,
        action="form.create",
        resource_type="form",
        resource_id=form.id,
        premise_id=premise.id,
    )
    return {"data": {**serialize_form(form), "qr": serialize_qr(qr)}}


@router.get("/{form_id}")
def forms_show(
    form_id: str,
    db: Session = Depends(get_db),
    principal_id: str = Depends(get_current_principal),
):
    form = _owned_form(db, principal_id, form_id)
    return {"data": serialize_form(form, get_active_qr(db, form.id))}


@router.put("/{form_id}")
def forms_update(
    form_id: str,
    payload: FormUpdate,
    db: Session = Depends(get_db),
    principal_id: str = Depends(get_current_principal),
):
    form = _owned_form(db, principal_id, form_id)
    form = update_form(
        db,
        form,
        name=payload.name,
        definition=[field.model_dump() for field in payload.definition] if payload.definition is not None else None,
    )
    # Editing re-ensures the QR code, matching the dashboard's save flow.
    qr = ensure_form_qr(db, form)
    write_audit_log(
        db,
        actor_id=principal_id,
        action="form.update",
        resource_type="form",
        resource_id=form.id,
        premise_id=form.premise_id,
        meta={"version": form.version},
    )
    return {"data": {**serialize_form(form), "qr": serialize_qr(qr)}}


@router.patch("/{form_id}/status")
def forms_set_status(
    form_id: str,
    payload: FormStatusUpdate,
    db: Session = Depends(get_db),
    principal_id: str = Depends(get_current_principal),
):
    form = _owned_form(db, principal_id, form_id)
    form = set_form_active(db, form, payload.isActive)
    write_audit_log(
        db,
        actor_id=principal_id,
        action="form.activate" if payload.isActive else "form.deactivate",
        resource_type="form",
        resource_id=form.id,
        premise_id=form.premise_id,
    )
    return {"data": serialize_form(form)}


@router.delete("/{form_id}")
def forms_delete(
    form_id: str,
    db: Session = Depends(get_db),
    principal_id: str = Depends(get_current_principal),
):
    form = _owned_form(db, principal_id, form_id)
    premise_id = form.premise_id
    delete_form(db, form)
    write_audit_log(
        db,
        actor_id=principal_id,
        action="form.delete",
        resource_type="form",
        resource_id=form_id,
        premise_id=premise_id,
    )
    return {"data": {"id": form_id, "deleted": True}}


@router.post("/{form_id}/ensure-qr")
def forms_ensure_qr(
    form_id: str,
    db: Session = Depends(get_db),
    principal_id: str = Depends(get_current_principal),
):
    form = _owned_form(db, principal_id, form_id)
    return {"data": serialize_qr(ensure_form_qr(db, form))}


@router.post("/{form_id}/qr/regenerate")
def forms_regenerate_qr(
    form_id: str,
    db: Session = Depends(get_db),
    principal_id: str = Depends(get_current_principal),
):
    form = _owned_form(db, principal_id, form_id)
    qr = regenerate_form_qr(db, form)
    write_audit_log(
        db,
        actor_id=principal_id,
        action="qr.regenerate",
        resource_type="qrcode",
        resource_id=qr.id,
        premise_id=form.premise_id,
        meta={"formId": form.id, "version": qr.version},
    )
    return {"data": serialize_qr(qr)}


@router.get("/{form_id}/visits")
def forms_visits(
    form_id: str,
    db: Session = Depends(get_db),
    principal_id: str = Depends(get_current_principal),
):
    premise_id = require_owner(db, principal_id, ResourceRef.form(form_id))
    visits = list_premise_visits(db, premise_id, form_id=form_id)
    return {"data": serialize_visits(db, visits)}
