from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from visitdesk.api.deps import get_current_principal
from visitdesk.db.models import QRCode
from visitdesk.db.session import get_db
from visitdesk.schemas.qr import QRStatusUpdate
from visitdesk.services.audit_service import write_audit_log
from visitdesk.services.authorization_service import ResourceRef, require_owner
from visitdesk.services.qr_service import resolve_public_form, serialize_qr, set_qr_active

router = APIRouter()


@router.get("/resolve/{qr_identifier}")
def resolve(qr_identifier: str, db: Session = Depends(get_db)):
    return {"data": resolve_public_form(db, qr_identifier)}


@router.patch("/{qr_id}/status")
def update_qr_status(
    qr_id: str,
    payload: QRStatusUpdate,
    db: Session = Depends(get_db),
    principal_id: str = Depends(get_current_principal),
):
    premise_id = require_owner(db, principal_id, ResourceRef.qrcode(qr_id))
    qr = db.query(QRCode).filter(QRCode.id == qr_id).first()
    qr = set_qr_active(db, qr, payload.isActive)
    write_audit_log(
        db,
        actor_id=principal_id,
        action="qr.activate" if payload.isActive else "qr.deactivate",
        resource_type="qrcode",
        resource_id=qr.id,
        premise_id=premise_id,
    )
    return {"data": serialize_qr(qr)}
