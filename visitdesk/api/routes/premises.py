from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from visitdesk.api.deps import get_current_premise, get_current_principal
from visitdesk.db.models import Premise
from visitdesk.db.session import get_db
from visitdesk.schemas.premise import PremiseCreate, PremiseUpdate
from visitdesk.services.audit_service import list_audit_logs, serialize_audit_log, write_audit_log
from visitdesk.services.authorization_service import ResourceRef, require_owner
from visitdesk.services.premise_service import create_premise, serialize_premise, update_premise

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def complete_profile(
    payload: PremiseCreate,
    db: Session = Depends(get_db),
    principal_id: str = Depends(get_current_principal),
):
    premise = create_premise(
        db,
        owner_id=principal_id,
        business_name=payload.businessName,
        category=payload.category,
        phone=payload.phone,
        email=payload.email,
        contact_person=payload.contactPerson,
        county=payload.county,
        address=payload.address,
    )
    write_audit_log(
        db,
        actor_id=principal_id,
        action="premise.create",
        resource_type="premise",
        resource_id=premise.id,
        premise_id=premise.id,
    )
    return {"data": serialize_premise(premise)}


@router.get("/me")
def my_premise(premise: Premise = Depends(get_current_premise)):
    return {"data": serialize_premise(premise)}


@router.put("/me")
def update_my_premise(
    payload: PremiseUpdate,
    db: Session = Depends(get_db),
    principal_id: str = Depends(get_current_principal),
    premise: Premise = Depends(get_current_premise),
):
    require_owner(db, principal_id, ResourceRef.premise(premise.id))
    changes = payload.changes()
    premise = update_premise(db, premise, changes)
    write_audit_log(
        db,
        actor_id=principal_id,
        action="premise.update",
        resource_type="premise",
        resource_id=premise.id,
        premise_id=premise.id,
        meta={"fields": sorted(changes)},
    )
    return {"data": serialize_premise(premise)}


@router.get("/me/audit")
def my_premise_audit(
    db: Session = Depends(get_db),
    premise: Premise = Depends(get_current_premise),
):
    return {"data": [serialize_audit_log(row) for row in list_audit_logs(db, premise.id)]}
