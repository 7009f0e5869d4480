import uuid
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from visitdesk.core.config import get_settings
from visitdesk.core.exceptions import Conflict, InvalidInput, PremiseNotFound
from visitdesk.db.models import Premise

settings = get_settings()

EDITABLE_FIELDS = ("business_name", "category", "phone", "contact_person", "county", "address")


def _next_friendly_code() -> str:
    return f"{settings.FRIENDLY_CODE_PREFIX}{uuid.uuid4().hex[:8].upper()}"


def _unique_friendly_code(db: Session) -> str:
    code = _next_friendly_code()
    while db.query(Premise.id).filter(Premise.friendly_code == code).first():
        code = _next_friendly_code()
    return code


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def get_premise_for_owner(db: Session, owner_id: str) -> Premise | None:
    return db.query(Premise).filter(Premise.owner_id == owner_id).first()


def require_premise_for_owner(db: Session, owner_id: str) -> Premise:
    premise = get_premise_for_owner(db, owner_id)
    if not premise:
        raise PremiseNotFound("No premise found. Complete your profile first.")
    return premise


def create_premise(
    db: Session,
    owner_id: str,
    business_name: str,
    category: str | None = None,
    phone: str | None = None,
    email: str | None = None,
    contact_person: str | None = None,
    county: str | None = None,
    address: str | None = None,
) -> Premise:
    name = _clean(business_name)
    if not name:
        raise InvalidInput("Business name is required")
    if get_premise_for_owner(db, owner_id):
        raise Conflict("A premise already exists for this account")

    premise = Premise(
        owner_id=owner_id,
        business_name=name,
        category=_clean(category),
        phone=_clean(phone),
        email=(_clean(email) or "").lower() or None,
        contact_person=_clean(contact_person),
        county=_clean(county),
        address=_clean(address),
        friendly_code=_unique_friendly_code(db),
    )
    db.add(premise)
    try:
        db.commit()
    except IntegrityError as exc:
        # Unique owner_id: a concurrent profile completion got there first.
        db.rollback()
        raise Conflict("A premise already exists for this account") from exc
    db.refresh(premise)
    return premise


def update_premise(db: Session, premise: Premise, changes: dict[str, Any]) -> Premise:
    for field in EDITABLE_FIELDS:
        if field not in changes:
            continue
        value = _clean(changes[field])
        if field == "business_name" and not value:
            raise InvalidInput("Business name is required")
        setattr(premise, field, value)
    db.commit()
    db.refresh(premise)
    return premise


def serialize_premise(premise: Premise) -> dict[str, Any]:
    return {
        "id": premise.id,
        "ownerId": premise.owner_id,
        "businessName": premise.business_name,
        "category": premise.category,
        "phone": premise.phone,
        "email": premise.email,
        "contactPerson": premise.contact_person,
        "county": premise.county,
        "address": premise.address,
        "friendlyCode": premise.friendly_code,
        "createdAt": premise.created_at.isoformat() if premise.created_at else None,
        "updatedAt": premise.updated_at.isoformat() if premise.updated_at else None,
    }
