"""Premise ownership checks shared by every owner-facing operation.

Forms, QR codes and visits all hang off exactly one premise. Each kind only
needs to say how to find its premise id; the owner comparison is the same
for all of them.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.orm import Session

from visitdesk.core.exceptions import Forbidden, NotFound
from visitdesk.db.models import Form, Premise, QRCode, Visit

logger = logging.getLogger(__name__)


class ResourceKind(str, Enum):
    premise = "premise"
    form = "form"
    qrcode = "qrcode"
    visit = "visit"


@dataclass(frozen=True)
class ResourceRef:
    kind: ResourceKind
    id: str

    @classmethod
    def premise(cls, resource_id: str) -> "ResourceRef":
        return cls(ResourceKind.premise, resource_id)

    @classmethod
    def form(cls, resource_id: str) -> "ResourceRef":
        return cls(ResourceKind.form, resource_id)

    @classmethod
    def qrcode(cls, resource_id: str) -> "ResourceRef":
        return cls(ResourceKind.qrcode, resource_id)

    @classmethod
    def visit(cls, resource_id: str) -> "ResourceRef":
        return cls(ResourceKind.visit, resource_id)


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    reason: str | None = None
    premise_id: str | None = None

    @property
    def not_found(self) -> bool:
        return self.reason == "not_found"


NOT_FOUND = "not_found"
FORBIDDEN = "forbidden"

# kind -> (model, column holding the owning premise id)
_PREMISE_COLUMNS = {
    ResourceKind.premise: (Premise, Premise.id),
    ResourceKind.form: (Form, Form.premise_id),
    ResourceKind.qrcode: (QRCode, QRCode.premise_id),
    ResourceKind.visit: (Visit, Visit.premise_id),
}

_LABELS = {
    ResourceKind.premise: "Premise",
    ResourceKind.form: "Form",
    ResourceKind.qrcode: "QR code",
    ResourceKind.visit: "Visit",
}


def premise_of(db: Session, ref: ResourceRef) -> str | None:
    model, column = _PREMISE_COLUMNS[ref.kind]
    return db.query(column).filter(model.id == ref.id).scalar()


def owner_of(db: Session, ref: ResourceRef) -> tuple[str, str | None] | None:
    """(premise_id, owner id) for a resource, or None when it does not resolve."""
    premise_id = premise_of(db, ref)
    if not premise_id:
        return None
    row = db.query(Premise.owner_id).filter(Premise.id == premise_id).first()
    if not row:
        return None
    return premise_id, row[0]


def authorize(db: Session, principal_id: str | None, ref: ResourceRef) -> AuthorizationDecision:
    resolved = owner_of(db, ref)
    if resolved is None:
        return AuthorizationDecision(allowed=False, reason=NOT_FOUND)

    premise_id, owner_id = resolved
    if not principal_id or owner_id != principal_id:
        logger.info(
            "authorization denied principal=%s %s=%s premise_id=%s",
            principal_id,
            ref.kind.value,
            ref.id,
            premise_id,
        )
        return AuthorizationDecision(allowed=False, reason=FORBIDDEN, premise_id=premise_id)
    return AuthorizationDecision(allowed=True, premise_id=premise_id)


def require_owner(db: Session, principal_id: str | None, ref: ResourceRef) -> str:
    """Raise NotFound/Forbidden unless principal owns the resource's premise; returns the premise id."""
    decision = authorize(db, principal_id, ref)
    if decision.allowed:
        return decision.premise_id
    if decision.not_found:
        raise NotFound(f"{_LABELS[ref.kind]} not found")
    raise Forbidden("Forbidden: You do not own this premise.")
