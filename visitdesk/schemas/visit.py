from typing import Any

from pydantic import BaseModel


class VisitSubmitRequest(BaseModel):
    # Optional so a missing field surfaces as a 400 from intake rather than a 422.
    qrIdentifier: str | None = None
    formData: dict[str, Any] | None = None


class VisitSubmitResponse(BaseModel):
    visitId: str
    status: str


class VisitDenyRequest(BaseModel):
    reason: str | None = None


class VisitTransitionRequest(BaseModel):
    action: str
    reason: str | None = None
