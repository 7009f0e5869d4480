import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from visitdesk.db.base import Base


class VisitStatus(str, Enum):
    pending_approval = "pending_approval"
    checked_in = "checked_in"
    approved = "approved"
    denied = "denied"
    checked_out = "checked_out"


class Visit(Base):
    __tablename__ = "visits"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    premise_id: Mapped[str] = mapped_column(String(36), ForeignKey("premises.id"), nullable=False, index=True)
    form_id: Mapped[str] = mapped_column(String(36), ForeignKey("forms.id"), nullable=False, index=True)
    qrcode_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("qr_codes.id"), nullable=True)
    # Weak reference: lookup only, the identity row may change or disappear without touching the visit.
    visitor_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    form_data: Mapped[dict] = mapped_column(JSON, default=dict)
    status: Mapped[str] = mapped_column(String(40), nullable=False, default=VisitStatus.pending_approval.value, index=True)
    check_in_time: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    check_out_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    denial_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
