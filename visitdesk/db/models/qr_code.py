import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from visitdesk.db.base import Base


class QRCode(Base):
    __tablename__ = "qr_codes"
    # At most one active identifier per form.
    __table_args__ = (
        Index(
            "uq_qr_codes_active_form",
            "form_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    qr_identifier: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    form_id: Mapped[str] = mapped_column(String(36), ForeignKey("forms.id"), nullable=False, index=True)
    # Denormalized from the form for intake lookups; must always equal form.premise_id.
    premise_id: Mapped[str] = mapped_column(String(36), ForeignKey("premises.id"), nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    form = relationship("Form", back_populates="qr_codes")
