import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    String,
    Boolean,
    DateTime,
    Text,
    JSON,
    Uuid,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from quoteflow.database import Base, utcnow

QUOTE_REQUEST_STATUSES = ("draft", "sent", "expired", "completed")
NOTIFICATION_METHODS = ("email", "platform", "manual")


class QuoteRequest(Base):
    __tablename__ = "quote_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    opportunity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("opportunities.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False)
    deadline: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    requirements: Mapped[Optional[Any]] = mapped_column(JSON)
    attachments: Mapped[Optional[list]] = mapped_column(JSON)
    ai_generated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    ai_prompt: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft','sent','expired','completed')",
            name="chk_quote_request_status",
        ),
        Index("idx_quote_requests_opportunity", "opportunity_id"),
        Index("idx_quote_requests_user", "user_id"),
        Index("idx_quote_requests_status", "status"),
        Index("idx_quote_requests_deadline", "deadline"),
    )


class QuoteRequestSupplier(Base):
    """Invitation of one supplier to one quote request."""

    __tablename__ = "quote_request_suppliers"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    quote_request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("quote_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    supplier_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("suppliers.id", ondelete="CASCADE"),
        nullable=False,
    )
    invited_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    notification_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notification_method: Mapped[Optional[str]] = mapped_column(String(20))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "quote_request_id", "supplier_id", name="uq_quote_request_supplier"
        ),
        Index("idx_qr_suppliers_request", "quote_request_id"),
        Index("idx_qr_suppliers_supplier", "supplier_id"),
    )
