import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    BigInteger,
    Integer,
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

RESPONSE_STATUSES = ("pending", "submitted", "declined", "expired")
TERMINAL_RESPONSE_STATUSES = ("submitted", "declined")


class SupplierResponse(Base):
    __tablename__ = "supplier_responses"

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
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    total_price_cents: Mapped[Optional[int]] = mapped_column(BigInteger)
    delivery_time_days: Mapped[Optional[int]] = mapped_column(Integer)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    attachments: Mapped[Optional[list]] = mapped_column(JSON)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint(
            "quote_request_id", "supplier_id", name="uq_supplier_response_supplier"
        ),
        CheckConstraint(
            "status IN ('pending','submitted','declined','expired')",
            name="chk_supplier_response_status",
        ),
        CheckConstraint(
            "total_price_cents IS NULL OR total_price_cents > 0",
            name="chk_supplier_response_total",
        ),
        CheckConstraint(
            "delivery_time_days IS NULL OR delivery_time_days > 0",
            name="chk_supplier_response_delivery",
        ),
        Index("idx_supplier_responses_request", "quote_request_id"),
        Index("idx_supplier_responses_supplier", "supplier_id"),
        Index("idx_supplier_responses_status", "status"),
        Index("idx_supplier_responses_submitted", "submitted_at"),
    )


class ResponseLineItem(Base):
    __tablename__ = "supplier_response_line_items"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    response_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("supplier_responses.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    item: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    total_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    specifications: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        UniqueConstraint("response_id", "line_number", name="uq_response_line_item"),
        CheckConstraint("quantity > 0", name="chk_response_line_qty"),
        CheckConstraint("unit_price_cents > 0", name="chk_response_line_price"),
        CheckConstraint(
            "total_cents = quantity * unit_price_cents", name="chk_response_line_total"
        ),
        Index("idx_response_line_items_response", "response_id"),
    )
