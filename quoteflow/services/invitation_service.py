# quoteflow/services/invitation_service.py
"""
Invitation ledger: which suppliers may respond to which quote request.

(quote_request_id, supplier_id) is unique at the database level
(uq_quote_request_supplier). Inserts run inside a SAVEPOINT and a unique
violation is reported as DuplicateInvitation; there is no check-then-insert.
Invitations are immutable apart from the one-shot notification flag.

All functions use the caller's session (no commit). get_db() auto-commits.
"""

from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from quoteflow.config import settings
from quoteflow.database import utcnow
from quoteflow.errors import (
    DuplicateInvitation,
    InvalidTransition,
    MalformedPayload,
    NotFound,
)
from quoteflow.models.quote_request import (
    NOTIFICATION_METHODS,
    QuoteRequestSupplier,
)
from quoteflow.models.supplier import Supplier
from quoteflow.services.common import is_unique_violation, parse_uuid
from quoteflow.services.quote_request_service import (
    TERMINAL_STATUSES,
    get_quote_request,
    status_of,
)
from quoteflow.services.supplier_directory import get_supplier

logger = structlog.get_logger()

INVITATION_UNIQUE = "uq_quote_request_supplier"
INVITATION_UNIQUE_COLUMNS = (
    "quote_request_suppliers.quote_request_id",
    "quote_request_suppliers.supplier_id",
)


async def invite(
    session: AsyncSession,
    quote_request_id,
    supplier_id,
    notification_method: Optional[str] = None,
    now: Optional[datetime] = None,
) -> QuoteRequestSupplier:
    now = now or utcnow()
    if notification_method is not None and notification_method not in NOTIFICATION_METHODS:
        raise MalformedPayload(
            [{"field": "notification_method", "message": f"Must be one of {NOTIFICATION_METHODS}"}]
        )

    quote_request = await get_quote_request(session, quote_request_id)
    current = status_of(quote_request, now)
    if current in TERMINAL_STATUSES:
        raise InvalidTransition(
            current,
            current,
            message="Cannot invite suppliers to completed or expired quote requests",
        )

    supplier = await get_supplier(session, supplier_id)
    if not supplier:
        raise NotFound("Supplier not found", details={"id": str(supplier_id)})

    invitation = QuoteRequestSupplier(
        quote_request_id=quote_request.id,
        supplier_id=supplier.id,
        invited_at=now,
        notification_sent=False,
        notification_method=notification_method,
    )
    try:
        async with session.begin_nested():
            session.add(invitation)
            await session.flush()
    except IntegrityError as exc:
        if not is_unique_violation(exc, INVITATION_UNIQUE, INVITATION_UNIQUE_COLUMNS):
            raise
        logger.info(
            "supplier_invitation_duplicate",
            quote_request_id=str(quote_request.id),
            supplier_id=str(supplier.id),
        )
        raise DuplicateInvitation(quote_request.id, supplier.id)

    logger.info(
        "supplier_invited",
        quote_request_id=str(quote_request.id),
        supplier_id=str(supplier.id),
        notification_method=notification_method,
    )
    return invitation


async def invite_suppliers(
    session: AsyncSession,
    quote_request_id,
    supplier_ids: Sequence[str],
    notification_method: Optional[str] = "email",
    now: Optional[datetime] = None,
) -> list[QuoteRequestSupplier]:
    """Invite several suppliers; any failure aborts the caller's transaction."""
    if not supplier_ids:
        raise MalformedPayload(
            [{"field": "supplier_ids", "message": "At least one supplier must be selected"}]
        )
    if len(supplier_ids) > settings.MAX_INVITES_PER_CALL:
        raise MalformedPayload(
            [{
                "field": "supplier_ids",
                "message": f"Maximum {settings.MAX_INVITES_PER_CALL} suppliers can be invited at once",
            }]
        )

    now = now or utcnow()
    return [
        await invite(session, quote_request_id, supplier_id, notification_method, now)
        for supplier_id in supplier_ids
    ]


def _invitation_order():
    return (
        QuoteRequestSupplier.invited_at,
        QuoteRequestSupplier.created_at,
        QuoteRequestSupplier.id,
    )


async def list_invitees(session: AsyncSession, quote_request_id) -> list[str]:
    """Invited supplier ids in invitation order."""
    qr_id = parse_uuid(quote_request_id, "Quote request")
    result = await session.execute(
        select(QuoteRequestSupplier.supplier_id)
        .where(QuoteRequestSupplier.quote_request_id == qr_id)
        .order_by(*_invitation_order())
    )
    return [str(row[0]) for row in result.all()]


async def list_invitations(
    session: AsyncSession, quote_request_id
) -> list[tuple[QuoteRequestSupplier, Optional[str]]]:
    """Invitation rows with the supplier's display name, in invitation order."""
    qr_id = parse_uuid(quote_request_id, "Quote request")
    result = await session.execute(
        select(QuoteRequestSupplier, Supplier.name)
        .join(Supplier, Supplier.id == QuoteRequestSupplier.supplier_id, isouter=True)
        .where(QuoteRequestSupplier.quote_request_id == qr_id)
        .order_by(*_invitation_order())
    )
    return [(invitation, name) for invitation, name in result.all()]


async def is_invited(session: AsyncSession, quote_request_id, supplier_id) -> bool:
    result = await session.execute(
        select(QuoteRequestSupplier.id).where(
            QuoteRequestSupplier.quote_request_id == quote_request_id,
            QuoteRequestSupplier.supplier_id == supplier_id,
        )
    )
    return result.first() is not None


async def mark_notification_sent(
    session: AsyncSession, quote_request_id, supplier_id
) -> None:
    """Record that the invitee was notified. The flag is set exactly once."""
    qr_id = parse_uuid(quote_request_id, "Quote request")
    sup_id = parse_uuid(supplier_id, "Supplier")
    result = await session.execute(
        update(QuoteRequestSupplier)
        .where(
            QuoteRequestSupplier.quote_request_id == qr_id,
            QuoteRequestSupplier.supplier_id == sup_id,
            QuoteRequestSupplier.notification_sent.is_(False),
        )
        .values(notification_sent=True)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        logger.info(
            "supplier_notification_recorded",
            quote_request_id=str(qr_id),
            supplier_id=str(sup_id),
        )
        return

    if not await is_invited(session, qr_id, sup_id):
        raise NotFound("Invitation not found", details={"supplier_id": str(supplier_id)})
    raise InvalidTransition(
        "notified", "notified", message="Notification already recorded for this invitation"
    )
