# quoteflow/services/quote_request_service.py
"""
Quote request lifecycle.

    draft ──send──▶ sent ──complete──▶ completed
                      └───deadline───▶ expired

The persisted ``status`` column is a cache of the lifecycle state. Gating
decisions always go through ``effective_status``, which applies the deadline
even when the sweep has not written ``expired`` back yet. Transitions are
conditional UPDATEs on the persisted status so a concurrent sweep and owner
action cannot both win.

All functions use the caller's session (no commit). get_db() auto-commits.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, func, update, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from quoteflow.database import to_naive_utc, utcnow
from quoteflow.errors import Forbidden, InvalidTransition, MalformedPayload, NotFound
from quoteflow.models.opportunity import Opportunity
from quoteflow.models.quote_request import QuoteRequest, QuoteRequestSupplier
from quoteflow.models.supplier_response import (
    SupplierResponse,
    TERMINAL_RESPONSE_STATUSES,
)
from quoteflow.schemas.quote_request import QuoteRequestCreate, QuoteRequestUpdate
from quoteflow.services.common import parse_uuid

logger = structlog.get_logger()

DRAFT = "draft"
SENT = "sent"
EXPIRED = "expired"
COMPLETED = "completed"

TERMINAL_STATUSES = frozenset({EXPIRED, COMPLETED})

ALLOWED_TRANSITIONS = {
    DRAFT: frozenset({SENT}),
    SENT: frozenset({COMPLETED, EXPIRED}),
    EXPIRED: frozenset(),
    COMPLETED: frozenset(),
}


def effective_status(persisted_status: str, deadline: datetime, now: datetime) -> str:
    """Deadline-corrected status used for every gating decision."""
    if persisted_status == SENT and now > deadline:
        return EXPIRED
    return persisted_status


def status_of(quote_request: QuoteRequest, now: Optional[datetime] = None) -> str:
    return effective_status(quote_request.status, quote_request.deadline, now or utcnow())


def is_accepting_responses(quote_request: QuoteRequest, now: datetime) -> bool:
    return status_of(quote_request, now) == SENT and now <= quote_request.deadline


def ensure_owner(quote_request: QuoteRequest, user_id) -> None:
    if str(quote_request.user_id) != str(user_id):
        logger.warning(
            "quote_request_access_denied",
            quote_request_id=str(quote_request.id),
            user_id=str(user_id),
        )
        raise Forbidden()


async def get_quote_request(
    session: AsyncSession, quote_request_id, for_update: bool = False
) -> QuoteRequest:
    qr_id = parse_uuid(quote_request_id, "Quote request")
    stmt = select(QuoteRequest).where(QuoteRequest.id == qr_id)
    if for_update:
        # Serialises writers on one request so the completion count sees every
        # committed response.
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(stmt)
    quote_request = result.scalar_one_or_none()
    if not quote_request:
        raise NotFound("Quote request not found", details={"id": str(quote_request_id)})
    return quote_request


async def get_owned_quote_request(
    session: AsyncSession, quote_request_id, user_id
) -> QuoteRequest:
    quote_request = await get_quote_request(session, quote_request_id)
    ensure_owner(quote_request, user_id)
    return quote_request


async def count_invitations(session: AsyncSession, quote_request_id) -> int:
    result = await session.execute(
        select(func.count(QuoteRequestSupplier.id)).where(
            QuoteRequestSupplier.quote_request_id == quote_request_id
        )
    )
    return int(result.scalar() or 0)


async def count_terminal_responses(session: AsyncSession, quote_request_id) -> int:
    result = await session.execute(
        select(func.count(SupplierResponse.id)).where(
            SupplierResponse.quote_request_id == quote_request_id,
            SupplierResponse.status.in_(TERMINAL_RESPONSE_STATUSES),
        )
    )
    return int(result.scalar() or 0)


async def get_opportunity(session: AsyncSession, opportunity_id) -> Optional[Opportunity]:
    result = await session.execute(
        select(Opportunity).where(Opportunity.id == opportunity_id)
    )
    return result.scalar_one_or_none()


# ---------- create / read / update / delete ----------


async def create_quote_request(
    session: AsyncSession,
    owner_id,
    body: QuoteRequestCreate,
) -> QuoteRequest:
    if not body.title.strip():
        raise MalformedPayload([{"field": "title", "message": "Title is required"}])

    opportunity_id = parse_uuid(body.opportunity_id, "Opportunity")
    if not await get_opportunity(session, opportunity_id):
        raise NotFound("Opportunity not found", details={"id": body.opportunity_id})

    quote_request = QuoteRequest(
        user_id=parse_uuid(owner_id, "User"),
        opportunity_id=opportunity_id,
        title=body.title.strip(),
        description=body.description,
        status=DRAFT,
        deadline=to_naive_utc(body.deadline),
        requirements=body.requirements,
        attachments=[a.model_dump() for a in body.attachments],
        ai_generated=body.ai_generated,
        ai_prompt=body.ai_prompt,
    )
    session.add(quote_request)
    await session.flush()

    logger.info(
        "quote_request_created",
        quote_request_id=str(quote_request.id),
        opportunity_id=str(opportunity_id),
        user_id=str(owner_id),
    )
    return quote_request


async def list_quote_requests(
    session: AsyncSession,
    owner_id,
    status: Optional[str],
    page: int,
    limit: int,
    now: datetime,
) -> tuple[list[QuoteRequest], int]:
    """Owner's quote requests, newest first. ``status`` matches the effective status."""
    conditions = [QuoteRequest.user_id == parse_uuid(owner_id, "User")]
    if status == SENT:
        conditions.append(and_(QuoteRequest.status == SENT, QuoteRequest.deadline >= now))
    elif status == EXPIRED:
        conditions.append(
            or_(
                QuoteRequest.status == EXPIRED,
                and_(QuoteRequest.status == SENT, QuoteRequest.deadline < now),
            )
        )
    elif status:
        conditions.append(QuoteRequest.status == status)

    total = (
        await session.execute(select(func.count(QuoteRequest.id)).where(*conditions))
    ).scalar() or 0
    result = await session.execute(
        select(QuoteRequest)
        .where(*conditions)
        .order_by(QuoteRequest.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), int(total)


async def update_quote_request(
    session: AsyncSession,
    quote_request_id,
    user_id,
    body: QuoteRequestUpdate,
) -> QuoteRequest:
    """Edit a draft. Sent requests are frozen so suppliers quote against fixed terms."""
    quote_request = await get_owned_quote_request(session, quote_request_id, user_id)
    if quote_request.status != DRAFT:
        raise InvalidTransition(
            quote_request.status,
            quote_request.status,
            message="Only draft quote requests can be edited",
        )

    changes = body.model_dump(exclude_unset=True)
    if "title" in changes:
        if not (changes["title"] or "").strip():
            raise MalformedPayload([{"field": "title", "message": "Title is required"}])
        quote_request.title = changes["title"].strip()
    if "description" in changes:
        quote_request.description = changes["description"]
    if changes.get("deadline") is not None:
        quote_request.deadline = to_naive_utc(body.deadline)
    if "requirements" in changes:
        quote_request.requirements = changes["requirements"]
    if changes.get("attachments") is not None:
        quote_request.attachments = [a.model_dump() for a in body.attachments]
    await session.flush()

    logger.info(
        "quote_request_updated",
        quote_request_id=str(quote_request.id),
        fields=sorted(changes.keys()),
    )
    return quote_request


async def delete_quote_request(
    session: AsyncSession,
    quote_request_id,
    user_id,
    now: datetime,
) -> None:
    quote_request = await get_owned_quote_request(session, quote_request_id, user_id)
    if status_of(quote_request, now) == SENT:
        responses = await session.execute(
            select(func.count(SupplierResponse.id)).where(
                SupplierResponse.quote_request_id == quote_request.id
            )
        )
        if responses.scalar():
            raise InvalidTransition(
                SENT,
                "deleted",
                message="Cannot delete quote request with supplier responses",
            )

    await session.delete(quote_request)
    await session.flush()
    logger.info("quote_request_deleted", quote_request_id=str(quote_request.id))


# ---------- transitions ----------


async def _apply_transition(
    session: AsyncSession,
    quote_request: QuoteRequest,
    to_status: str,
    now: datetime,
) -> None:
    current = status_of(quote_request, now)
    if to_status not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransition(current, to_status)
    await _write_status(session, quote_request, to_status, now)


async def _write_status(
    session: AsyncSession,
    quote_request: QuoteRequest,
    to_status: str,
    now: datetime,
) -> None:
    from_status = quote_request.status
    result = await session.execute(
        update(QuoteRequest)
        .where(QuoteRequest.id == quote_request.id, QuoteRequest.status == from_status)
        .values(status=to_status, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Someone else moved it first; report against the state they left.
        await session.refresh(quote_request)
        raise InvalidTransition(status_of(quote_request, now), to_status)

    quote_request.status = to_status
    quote_request.updated_at = now
    logger.info(
        "quote_request_transitioned",
        quote_request_id=str(quote_request.id),
        from_status=from_status,
        to_status=to_status,
    )


async def send_quote_request(
    session: AsyncSession,
    quote_request_id,
    user_id,
    now: datetime,
) -> QuoteRequest:
    quote_request = await get_owned_quote_request(session, quote_request_id, user_id)

    current = status_of(quote_request, now)
    if current != DRAFT:
        raise InvalidTransition(current, SENT)
    if await count_invitations(session, quote_request.id) == 0:
        raise InvalidTransition(
            DRAFT, SENT, message="At least one supplier must be invited before sending"
        )
    if quote_request.deadline <= now:
        raise InvalidTransition(
            DRAFT, SENT, message="Deadline must be in the future to send a quote request"
        )

    await _apply_transition(session, quote_request, SENT, now)
    return quote_request


async def complete_quote_request(
    session: AsyncSession,
    quote_request_id,
    user_id,
    now: datetime,
) -> QuoteRequest:
    quote_request = await get_owned_quote_request(session, quote_request_id, user_id)
    await _apply_transition(session, quote_request, COMPLETED, now)
    return quote_request


async def all_invitees_responded(session: AsyncSession, quote_request_id) -> bool:
    invited = await count_invitations(session, quote_request_id)
    if invited == 0:
        return False
    return await count_terminal_responses(session, quote_request_id) >= invited


async def maybe_auto_complete(
    session: AsyncSession, quote_request: QuoteRequest, now: datetime
) -> bool:
    """Complete a sent request once every invitee holds a terminal response."""
    if quote_request.status != SENT:
        return False
    if not await all_invitees_responded(session, quote_request.id):
        return False
    try:
        await _apply_transition(session, quote_request, COMPLETED, now)
    except InvalidTransition:
        return False
    logger.info("quote_request_auto_completed", quote_request_id=str(quote_request.id))
    return True


async def expire_quote_request(
    session: AsyncSession, quote_request: QuoteRequest, now: datetime
) -> bool:
    """Write the deadline-derived ``expired`` state back and expire pending responses."""
    if quote_request.status != SENT or now <= quote_request.deadline:
        return False

    # Effective status already reads expired here; only the cache is written.
    await _write_status(session, quote_request, EXPIRED, now)
    await session.execute(
        update(SupplierResponse)
        .where(
            SupplierResponse.quote_request_id == quote_request.id,
            SupplierResponse.status == "pending",
        )
        .values(status="expired", updated_at=now)
        .execution_options(synchronize_session=False)
    )
    logger.info("quote_request_expired", quote_request_id=str(quote_request.id))
    return True


async def reconcile_quote_request(
    session: AsyncSession, quote_request: QuoteRequest, now: datetime
) -> Optional[str]:
    """Persist the derived state of a sent request. Returns the new status, if any."""
    if quote_request.status != SENT:
        return None
    if await all_invitees_responded(session, quote_request.id):
        # Fully answered requests complete even past the deadline.
        await _write_status(session, quote_request, COMPLETED, now)
        return COMPLETED
    if await expire_quote_request(session, quote_request, now):
        return EXPIRED
    return None
