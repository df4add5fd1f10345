# quoteflow/services/response_service.py
"""
Supplier response intake.

Order of checks for a submission (first failure wins):
  1. quote request exists, row locked          → NotFound
  2. effective status is sent, now <= deadline  → NotAcceptingResponses
  3. supplier holds an invitation               → NotInvited
  4. no terminal response for the pair yet      → DuplicateResponse
  5. payload shape, all field errors at once    → MalformedPayload
  6. every line: qty * unit price == line total → LineItemMismatch
  7. sum of lines == declared total             → TotalPriceMismatch
  8. persist; the unique constraint arbitrates concurrent inserts

A ``pending`` response (draft submission) may be promoted to ``submitted``
through the same validation path; the promotion is a conditional UPDATE so
only one concurrent promotion can succeed.

All functions use the caller's session (no commit). get_db() auto-commits.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from quoteflow.database import to_naive_utc, utcnow
from quoteflow.errors import (
    DuplicateResponse,
    NotAcceptingResponses,
    NotFound,
    NotInvited,
    QuoteFlowError,
)
from quoteflow.models.quote_request import QuoteRequest
from quoteflow.models.supplier_response import ResponseLineItem, SupplierResponse
from quoteflow.schemas.supplier_response import ResponsePayload
from quoteflow.services.common import is_unique_violation, parse_uuid
from quoteflow.services.invitation_service import is_invited
from quoteflow.services.line_item_validator import check_arithmetic, validate_payload
from quoteflow.services.quote_request_service import (
    get_quote_request,
    is_accepting_responses,
    maybe_auto_complete,
    status_of,
)

logger = structlog.get_logger()

PENDING = "pending"
SUBMITTED = "submitted"
DECLINED = "declined"

RESPONSE_UNIQUE = "uq_supplier_response_supplier"
RESPONSE_UNIQUE_COLUMNS = (
    "supplier_responses.quote_request_id",
    "supplier_responses.supplier_id",
)


@dataclass
class ResponseRecord:
    response: SupplierResponse
    line_items: list[ResponseLineItem] = field(default_factory=list)


async def _find_response(
    session: AsyncSession, quote_request_id, supplier_id
) -> Optional[SupplierResponse]:
    result = await session.execute(
        select(SupplierResponse).where(
            SupplierResponse.quote_request_id == quote_request_id,
            SupplierResponse.supplier_id == supplier_id,
        )
    )
    return result.scalar_one_or_none()


async def _check_intake(
    session: AsyncSession,
    quote_request_id,
    supplier_id,
    now: datetime,
) -> tuple[QuoteRequest, Any]:
    quote_request = await get_quote_request(session, quote_request_id, for_update=True)

    if not is_accepting_responses(quote_request, now):
        raise NotAcceptingResponses(
            details={
                "status": status_of(quote_request, now),
                "deadline": quote_request.deadline.isoformat(),
            }
        )

    try:
        sup_id = parse_uuid(supplier_id, "Supplier")
    except NotFound:
        raise NotInvited(details={"supplier_id": str(supplier_id)})
    if not await is_invited(session, quote_request.id, sup_id):
        raise NotInvited(details={"supplier_id": str(sup_id)})
    return quote_request, sup_id


def _build_line_items(response_id, body: ResponsePayload) -> list[ResponseLineItem]:
    return [
        ResponseLineItem(
            response_id=response_id,
            line_number=idx + 1,
            item=li.item,
            quantity=li.quantity,
            unit_price_cents=li.unit_price_cents,
            total_cents=li.total_cents,
            specifications=li.specifications,
            notes=li.notes,
        )
        for idx, li in enumerate(body.line_items)
    ]


def _priced_fields(body: ResponsePayload) -> dict:
    return {
        "total_price_cents": body.total_price_cents,
        "delivery_time_days": body.delivery_time_days,
        "notes": body.notes,
        "attachments": [a.model_dump() for a in body.attachments],
        "expires_at": to_naive_utc(body.expires_at) if body.expires_at else None,
    }


async def _insert_response(
    session: AsyncSession,
    response: SupplierResponse,
    line_items_for,
) -> list[ResponseLineItem]:
    qr_id, sup_id = response.quote_request_id, response.supplier_id
    try:
        async with session.begin_nested():
            session.add(response)
            await session.flush()
            line_items = line_items_for(response.id)
            session.add_all(line_items)
            await session.flush()
    except IntegrityError as exc:
        if not is_unique_violation(exc, RESPONSE_UNIQUE, RESPONSE_UNIQUE_COLUMNS):
            raise
        raise DuplicateResponse(qr_id, sup_id)
    return line_items


async def _promote_pending(
    session: AsyncSession,
    existing: SupplierResponse,
    values: dict,
) -> None:
    result = await session.execute(
        update(SupplierResponse)
        .where(SupplierResponse.id == existing.id, SupplierResponse.status == PENDING)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise DuplicateResponse(existing.quote_request_id, existing.supplier_id)
    for key, value in values.items():
        setattr(existing, key, value)


async def submit_response(
    session: AsyncSession,
    quote_request_id,
    supplier_id,
    payload: Any,
    now: Optional[datetime] = None,
    draft: bool = False,
) -> ResponseRecord:
    """Validate and store a supplier's priced response."""
    now = now or utcnow()
    try:
        quote_request, sup_id = await _check_intake(session, quote_request_id, supplier_id, now)

        existing = await _find_response(session, quote_request.id, sup_id)
        if existing is not None and (existing.status != PENDING or draft):
            raise DuplicateResponse(quote_request.id, sup_id)

        body = validate_payload(payload)
        check_arithmetic(body)

        status = PENDING if draft else SUBMITTED
        values = dict(
            _priced_fields(body),
            status=status,
            submitted_at=None if draft else now,
            updated_at=now,
        )

        if existing is None:
            response = SupplierResponse(
                quote_request_id=quote_request.id,
                supplier_id=sup_id,
                created_at=now,
                **values,
            )
            line_items = await _insert_response(
                session, response, lambda rid: _build_line_items(rid, body)
            )
        else:
            await _promote_pending(session, existing, values)
            await session.execute(
                delete(ResponseLineItem).where(ResponseLineItem.response_id == existing.id)
            )
            response = existing
            line_items = _build_line_items(existing.id, body)
            session.add_all(line_items)
            await session.flush()
    except QuoteFlowError as exc:
        logger.info(
            "supplier_response_rejected",
            quote_request_id=str(quote_request_id),
            supplier_id=str(supplier_id),
            code=exc.code,
        )
        raise

    logger.info(
        "supplier_response_submitted" if status == SUBMITTED else "supplier_response_drafted",
        quote_request_id=str(quote_request.id),
        supplier_id=str(sup_id),
        response_id=str(response.id),
        total_price_cents=response.total_price_cents,
        line_item_count=len(line_items),
    )

    if status == SUBMITTED:
        await maybe_auto_complete(session, quote_request, now)
    return ResponseRecord(response=response, line_items=line_items)


async def decline_response(
    session: AsyncSession,
    quote_request_id,
    supplier_id,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ResponseRecord:
    """Record that an invited supplier will not quote."""
    now = now or utcnow()
    quote_request, sup_id = await _check_intake(session, quote_request_id, supplier_id, now)

    existing = await _find_response(session, quote_request.id, sup_id)
    if existing is not None and existing.status != PENDING:
        raise DuplicateResponse(quote_request.id, sup_id)

    values = {
        "status": DECLINED,
        "total_price_cents": None,
        "delivery_time_days": None,
        "notes": reason or None,
        "attachments": [],
        "expires_at": None,
        "submitted_at": None,
        "updated_at": now,
    }

    if existing is None:
        response = SupplierResponse(
            quote_request_id=quote_request.id,
            supplier_id=sup_id,
            created_at=now,
            **values,
        )
        await _insert_response(session, response, lambda rid: [])
    else:
        await _promote_pending(session, existing, values)
        # A declined response carries no pricing from the abandoned draft.
        await session.execute(
            delete(ResponseLineItem).where(ResponseLineItem.response_id == existing.id)
        )
        response = existing

    logger.info(
        "supplier_response_declined",
        quote_request_id=str(quote_request.id),
        supplier_id=str(sup_id),
        response_id=str(response.id),
    )
    await maybe_auto_complete(session, quote_request, now)
    return ResponseRecord(response=response, line_items=[])


async def load_line_items(
    session: AsyncSession, response_ids: list
) -> dict[str, list[ResponseLineItem]]:
    if not response_ids:
        return {}
    result = await session.execute(
        select(ResponseLineItem)
        .where(ResponseLineItem.response_id.in_(response_ids))
        .order_by(ResponseLineItem.response_id, ResponseLineItem.line_number)
    )
    items: dict[str, list[ResponseLineItem]] = {}
    for li in result.scalars().all():
        items.setdefault(str(li.response_id), []).append(li)
    return items


async def list_responses(session: AsyncSession, quote_request_id) -> list[ResponseRecord]:
    """All responses for a request, most recent submission first."""
    qr_id = parse_uuid(quote_request_id, "Quote request")
    result = await session.execute(
        select(SupplierResponse)
        .where(SupplierResponse.quote_request_id == qr_id)
        .order_by(
            SupplierResponse.submitted_at.desc().nulls_last(),
            SupplierResponse.created_at.desc(),
        )
    )
    responses = list(result.scalars().all())
    items = await load_line_items(session, [r.id for r in responses])
    return [ResponseRecord(response=r, line_items=items.get(str(r.id), [])) for r in responses]


async def get_response(
    session: AsyncSession, quote_request_id, response_id
) -> ResponseRecord:
    qr_id = parse_uuid(quote_request_id, "Quote request")
    resp_id = parse_uuid(response_id, "Response")
    result = await session.execute(
        select(SupplierResponse).where(SupplierResponse.id == resp_id)
    )
    response = result.scalar_one_or_none()
    if not response or response.quote_request_id != qr_id:
        raise NotFound("Response not found", details={"id": str(response_id)})
    items = await load_line_items(session, [response.id])
    return ResponseRecord(response=response, line_items=items.get(str(response.id), []))
