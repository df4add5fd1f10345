from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from quoteflow.database import get_db, utcnow
from quoteflow.middleware.auth import get_current_user
from quoteflow.middleware.authorization import get_current_supplier_id, require_roles
from quoteflow.models.quote_request import QuoteRequest, QuoteRequestSupplier
from quoteflow.schemas.common import PaginatedResponse, build_pagination
from quoteflow.schemas.quote_request import (
    InvitationResponse,
    InviteSuppliersRequest,
    QuoteRequestCreate,
    QuoteRequestResponse,
    QuoteRequestUpdate,
)
from quoteflow.schemas.supplier_response import (
    DeclineRequest,
    LineItemResponse,
    PricingSummaryOut,
    ResponseListOut,
    ResponseSummaryOut,
    SupplierResponseOut,
)
from quoteflow.services import (
    aggregation_service,
    export_service,
    invitation_service,
    quote_request_service,
    response_service,
)
from quoteflow.services.common import iso_or_none
from quoteflow.services.line_item_validator import pricing_summary
from quoteflow.services.response_service import ResponseRecord
from quoteflow.services.supplier_directory import (
    UNKNOWN_SUPPLIER,
    display_name,
    resolve_supplier_names,
)

logger = structlog.get_logger()
router = APIRouter()

buyer_only = require_roles("buyer")


def _qr_to_response(qr: QuoteRequest, invited_count: int, now) -> QuoteRequestResponse:
    return QuoteRequestResponse(
        id=str(qr.id),
        user_id=str(qr.user_id),
        opportunity_id=str(qr.opportunity_id),
        title=qr.title,
        description=qr.description,
        status=quote_request_service.status_of(qr, now),
        persisted_status=qr.status,
        deadline=qr.deadline.isoformat(),
        requirements=qr.requirements,
        attachments=qr.attachments or [],
        ai_generated=qr.ai_generated,
        invited_count=invited_count,
        created_at=qr.created_at.isoformat() if qr.created_at else "",
        updated_at=qr.updated_at.isoformat() if qr.updated_at else "",
    )


def _invitation_to_response(inv: QuoteRequestSupplier, name: Optional[str]) -> InvitationResponse:
    return InvitationResponse(
        id=str(inv.id),
        quote_request_id=str(inv.quote_request_id),
        supplier_id=str(inv.supplier_id),
        supplier_name=name or UNKNOWN_SUPPLIER,
        invited_at=inv.invited_at.isoformat(),
        notification_sent=inv.notification_sent,
        notification_method=inv.notification_method,
    )


def _record_to_response(record: ResponseRecord, supplier_name: str) -> SupplierResponseOut:
    r = record.response
    return SupplierResponseOut(
        id=str(r.id),
        quote_request_id=str(r.quote_request_id),
        supplier_id=str(r.supplier_id),
        supplier_name=supplier_name,
        status=r.status,
        total_price_cents=r.total_price_cents,
        delivery_time_days=r.delivery_time_days,
        notes=r.notes,
        attachments=r.attachments or [],
        line_items=[LineItemResponse.model_validate(li) for li in record.line_items],
        pricing=(
            PricingSummaryOut.model_validate(pricing_summary(record.line_items))
            if record.line_items
            else None
        ),
        submitted_at=iso_or_none(r.submitted_at),
        expires_at=iso_or_none(r.expires_at),
        created_at=r.created_at.isoformat() if r.created_at else "",
        updated_at=r.updated_at.isoformat() if r.updated_at else "",
    )


async def _detail(db: AsyncSession, qr: QuoteRequest, now) -> QuoteRequestResponse:
    invited = await quote_request_service.count_invitations(db, qr.id)
    return _qr_to_response(qr, invited, now)


# ---------- quote requests ----------


@router.get("", response_model=PaginatedResponse[QuoteRequestResponse])
async def list_quote_requests(
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=100),
    qr_status: Optional[str] = Query(
        None, alias="status", pattern="^(draft|sent|expired|completed)$"
    ),
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    now = utcnow()
    items, total = await quote_request_service.list_quote_requests(
        db, current_user["user_id"], qr_status, page, limit, now
    )
    data = [await _detail(db, qr, now) for qr in items]
    return PaginatedResponse(data=data, pagination=build_pagination(page, limit, total))


@router.post("", response_model=QuoteRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_quote_request(
    body: QuoteRequestCreate,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    qr = await quote_request_service.create_quote_request(db, current_user["user_id"], body)
    return _qr_to_response(qr, 0, utcnow())


@router.get("/{quote_request_id}", response_model=QuoteRequestResponse)
async def get_quote_request(
    quote_request_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    qr = await quote_request_service.get_owned_quote_request(
        db, quote_request_id, current_user["user_id"]
    )
    return await _detail(db, qr, utcnow())


@router.put("/{quote_request_id}", response_model=QuoteRequestResponse)
async def update_quote_request(
    quote_request_id: str,
    body: QuoteRequestUpdate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    qr = await quote_request_service.update_quote_request(
        db, quote_request_id, current_user["user_id"], body
    )
    return await _detail(db, qr, utcnow())


@router.delete("/{quote_request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_quote_request(
    quote_request_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await quote_request_service.delete_quote_request(
        db, quote_request_id, current_user["user_id"], utcnow()
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{quote_request_id}/send", response_model=QuoteRequestResponse)
async def send_quote_request(
    quote_request_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    now = utcnow()
    qr = await quote_request_service.send_quote_request(
        db, quote_request_id, current_user["user_id"], now
    )
    return await _detail(db, qr, now)


@router.post("/{quote_request_id}/complete", response_model=QuoteRequestResponse)
async def complete_quote_request(
    quote_request_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    now = utcnow()
    qr = await quote_request_service.complete_quote_request(
        db, quote_request_id, current_user["user_id"], now
    )
    return await _detail(db, qr, now)


# ---------- invitations ----------


@router.get("/{quote_request_id}/suppliers", response_model=List[InvitationResponse])
async def list_invited_suppliers(
    quote_request_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    qr = await quote_request_service.get_owned_quote_request(
        db, quote_request_id, current_user["user_id"]
    )
    rows = await invitation_service.list_invitations(db, qr.id)
    return [_invitation_to_response(inv, name) for inv, name in rows]


@router.post(
    "/{quote_request_id}/suppliers",
    response_model=List[InvitationResponse],
    status_code=status.HTTP_201_CREATED,
)
async def invite_suppliers(
    quote_request_id: str,
    body: InviteSuppliersRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    qr = await quote_request_service.get_owned_quote_request(
        db, quote_request_id, current_user["user_id"]
    )
    invitations = await invitation_service.invite_suppliers(
        db, qr.id, body.supplier_ids, body.notification_method, utcnow()
    )
    names = await resolve_supplier_names(db, [inv.supplier_id for inv in invitations])
    return [
        _invitation_to_response(inv, names.get(str(inv.supplier_id)))
        for inv in invitations
    ]


@router.post(
    "/{quote_request_id}/suppliers/{supplier_id}/notified",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def mark_supplier_notified(
    quote_request_id: str,
    supplier_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    qr = await quote_request_service.get_owned_quote_request(
        db, quote_request_id, current_user["user_id"]
    )
    await invitation_service.mark_notification_sent(db, qr.id, supplier_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------- responses ----------


@router.get("/{quote_request_id}/responses", response_model=ResponseListOut)
async def list_responses(
    quote_request_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    qr = await quote_request_service.get_owned_quote_request(
        db, quote_request_id, current_user["user_id"]
    )
    records = await response_service.list_responses(db, qr.id)
    names = await resolve_supplier_names(db, {r.response.supplier_id for r in records})
    invited = await quote_request_service.count_invitations(db, qr.id)
    summary = aggregation_service.summarize_responses(invited, [r.response for r in records])
    return ResponseListOut(
        data=[
            _record_to_response(r, display_name(names, r.response.supplier_id))
            for r in records
        ],
        summary=ResponseSummaryOut(**summary.to_dict()),
    )


@router.get("/{quote_request_id}/responses/{response_id}", response_model=SupplierResponseOut)
async def get_response(
    quote_request_id: str,
    response_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    qr = await quote_request_service.get_owned_quote_request(
        db, quote_request_id, current_user["user_id"]
    )
    record = await response_service.get_response(db, qr.id, response_id)
    names = await resolve_supplier_names(db, [record.response.supplier_id])
    return _record_to_response(record, display_name(names, record.response.supplier_id))


@router.post(
    "/{quote_request_id}/responses",
    response_model=SupplierResponseOut,
    status_code=status.HTTP_201_CREATED,
)
async def submit_response(
    quote_request_id: str,
    payload: Any = Body(...),
    draft: bool = Query(False),
    supplier_id: str = Depends(get_current_supplier_id),
    db: AsyncSession = Depends(get_db),
):
    # Raw body: the validator reports every field error in one MalformedPayload.
    record = await response_service.submit_response(
        db, quote_request_id, supplier_id, payload, utcnow(), draft=draft
    )
    names = await resolve_supplier_names(db, [record.response.supplier_id])
    return _record_to_response(record, display_name(names, record.response.supplier_id))


@router.post(
    "/{quote_request_id}/responses/decline",
    response_model=SupplierResponseOut,
    status_code=status.HTTP_201_CREATED,
)
async def decline_response(
    quote_request_id: str,
    body: Optional[DeclineRequest] = None,
    supplier_id: str = Depends(get_current_supplier_id),
    db: AsyncSession = Depends(get_db),
):
    record = await response_service.decline_response(
        db, quote_request_id, supplier_id, body.reason if body else None, utcnow()
    )
    names = await resolve_supplier_names(db, [record.response.supplier_id])
    return _record_to_response(record, display_name(names, record.response.supplier_id))


# ---------- summary & export ----------


@router.get("/{quote_request_id}/summary", response_model=ResponseSummaryOut)
async def get_summary(
    quote_request_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    qr = await quote_request_service.get_owned_quote_request(
        db, quote_request_id, current_user["user_id"]
    )
    summary = await aggregation_service.summarize(db, qr.id)
    return ResponseSummaryOut(**summary.to_dict())


@router.get("/{quote_request_id}/export")
async def export_quote_request(
    quote_request_id: str,
    report_type: str = Query("quote-request", alias="type"),
    fmt: str = Query("delimited-text", alias="format"),
    include_line_items: bool = Query(False),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await export_service.export_quote_request(
        db,
        quote_request_id,
        current_user["user_id"],
        report_type=report_type,
        fmt=fmt,
        include_line_items=include_line_items,
        now=utcnow(),
    )
    headers = {"Content-Disposition": f'attachment; filename="{result.filename}"'}
    if isinstance(result.content, dict):
        return JSONResponse(content=result.content, headers=headers)
    return Response(content=result.content, media_type=result.media_type, headers=headers)
