# quoteflow/services/aggregation_service.py
"""
Response statistics for a quote request.

Price and delivery figures are taken over submitted responses only and are
None when nothing has been submitted. Means and the response rate are rounded
half-up in integer arithmetic so cents never pass through floats.
"""

from dataclasses import dataclass, asdict
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quoteflow.models.supplier_response import SupplierResponse
from quoteflow.services.common import parse_uuid
from quoteflow.services.quote_request_service import count_invitations


@dataclass
class ResponseSummary:
    total_invited: int
    total_responses: int
    submitted_count: int
    declined_count: int
    pending_count: int
    response_rate: int
    lowest_price: Optional[int] = None
    highest_price: Optional[int] = None
    average_price: Optional[int] = None
    fastest_delivery: Optional[int] = None
    slowest_delivery: Optional[int] = None
    average_delivery: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)


def round_half_up_div(numerator: int, denominator: int) -> int:
    """round(numerator / denominator) for non-negative integers, .5 rounds up."""
    return (2 * numerator + denominator) // (2 * denominator)


def response_rate(total_responses: int, total_invited: int) -> int:
    return round_half_up_div(total_responses * 100, max(total_invited, 1))


def summarize_responses(total_invited: int, responses: Iterable) -> ResponseSummary:
    """Pure summary over response-like objects (status, total_price_cents, delivery_time_days)."""
    unique = {}
    for r in responses:
        unique.setdefault(str(r.id), r)
    rows = list(unique.values())

    submitted = [r for r in rows if r.status == "submitted"]
    summary = ResponseSummary(
        total_invited=total_invited,
        total_responses=len(rows),
        submitted_count=len(submitted),
        declined_count=sum(1 for r in rows if r.status == "declined"),
        pending_count=sum(1 for r in rows if r.status == "pending"),
        response_rate=response_rate(len(rows), total_invited),
    )

    prices = [r.total_price_cents for r in submitted if r.total_price_cents is not None]
    if prices:
        summary.lowest_price = min(prices)
        summary.highest_price = max(prices)
        summary.average_price = round_half_up_div(sum(prices), len(prices))

    days = [r.delivery_time_days for r in submitted if r.delivery_time_days is not None]
    if days:
        summary.fastest_delivery = min(days)
        summary.slowest_delivery = max(days)
        summary.average_delivery = round_half_up_div(sum(days), len(days))

    return summary


async def summarize(session: AsyncSession, quote_request_id) -> ResponseSummary:
    qr_id = parse_uuid(quote_request_id, "Quote request")
    total_invited = await count_invitations(session, qr_id)
    result = await session.execute(
        select(
            SupplierResponse.id,
            SupplierResponse.status,
            SupplierResponse.total_price_cents,
            SupplierResponse.delivery_time_days,
        ).where(SupplierResponse.quote_request_id == qr_id)
    )
    return summarize_responses(total_invited, result.all())
