# quoteflow/jobs/scheduled.py
"""
Scheduled jobs triggered by an external scheduler → API endpoints.

Jobs:
  - reconcile-quote-requests: every 15 minutes. Writes the deadline-derived
    state of sent quote requests back to the store (expired, or completed when
    every invitee already answered).
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from quoteflow.config import settings
from quoteflow.database import get_db, utcnow
from quoteflow.errors import InvalidTransition
from quoteflow.models.quote_request import QuoteRequest
from quoteflow.services.quote_request_service import (
    COMPLETED,
    EXPIRED,
    SENT,
    reconcile_quote_request,
)

logger = structlog.get_logger()
router = APIRouter()


async def _require_internal_auth(request: Request):
    """
    Verify the request comes from the scheduler or an internal service.
    Validates X-Internal-Secret header against INTERNAL_JOB_SECRET from settings.
    """
    secret = settings.INTERNAL_JOB_SECRET
    if not secret:
        # In development (DEBUG=True), allow unauthenticated internal calls
        if settings.DEBUG:
            return
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="INTERNAL_JOB_SECRET is not configured",
        )
    provided = request.headers.get("X-Internal-Secret")
    if not provided or provided != secret:
        logger.warning("internal_auth_failed", path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden",
        )


async def reconcile_overdue_quote_requests(
    db: AsyncSession, now: Optional[datetime] = None
) -> dict:
    """Expire or complete every sent quote request whose deadline has passed."""
    now = now or utcnow()
    result = await db.execute(
        select(QuoteRequest).where(
            QuoteRequest.status == SENT,
            QuoteRequest.deadline < now,
        )
    )
    overdue = result.scalars().all()

    counts = {EXPIRED: 0, COMPLETED: 0, "skipped": 0}
    for quote_request in overdue:
        try:
            outcome = await reconcile_quote_request(db, quote_request, now)
        except InvalidTransition:
            # Moved by a concurrent owner action or sweep.
            logger.info("quote_request_reconcile_skipped", quote_request_id=str(quote_request.id))
            outcome = None
        counts[outcome or "skipped"] += 1

    logger.info(
        "quote_request_reconcile_complete",
        checked=len(overdue),
        expired=counts[EXPIRED],
        completed=counts[COMPLETED],
        skipped=counts["skipped"],
    )
    return {"checked": len(overdue), **counts}


@router.post("/reconcile-quote-requests")
async def reconcile_quote_requests(
    db: AsyncSession = Depends(get_db),
    _auth: None = Depends(_require_internal_auth),
):
    return await reconcile_overdue_quote_requests(db)
