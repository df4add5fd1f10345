"""Display formatting for reports: money, delivery time, dates and status labels."""

import re
from datetime import datetime
from typing import Optional

NOT_AVAILABLE = "N/A"

QUOTE_REQUEST_STATUS_LABELS = {
    "draft": "Draft",
    "sent": "Sent",
    "expired": "Expired",
    "completed": "Completed",
}

RESPONSE_STATUS_LABELS = {
    "pending": "Pending",
    "submitted": "Submitted",
    "declined": "Declined",
    "expired": "Expired",
}


def format_price_cents(price_cents: Optional[int]) -> str:
    """150000 → "$1,500.00"."""
    if price_cents is None:
        return NOT_AVAILABLE
    sign = "-" if price_cents < 0 else ""
    dollars, cents = divmod(abs(price_cents), 100)
    return f"{sign}${dollars:,}.{cents:02d}"


def _unit(count: int, singular: str) -> str:
    return f"1 {singular}" if count == 1 else f"{count} {singular}s"


def format_delivery_time(days: Optional[int]) -> str:
    """Days below a week, weeks (+days) below 30, months (+days) beyond."""
    if days is None:
        return NOT_AVAILABLE
    if days < 7:
        return _unit(days, "day")
    if days < 30:
        weeks, remaining = divmod(days, 7)
        return _unit(weeks, "week") if remaining == 0 else f"{weeks}w {remaining}d"
    months, remaining = divmod(days, 30)
    return _unit(months, "month") if remaining == 0 else f"{months}m {remaining}d"


def format_date(value: Optional[datetime]) -> str:
    """US locale short date, e.g. 1/10/2025."""
    if value is None:
        return ""
    return f"{value.month}/{value.day}/{value.year}"


def quote_request_status_label(status: str) -> str:
    return QUOTE_REQUEST_STATUS_LABELS.get(status.lower(), status)


def response_status_label(status: str) -> str:
    return RESPONSE_STATUS_LABELS.get(status.lower(), status)


def generate_download_filename(report_type: str, title: str, extension: str, now: datetime) -> str:
    slug = re.sub(r"[^a-z0-9]", "-", title.lower())
    slug = re.sub(r"-+", "-", slug).strip("-")
    return f"{report_type}-{slug}-{now.strftime('%Y-%m-%d')}.{extension}"
