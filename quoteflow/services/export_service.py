# quoteflow/services/export_service.py
"""
Report exports for a quote request.

Report types (rows built from the current snapshot):
  - quote-request: one row describing the request itself
  - responses:     one row per supplier response, optional line item column
  - analysis:      metric/value table from the response summary

Encodings:
  - structured:     the ExportTable as-is (JSON)
  - delimited-text: CSV, header line first. Fields containing the separator,
                    a quote or a line break are quoted with inner quotes
                    doubled, so decode_delimited() reproduces every value.
"""

import csv
import io
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from quoteflow.database import utcnow
from quoteflow.errors import MalformedPayload
from quoteflow.models.opportunity import Opportunity
from quoteflow.models.quote_request import QuoteRequest
from quoteflow.schemas.export import ExportTable
from quoteflow.services.aggregation_service import ResponseSummary, summarize_responses
from quoteflow.services.formatting import (
    format_date,
    format_delivery_time,
    format_price_cents,
    generate_download_filename,
    quote_request_status_label,
    response_status_label,
)
from quoteflow.services.quote_request_service import (
    count_invitations,
    get_opportunity,
    get_owned_quote_request,
    status_of,
)
from quoteflow.services.response_service import ResponseRecord, list_responses
from quoteflow.services.supplier_directory import display_name, resolve_supplier_names

logger = structlog.get_logger()

REPORT_TYPES = ("quote-request", "responses", "analysis")

FORMATS = {
    "structured": ("json", "application/json"),
    "delimited-text": ("csv", "text/csv"),
}

FIELD_SEPARATOR = ","
LINE_TERMINATOR = "\n"


@dataclass
class ExportResult:
    filename: str
    media_type: str
    content: Union[dict, str]


def _timestamp(now: datetime) -> str:
    return now.replace(tzinfo=timezone.utc).isoformat()


def _make_table(headers: list[str], rows: list[list[Any]], title: str, now: datetime) -> ExportTable:
    return ExportTable(headers=headers, rows=rows, title=title, timestamp=_timestamp(now))


# ---------- report builders ----------


def build_quote_request_report(
    quote_request: QuoteRequest,
    opportunity: Optional[Opportunity],
    invited_count: int,
    now: datetime,
) -> ExportTable:
    headers = [
        "Quote Request ID",
        "Title",
        "Description",
        "Status",
        "Opportunity ID",
        "Opportunity Title",
        "Department",
        "Deadline",
        "Suppliers Invited",
        "AI Generated",
        "Created At",
        "Updated At",
    ]
    row = [
        str(quote_request.id),
        quote_request.title,
        quote_request.description or "",
        quote_request_status_label(status_of(quote_request, now)),
        str(quote_request.opportunity_id),
        opportunity.title if opportunity else "",
        opportunity.department if opportunity else "",
        format_date(quote_request.deadline),
        invited_count,
        "Yes" if quote_request.ai_generated else "No",
        format_date(quote_request.created_at),
        format_date(quote_request.updated_at),
    ]
    return _make_table(headers, [row], f"Quote Request: {quote_request.title}", now)


def format_line_items(line_items: Sequence) -> str:
    return "; ".join(
        f"{li.item} ({li.quantity}x {format_price_cents(li.unit_price_cents)})"
        for li in line_items
    )


def build_responses_report(
    quote_request: QuoteRequest,
    records: Sequence[ResponseRecord],
    supplier_names: dict[str, str],
    include_line_items: bool,
    now: datetime,
) -> ExportTable:
    headers = [
        "Response ID",
        "Supplier Name",
        "Status",
        "Total Price",
        "Delivery Time",
        "Submitted At",
        "Notes",
    ]
    if include_line_items:
        headers.append("Line Items")

    rows = []
    for record in records:
        r = record.response
        row = [
            str(r.id),
            display_name(supplier_names, r.supplier_id),
            response_status_label(r.status),
            format_price_cents(r.total_price_cents),
            format_delivery_time(r.delivery_time_days),
            format_date(r.submitted_at) if r.submitted_at else "Not submitted",
            r.notes or "",
        ]
        if include_line_items:
            row.append(format_line_items(record.line_items))
        rows.append(row)

    return _make_table(headers, rows, f"Responses for: {quote_request.title}", now)


def build_analysis_report(
    quote_request: QuoteRequest,
    summary: ResponseSummary,
    now: datetime,
) -> ExportTable:
    rows: list[list[Any]] = [
        ["Quote Request Title", quote_request.title],
        ["Total Suppliers Invited", summary.total_invited],
        ["Total Responses", summary.total_responses],
        ["Submitted Responses", summary.submitted_count],
        ["Declined Responses", summary.declined_count],
        ["Pending Responses", summary.pending_count],
        ["Response Rate", f"{summary.response_rate}%"],
    ]
    if summary.submitted_count > 0:
        rows.extend([
            ["Lowest Price", format_price_cents(summary.lowest_price)],
            ["Highest Price", format_price_cents(summary.highest_price)],
            ["Average Price", format_price_cents(summary.average_price)],
            ["Fastest Delivery", format_delivery_time(summary.fastest_delivery)],
            ["Slowest Delivery", format_delivery_time(summary.slowest_delivery)],
            ["Average Delivery", format_delivery_time(summary.average_delivery)],
        ])
    return _make_table(["Metric", "Value"], rows, f"Analysis for: {quote_request.title}", now)


# ---------- encodings ----------


def _cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def encode_structured(table: ExportTable) -> dict:
    return table.model_dump()


def encode_delimited(table: ExportTable) -> str:
    output = io.StringIO()
    writer = csv.writer(
        output,
        delimiter=FIELD_SEPARATOR,
        quotechar='"',
        quoting=csv.QUOTE_MINIMAL,
        lineterminator=LINE_TERMINATOR,
    )
    writer.writerow([_cell(h) for h in table.headers])
    for row in table.rows:
        writer.writerow([_cell(v) for v in row])
    return output.getvalue()


def decode_delimited(text: str) -> list[list[str]]:
    reader = csv.reader(io.StringIO(text), delimiter=FIELD_SEPARATOR, quotechar='"')
    return [row for row in reader]


def encode(table: ExportTable, fmt: str) -> Union[dict, str]:
    if fmt == "structured":
        return encode_structured(table)
    return encode_delimited(table)


# ---------- entry point ----------


def validate_selectors(report_type: str, fmt: str) -> None:
    errors = []
    if report_type not in REPORT_TYPES:
        errors.append({"field": "type", "message": f"Must be one of {REPORT_TYPES}"})
    if fmt not in FORMATS:
        errors.append({"field": "format", "message": f"Must be one of {tuple(FORMATS)}"})
    if errors:
        raise MalformedPayload(errors, message="Invalid export parameters")


async def export_quote_request(
    session: AsyncSession,
    quote_request_id,
    user_id,
    report_type: str = "quote-request",
    fmt: str = "delimited-text",
    include_line_items: bool = False,
    now: Optional[datetime] = None,
) -> ExportResult:
    now = now or utcnow()
    validate_selectors(report_type, fmt)
    quote_request = await get_owned_quote_request(session, quote_request_id, user_id)
    invited_count = await count_invitations(session, quote_request.id)

    if report_type == "quote-request":
        opportunity = await get_opportunity(session, quote_request.opportunity_id)
        table = build_quote_request_report(quote_request, opportunity, invited_count, now)
    else:
        records = await list_responses(session, quote_request.id)
        if report_type == "responses":
            names = await resolve_supplier_names(
                session, {r.response.supplier_id for r in records}
            )
            table = build_responses_report(
                quote_request, records, names, include_line_items, now
            )
        else:
            summary = summarize_responses(invited_count, [r.response for r in records])
            table = build_analysis_report(quote_request, summary, now)

    extension, media_type = FORMATS[fmt]
    logger.info(
        "quote_request_exported",
        quote_request_id=str(quote_request.id),
        report_type=report_type,
        format=fmt,
        row_count=len(table.rows),
    )
    return ExportResult(
        filename=generate_download_filename(report_type, quote_request.title, extension, now),
        media_type=media_type,
        content=encode(table, fmt),
    )
