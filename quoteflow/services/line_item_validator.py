# quoteflow/services/line_item_validator.py
"""
Line item validation for supplier submissions.

Rules:
  1. Payload shape: at least one line item, positive integer quantities,
     prices and delivery days. Every field error is reported at once.
  2. Line arithmetic: quantity * unit_price_cents == total_cents, exact.
  3. Quote arithmetic: sum(total_cents) == total_price_cents, exact.

Money is integer cents end to end; there is no rounding tolerance.
"""

from dataclasses import dataclass
from typing import Any, Sequence

from pydantic import ValidationError
import structlog

from quoteflow.errors import LineItemMismatch, MalformedPayload, TotalPriceMismatch
from quoteflow.schemas.supplier_response import MAX_CENTS, LineItemPayload, ResponsePayload

logger = structlog.get_logger()


@dataclass
class PricingSummary:
    total_cents: int
    item_count: int
    average_unit_price_cents: int


def _field_path(loc: Sequence[Any]) -> str:
    return ".".join(str(part) for part in loc) or "body"


def validate_payload(payload: Any) -> ResponsePayload:
    """Parse a raw submission, raising MalformedPayload with all field errors."""
    if not isinstance(payload, dict):
        raise MalformedPayload(
            [{"field": "body", "message": "Payload must be an object"}]
        )
    try:
        return ResponsePayload.model_validate(payload)
    except ValidationError as exc:
        errors = [
            {"field": _field_path(err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        logger.info("response_payload_malformed", error_count=len(errors))
        raise MalformedPayload(errors) from exc


def check_line_item(item: LineItemPayload, index: int = 0) -> None:
    expected = item.quantity * item.unit_price_cents
    if expected > MAX_CENTS:
        raise MalformedPayload(
            [{
                "field": f"line_items.{index}",
                "message": "Quantity times unit price exceeds the largest storable amount",
            }]
        )
    if item.total_cents != expected:
        raise LineItemMismatch(item=item.item, expected=expected, actual=item.total_cents)


def check_arithmetic(payload: ResponsePayload) -> int:
    """Verify every line total and the quote total. Returns the computed total."""
    computed_total = 0
    for index, item in enumerate(payload.line_items):
        check_line_item(item, index)
        computed_total += item.total_cents

    if computed_total != payload.total_price_cents:
        raise TotalPriceMismatch(expected=computed_total, actual=payload.total_price_cents)
    return computed_total


def pricing_summary(line_items: Sequence) -> PricingSummary:
    """Totals for payload or stored line items (anything with quantity and total_cents)."""
    if not line_items:
        return PricingSummary(total_cents=0, item_count=0, average_unit_price_cents=0)

    total_cents = sum(item.total_cents for item in line_items)
    total_quantity = sum(item.quantity for item in line_items)
    average = (2 * total_cents + total_quantity) // (2 * total_quantity)
    return PricingSummary(
        total_cents=total_cents,
        item_count=len(line_items),
        average_unit_price_cents=average,
    )
