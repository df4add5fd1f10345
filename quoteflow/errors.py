"""
Domain errors raised by the quote request engine.

Every error carries a stable ``code``, an HTTP status for the request layer
and optional structured ``details``. ``main.py`` renders them with the same
``{"error": {...}}`` envelope used for HTTPException.
"""

from typing import Any, Optional


class QuoteFlowError(Exception):
    default_code = "QUOTEFLOW_ERROR"
    default_message = "The operation could not be completed"
    http_status = 400

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        code: Optional[str] = None,
    ) -> None:
        self.code = code or self.default_code
        self.message = message or self.default_message
        self.details = dict(details or {})
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return {"error": body}


class NotFound(QuoteFlowError):
    default_code = "NOT_FOUND"
    default_message = "Resource not found"
    http_status = 404


class Forbidden(QuoteFlowError):
    default_code = "FORBIDDEN"
    default_message = "You do not have access to this quote request"
    http_status = 403


class InvalidTransition(QuoteFlowError):
    default_code = "INVALID_TRANSITION"
    default_message = "Invalid status transition"
    http_status = 409

    def __init__(
        self,
        from_status: str,
        to_status: str,
        message: Optional[str] = None,
    ) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message or f"Cannot move quote request from '{from_status}' to '{to_status}'",
            details={"from": from_status, "to": to_status},
        )


class DuplicateInvitation(QuoteFlowError):
    default_code = "DUPLICATE_INVITATION"
    default_message = "Supplier already invited to this quote request"
    http_status = 409

    def __init__(self, quote_request_id: str, supplier_id: str) -> None:
        super().__init__(
            details={"quote_request_id": str(quote_request_id), "supplier_id": str(supplier_id)}
        )


class DuplicateResponse(QuoteFlowError):
    default_code = "DUPLICATE_RESPONSE"
    default_message = "Supplier has already responded to this quote request"
    http_status = 409

    def __init__(self, quote_request_id: str, supplier_id: str) -> None:
        super().__init__(
            details={"quote_request_id": str(quote_request_id), "supplier_id": str(supplier_id)}
        )


class NotAcceptingResponses(QuoteFlowError):
    default_code = "NOT_ACCEPTING_RESPONSES"
    default_message = "Quote request is not accepting responses"
    http_status = 409


class NotInvited(QuoteFlowError):
    default_code = "NOT_INVITED"
    default_message = "Supplier not invited to this quote request"
    http_status = 403


class MalformedPayload(QuoteFlowError):
    default_code = "MALFORMED_PAYLOAD"
    default_message = "Invalid request data"
    http_status = 422

    def __init__(self, errors: list[dict[str, str]], message: Optional[str] = None) -> None:
        self.errors = list(errors)
        super().__init__(message, details={"errors": self.errors})


class LineItemMismatch(QuoteFlowError):
    default_code = "LINE_ITEM_MISMATCH"
    http_status = 422

    def __init__(self, item: str, expected: int, actual: int) -> None:
        self.item = item
        self.expected = expected
        self.actual = actual
        super().__init__(
            f'Line item total mismatch for "{item}"',
            details={"item": item, "expected": expected, "actual": actual},
        )


class TotalPriceMismatch(QuoteFlowError):
    default_code = "TOTAL_PRICE_MISMATCH"
    default_message = "Total price does not match sum of line items"
    http_status = 422

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(details={"expected": expected, "actual": actual})
