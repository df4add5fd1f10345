from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

# Column widths: Integer for counts and days, BigInteger for cents.
MAX_INT = 2_147_483_647
MAX_CENTS = 2**63 - 1


class AttachmentPayload(BaseModel):
    filename: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=2000)
    size: int = Field(..., gt=0, strict=True)
    mime_type: str = Field(
        ..., min_length=1, max_length=255,
        validation_alias=AliasChoices("mime_type", "type"),
    )

    @field_validator("url")
    @classmethod
    def url_has_scheme(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v


class LineItemPayload(BaseModel):
    item: str = Field(
        ..., max_length=255, validation_alias=AliasChoices("item", "description")
    )
    quantity: int = Field(..., gt=0, le=MAX_INT, strict=True)
    unit_price_cents: int = Field(..., gt=0, le=MAX_CENTS, strict=True)
    total_cents: int = Field(..., gt=0, le=MAX_CENTS, strict=True)
    specifications: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("item")
    @classmethod
    def item_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Item name is required")
        return v.strip()


class ResponsePayload(BaseModel):
    """Supplier submission as received from the request layer."""

    line_items: List[LineItemPayload] = Field(..., min_length=1)
    total_price_cents: int = Field(..., gt=0, le=MAX_CENTS, strict=True)
    delivery_time_days: int = Field(..., gt=0, le=MAX_INT, strict=True)
    notes: Optional[str] = Field(None, max_length=2000)
    attachments: List[AttachmentPayload] = Field(default_factory=list)
    expires_at: Optional[datetime] = None


class DeclineRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class LineItemResponse(BaseModel):
    line_number: int
    item: str
    quantity: int
    unit_price_cents: int
    total_cents: int
    specifications: Optional[str] = None
    notes: Optional[str] = None

    model_config = {"from_attributes": True}


class AttachmentResponse(BaseModel):
    filename: str
    url: str
    size: int
    mime_type: str


class PricingSummaryOut(BaseModel):
    total_cents: int
    item_count: int
    average_unit_price_cents: int

    model_config = {"from_attributes": True}


class SupplierResponseOut(BaseModel):
    id: str
    quote_request_id: str
    supplier_id: str
    supplier_name: str
    status: str
    total_price_cents: Optional[int] = None
    delivery_time_days: Optional[int] = None
    notes: Optional[str] = None
    attachments: List[AttachmentResponse] = []
    line_items: List[LineItemResponse] = []
    pricing: Optional[PricingSummaryOut] = None
    submitted_at: Optional[str] = None
    expires_at: Optional[str] = None
    created_at: str
    updated_at: str


class ResponseSummaryOut(BaseModel):
    total_invited: int
    total_responses: int
    submitted_count: int
    declined_count: int
    pending_count: int
    lowest_price: Optional[int] = None
    highest_price: Optional[int] = None
    average_price: Optional[int] = None
    fastest_delivery: Optional[int] = None
    slowest_delivery: Optional[int] = None
    average_delivery: Optional[int] = None
    response_rate: int


class ResponseListOut(BaseModel):
    data: List[SupplierResponseOut]
    summary: ResponseSummaryOut
