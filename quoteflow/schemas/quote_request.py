from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from quoteflow.schemas.supplier_response import AttachmentPayload


class QuoteRequestCreate(BaseModel):
    opportunity_id: str
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    deadline: datetime
    requirements: Optional[Any] = None
    attachments: List[AttachmentPayload] = Field(default_factory=list)
    ai_generated: bool = False
    ai_prompt: Optional[str] = None


class QuoteRequestUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    deadline: Optional[datetime] = None
    requirements: Optional[Any] = None
    attachments: Optional[List[AttachmentPayload]] = None


class QuoteRequestResponse(BaseModel):
    id: str
    user_id: str
    opportunity_id: str
    title: str
    description: Optional[str] = None
    status: str
    persisted_status: str
    deadline: str
    requirements: Optional[Any] = None
    attachments: List[Any] = []
    ai_generated: bool
    invited_count: int = 0
    created_at: str
    updated_at: str


class InviteSuppliersRequest(BaseModel):
    supplier_ids: List[str] = Field(..., min_length=1)
    notification_method: str = Field("email", pattern="^(email|platform|manual)$")


class InvitationResponse(BaseModel):
    id: str
    quote_request_id: str
    supplier_id: str
    supplier_name: str
    invited_at: str
    notification_sent: bool
    notification_method: Optional[str] = None
