"""Pydantic models for custom project quotas."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class QuotaStatus(str, Enum):
    """Lifecycle of a quota request; approved and rejected are terminal."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class QuotaRequest(BaseModel):
    """A request for one additional custom project slot."""
    request_id: str = Field(..., validation_alias=AliasChoices("request_id", "id"))
    user_id: str
    reason: str
    payment_amount: float
    request_date: datetime
    status: QuotaStatus
    admin_note: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class QuotaSummary(BaseModel):
    """A user's custom project allotment."""
    user_id: str
    allowed: int = Field(..., ge=0)
    used: int = Field(..., ge=0)
    remaining: int
    can_create: bool
    pending_requests: int = 0
    total_approved: int = 0


class PendingQuotaRequest(BaseModel):
    """Pending request as listed in the admin console."""
    request: QuotaRequest
    allowed: int
    used: int


class QuotaRequestCreate(BaseModel):
    """Request body for asking for an additional project slot."""
    reason: Optional[str] = Field(default=None, max_length=2000)
    payment_amount: Optional[float] = None


class QuotaDecision(BaseModel):
    """Request body for approving or rejecting a quota request."""
    admin_note: Optional[str] = Field(default=None, max_length=2000)
