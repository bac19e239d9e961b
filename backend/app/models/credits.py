"""Pydantic models for the AI credit system."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class LedgerAction(str, Enum):
    """Kinds of ledger entries."""
    USE = "use"  # Credit consumption by chat
    RESET = "reset"  # Daily or admin-forced reset to the daily limit
    ADMIN_ADD = "admin_add"
    ADMIN_DEDUCT = "admin_deduct"
    ADMIN_SET = "admin_set"
    PREMIUM_ON = "premium_on"
    PREMIUM_OFF = "premium_off"


class AdminAction(str, Enum):
    """Balance adjustments an admin can apply."""
    ADD = "add"
    DEDUCT = "deduct"
    SET = "set"


class ChatMode(str, Enum):
    """AI chat modes; the mode decides the message's credit cost."""
    GENERAL = "general"
    CODING = "coding"
    CREATIVE = "creative"


class LedgerEntry(BaseModel):
    """A single immutable ledger entry."""
    action: LedgerAction
    amount: float = Field(..., description="Signed delta applied to credits")
    resulting_balance: float = Field(..., description="Balance after the entry was applied")
    message: Optional[str] = None
    timestamp: datetime = Field(..., validation_alias=AliasChoices("timestamp", "created_at"))

    model_config = ConfigDict(from_attributes=True)


class CreditAccount(BaseModel):
    """A user's credit account."""
    user_id: str
    credits: float = Field(..., ge=0)
    daily_limit: int = Field(..., ge=0)
    is_premium: bool = False
    total_used: float = Field(default=0, ge=0, description="Total credits ever consumed")
    last_reset_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CreditInfo(BaseModel):
    """Credit info shown to the account owner."""
    credits: float = Field(..., description="Current balance, -1 when unlimited")
    daily_limit: int
    is_premium: bool
    total_used: float
    last_reset_at: datetime

    @classmethod
    def from_account(cls, account: Any) -> "CreditInfo":
        return cls(
            credits=-1 if account.is_premium else account.credits,
            daily_limit=account.daily_limit,
            is_premium=account.is_premium,
            total_used=account.total_used,
            last_reset_at=account.last_reset_at,
        )


class ConsumeResult(BaseModel):
    """Outcome of a successful credit consumption."""
    user_id: str
    cost: float = Field(..., ge=0)
    credits: float = Field(..., description="Balance after the charge (unchanged when unlimited)")
    total_used: float
    unlimited: bool = False


class ConsumeRequest(BaseModel):
    """Request body for authorizing one chat message."""
    message: str = Field(..., min_length=1, max_length=20_000)
    mode: ChatMode = ChatMode.GENERAL


class AdminAdjustRequest(BaseModel):
    """
    Request body for an admin credit update.

    Values are validated by the ledger service, not here.
    """
    action: Optional[str] = Field(default=None, description="add, deduct or set")
    amount: Any = None
    daily_limit: Any = None


class DefaultPolicy(BaseModel):
    """Defaults applied to newly created credit accounts."""
    default_credits: int = Field(..., ge=0)
    default_daily_limit: int = Field(..., ge=0)

    model_config = ConfigDict(from_attributes=True)


class DefaultPolicyUpdate(BaseModel):
    """Request body for updating the default policy; omitted fields are kept."""
    default_credits: Any = None
    default_daily_limit: Any = None
