"""Data models for AI credits and custom project quotas."""

from .credits import (
    LedgerAction,
    AdminAction,
    ChatMode,
    LedgerEntry,
    CreditAccount,
    CreditInfo,
    ConsumeResult,
    ConsumeRequest,
    AdminAdjustRequest,
    DefaultPolicy,
    DefaultPolicyUpdate,
)
from .quota import (
    QuotaStatus,
    QuotaRequest,
    QuotaSummary,
    PendingQuotaRequest,
    QuotaRequestCreate,
    QuotaDecision,
)

__all__ = [
    "LedgerAction",
    "AdminAction",
    "ChatMode",
    "LedgerEntry",
    "CreditAccount",
    "CreditInfo",
    "ConsumeResult",
    "ConsumeRequest",
    "AdminAdjustRequest",
    "DefaultPolicy",
    "DefaultPolicyUpdate",
    "QuotaStatus",
    "QuotaRequest",
    "QuotaSummary",
    "PendingQuotaRequest",
    "QuotaRequestCreate",
    "QuotaDecision",
]
