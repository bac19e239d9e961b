"""Shared service dependencies for the API routers."""

from functools import lru_cache

from ..core.ledger import CreditLedgerService
from ..core.quota import QuotaWorkflowService
from ..db.database import async_session


@lru_cache
def get_credit_ledger() -> CreditLedgerService:
    """Process-wide ledger service, so every request shares the same per-user locks."""
    return CreditLedgerService(async_session)


@lru_cache
def get_quota_workflow() -> QuotaWorkflowService:
    """Process-wide quota workflow service."""
    return QuotaWorkflowService(async_session)
