"""Admin API routes for AI credit and project quota management."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from .deps import get_credit_ledger, get_quota_workflow
from ..core.auth import get_admin_user
from ..core.ledger import CreditLedgerService
from ..core.quota import QuotaWorkflowService
from ..core.security import limiter
from ..db.models import UserModel
from ..models.credits import (
    AdminAdjustRequest,
    CreditAccount,
    DefaultPolicy,
    DefaultPolicyUpdate,
    LedgerEntry,
)
from ..models.quota import QuotaDecision, QuotaRequest

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)


# ============ AI Credit Endpoints ============


@router.get("/credits")
@limiter.limit("60/minute")
async def list_user_credits(
    request: Request,
    limit: int = Query(default=20, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    admin: UserModel = Depends(get_admin_user),
    ledger: CreditLedgerService = Depends(get_credit_ledger),
) -> dict:
    """
    List credit accounts, newest first.

    Admin access required.
    """
    accounts, total = await ledger.list_accounts(limit=limit, offset=offset)
    return {
        "accounts": [CreditAccount.model_validate(a) for a in accounts],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


# Registered before the /{user_id} routes so "defaults" is not taken as a user ID


@router.get("/credits/defaults", response_model=DefaultPolicy)
@limiter.limit("60/minute")
async def get_default_credit_settings(
    request: Request,
    admin: UserModel = Depends(get_admin_user),
    ledger: CreditLedgerService = Depends(get_credit_ledger),
) -> DefaultPolicy:
    """Get the credits and daily limit given to new accounts."""
    return DefaultPolicy.model_validate(await ledger.get_default_policy())


@router.put("/credits/defaults", response_model=DefaultPolicy)
@limiter.limit("10/minute")
async def update_default_credit_settings(
    request: Request,
    body: DefaultPolicyUpdate,
    admin: UserModel = Depends(get_admin_user),
    ledger: CreditLedgerService = Depends(get_credit_ledger),
) -> DefaultPolicy:
    """
    Update the defaults for accounts created from now on.

    Existing accounts keep their balance and daily limit.
    """
    policy = await ledger.update_default_policy(
        default_credits=body.default_credits,
        default_daily_limit=body.default_daily_limit,
        admin_id=admin.id,
    )
    logger.info(f"Admin {admin.email} updated default credit settings")
    return DefaultPolicy.model_validate(policy)


@router.post("/credits/reset-all")
@limiter.limit("5/minute")
async def reset_all_daily_credits(
    request: Request,
    admin: UserModel = Depends(get_admin_user),
    ledger: CreditLedgerService = Depends(get_credit_ledger),
) -> dict:
    """Force a reset of every non-premium account to its daily limit."""
    count = await ledger.reset_all()
    logger.info(f"Admin {admin.email} reset credits for {count} account(s)")
    return {"status": "success", "reset_count": count}


@router.put("/credits/{user_id}", response_model=CreditAccount)
@limiter.limit("30/minute")
async def update_user_credits(
    request: Request,
    user_id: str,
    body: AdminAdjustRequest,
    admin: UserModel = Depends(get_admin_user),
    ledger: CreditLedgerService = Depends(get_credit_ledger),
) -> CreditAccount:
    """
    Adjust a user's credits and/or daily limit.

    ``action`` is one of add, deduct, set and applies ``amount``. The balance
    and the daily limit change together or not at all.
    """
    account = await ledger.update_account(
        user_id,
        action=body.action,
        amount=body.amount,
        daily_limit=body.daily_limit,
        admin_id=admin.id,
    )
    logger.info(f"Admin {admin.email} updated credits for user {user_id}")
    return CreditAccount.model_validate(account)


@router.post("/credits/{user_id}/premium", response_model=CreditAccount)
@limiter.limit("30/minute")
async def toggle_user_premium(
    request: Request,
    user_id: str,
    admin: UserModel = Depends(get_admin_user),
    ledger: CreditLedgerService = Depends(get_credit_ledger),
) -> CreditAccount:
    """Switch a user between unlimited (premium) and metered credits."""
    account = await ledger.toggle_premium(user_id, admin_id=admin.id)
    return CreditAccount.model_validate(account)


@router.get("/credits/{user_id}/history")
@limiter.limit("60/minute")
async def get_user_credit_history(
    request: Request,
    user_id: str,
    admin: UserModel = Depends(get_admin_user),
    ledger: CreditLedgerService = Depends(get_credit_ledger),
) -> dict:
    """Get a user's full ledger history, newest first."""
    account = await ledger.find_account(user_id)
    entries = await ledger.get_history(user_id)
    return {
        "user_id": user_id,
        "account": CreditAccount.model_validate(account) if account else None,
        "history": [LedgerEntry.model_validate(e) for e in reversed(entries)],
    }


# ============ Quota Request Endpoints ============


@router.get("/quota-requests")
@limiter.limit("60/minute")
async def list_quota_requests(
    request: Request,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    admin: UserModel = Depends(get_admin_user),
    workflow: QuotaWorkflowService = Depends(get_quota_workflow),
) -> dict:
    """List pending quota requests with each user's current allotment."""
    pending = await workflow.list_pending_requests(limit=limit, offset=offset)
    return {"requests": pending, "count": len(pending)}


@router.put("/quota-requests/{request_id}/approve", response_model=QuotaRequest)
@limiter.limit("30/minute")
async def approve_quota_request(
    request: Request,
    request_id: str,
    body: Optional[QuotaDecision] = None,
    admin: UserModel = Depends(get_admin_user),
    workflow: QuotaWorkflowService = Depends(get_quota_workflow),
) -> QuotaRequest:
    """Approve a request; the user can then create one more custom project."""
    note = body.admin_note if body else None
    return await workflow.approve(request_id, admin_note=note, admin_id=admin.id)


@router.put("/quota-requests/{request_id}/reject", response_model=QuotaRequest)
@limiter.limit("30/minute")
async def reject_quota_request(
    request: Request,
    request_id: str,
    body: QuotaDecision,
    admin: UserModel = Depends(get_admin_user),
    workflow: QuotaWorkflowService = Depends(get_quota_workflow),
) -> QuotaRequest:
    """Reject a request. A note explaining the decision is required."""
    return await workflow.reject(request_id, admin_note=body.admin_note, admin_id=admin.id)
