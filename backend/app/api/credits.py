"""User-facing AI credit routes."""

import logging

from fastapi import APIRouter, Depends, Request

from .deps import get_credit_ledger
from ..core.auth import get_current_user
from ..core.credits import calculate_credit_cost
from ..core.ledger import CreditLedgerService
from ..core.security import limiter
from ..db.models import UserModel
from ..models.credits import ConsumeRequest, ConsumeResult, CreditInfo, LedgerEntry

router = APIRouter(prefix="/credits", tags=["credits"])
logger = logging.getLogger(__name__)


@router.get("", response_model=CreditInfo)
@limiter.limit("120/minute")
async def get_credit_info(
    request: Request,
    user: UserModel = Depends(get_current_user),
    ledger: CreditLedgerService = Depends(get_credit_ledger),
) -> CreditInfo:
    """
    Get the current user's credit balance.

    ``credits`` is -1 for premium (unlimited) accounts.
    """
    account = await ledger.get_account(user.id)
    return CreditInfo.from_account(account)


@router.get("/history")
@limiter.limit("60/minute")
async def get_credit_history(
    request: Request,
    user: UserModel = Depends(get_current_user),
    ledger: CreditLedgerService = Depends(get_credit_ledger),
) -> dict:
    """Get the current user's most recent ledger entries, newest first."""
    entries = await ledger.get_history(user.id, limit=ledger.settings.history_page_size)
    return {
        "history": [LedgerEntry.model_validate(e) for e in reversed(entries)],
    }


@router.post("/consume", response_model=ConsumeResult)
@limiter.limit("60/minute")
async def consume_credits(
    request: Request,
    body: ConsumeRequest,
    user: UserModel = Depends(get_current_user),
    ledger: CreditLedgerService = Depends(get_credit_ledger),
) -> ConsumeResult:
    """
    Charge the credits for one chat message before it is sent to the model.

    Responds 402 when the balance does not cover the message; the caller
    must not forward the prompt in that case.
    """
    cost = calculate_credit_cost(body.message, body.mode.value)
    return await ledger.consume(user.id, cost, note=f"Used {cost:g} credits for AI chat ({body.mode.value})")
