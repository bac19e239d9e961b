"""User-facing custom project quota routes."""

import logging

from fastapi import APIRouter, Depends, Request

from .deps import get_quota_workflow
from ..core.auth import get_current_user
from ..core.quota import QuotaWorkflowService
from ..core.security import limiter
from ..db.models import UserModel
from ..models.quota import QuotaRequestCreate, QuotaSummary

router = APIRouter(prefix="/quota", tags=["quota"])
logger = logging.getLogger(__name__)


@router.get("", response_model=QuotaSummary)
@limiter.limit("60/minute")
async def get_quota(
    request: Request,
    user: UserModel = Depends(get_current_user),
    workflow: QuotaWorkflowService = Depends(get_quota_workflow),
) -> QuotaSummary:
    """Get the current user's custom project allotment."""
    return await workflow.get_quota(user.id)


@router.post("/consume", response_model=QuotaSummary)
@limiter.limit("30/minute")
async def consume_project_slot(
    request: Request,
    user: UserModel = Depends(get_current_user),
    workflow: QuotaWorkflowService = Depends(get_quota_workflow),
) -> QuotaSummary:
    """
    Reserve a slot before a custom project is created.

    Responds 403 when no slot is left; the project must not be created.
    """
    await workflow.consume_project_slot(user.id)
    return await workflow.get_quota(user.id)


@router.get("/requests")
@limiter.limit("60/minute")
async def list_my_requests(
    request: Request,
    user: UserModel = Depends(get_current_user),
    workflow: QuotaWorkflowService = Depends(get_quota_workflow),
) -> dict:
    """List the current user's quota requests, oldest first."""
    return {"requests": await workflow.list_requests(user.id)}


@router.post("/requests", status_code=201)
@limiter.limit("10/minute")
async def request_additional_project(
    request: Request,
    body: QuotaRequestCreate,
    user: UserModel = Depends(get_current_user),
    workflow: QuotaWorkflowService = Depends(get_quota_workflow),
) -> dict:
    """
    Ask for one more custom project slot.

    This is a paid feature; the admin approves it once payment is confirmed.
    """
    quota_request = await workflow.request_additional_quota(
        user.id,
        reason=body.reason,
        payment_amount=body.payment_amount,
    )
    return {
        "request": quota_request,
        "payment_info": {
            "amount": quota_request.payment_amount,
            "currency": workflow.settings.quota_request_currency,
            "status": "pending_admin_approval",
        },
    }
