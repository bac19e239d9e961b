"""Custom project quota workflow.

Users get a fixed number of AI-guided custom project slots. Once all are
used they may ask for one more; an admin approves (granting the slot) or
rejects the request. Payment for the extra slot is collected out of band.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings, get_settings
from .credits import is_valid_amount
from .exceptions import (
    DuplicatePendingRequest,
    InvalidAmount,
    QuotaExceeded,
    QuotaNotExhausted,
    ReasonRequired,
    RequestNotFound,
    RequestNotPending,
)
from .locks import KeyedLock, SerializedWriter
from ..db.models import ProjectQuotaModel, QuotaRequestModel, utc_now
from ..db.repository import QuotaRepository
from ..models.quota import PendingQuotaRequest, QuotaRequest, QuotaStatus, QuotaSummary

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_REASON = "Request for additional custom project"
DEFAULT_APPROVAL_NOTE = "Approved after payment confirmation"


class QuotaWorkflowService(SerializedWriter):
    """
    Quota request state machine and slot accounting.

    Mutations are serialized per owning user. Approving a request flips
    its status and grants the slot in one transaction.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
        locks: Optional[KeyedLock] = None,
    ):
        self.settings = settings or get_settings()
        self._clock = clock
        super().__init__(session_factory, self.settings.ledger_max_retries, locks)

    async def _load_quota(self, db: AsyncSession, user_id: str, now: datetime) -> ProjectQuotaModel:
        return await QuotaRepository(db).get_or_create_quota(
            user_id, self.settings.default_project_quota, now
        )

    # ============ Slots ============

    async def consume_project_slot(self, user_id: str) -> ProjectQuotaModel:
        """
        Use one custom project slot.

        Raises:
            QuotaExceeded: every allowed slot is already used
        """
        async def operation(db: AsyncSession) -> ProjectQuotaModel:
            now = self._clock()
            quota = await self._load_quota(db, user_id, now)
            if quota.used >= quota.allowed:
                logger.warning(
                    f"Project quota exceeded for user {user_id}: {quota.used}/{quota.allowed}"
                )
                raise QuotaExceeded(allowed=quota.allowed, used=quota.used)
            await QuotaRepository(db).increment_used(quota, now)
            return quota

        quota = await self.serialized(user_id, operation)
        logger.info(f"User {user_id} used a project slot ({quota.used}/{quota.allowed})")
        return quota

    async def remaining(self, user_id: str) -> int:
        """Slots the user can still use. Users without a quota row get the default."""
        async with self._session_factory() as db:
            quota = await QuotaRepository(db).get_quota(user_id)
        if quota is None:
            return self.settings.default_project_quota
        return quota.allowed - quota.used

    async def get_quota(self, user_id: str) -> QuotaSummary:
        async with self._session_factory() as db:
            repo = QuotaRepository(db)
            quota = await repo.get_quota(user_id)
            pending = await repo.count_pending(user_id)

        if quota is None:
            allowed, used, approved = self.settings.default_project_quota, 0, 0
        else:
            allowed, used, approved = quota.allowed, quota.used, quota.total_approved

        return QuotaSummary(
            user_id=user_id,
            allowed=allowed,
            used=used,
            remaining=allowed - used,
            can_create=used < allowed,
            pending_requests=pending,
            total_approved=approved,
        )

    # ============ Requests ============

    async def request_additional_quota(
        self,
        user_id: str,
        reason: Optional[str] = None,
        payment_amount: Optional[float] = None,
    ) -> QuotaRequest:
        """
        Open a request for one more project slot.

        Raises:
            InvalidAmount: payment amount is negative or not a number
            QuotaNotExhausted: the user still has unused slots
            DuplicatePendingRequest: a request is already awaiting review
        """
        if payment_amount is None:
            payment_amount = self.settings.quota_request_price
        if not is_valid_amount(payment_amount):
            raise InvalidAmount("Payment amount must be a non-negative number")
        reason = (reason or "").strip() or DEFAULT_REQUEST_REASON

        async def operation(db: AsyncSession) -> QuotaRequestModel:
            now = self._clock()
            repo = QuotaRepository(db)
            quota = await self._load_quota(db, user_id, now)
            if quota.used < quota.allowed:
                raise QuotaNotExhausted(allowed=quota.allowed, used=quota.used)
            if await repo.get_pending_request(user_id):
                raise DuplicatePendingRequest()
            return await repo.add_request(quota, reason, payment_amount, now)

        request = await self.serialized(user_id, operation)
        logger.info(f"User {user_id} requested an additional project slot ({request.id})")
        return QuotaRequest.model_validate(request)

    async def _owner_of(self, request_id: str) -> str:
        async with self._session_factory() as db:
            request = await QuotaRepository(db).get_request(request_id)
        if request is None:
            raise RequestNotFound(request_id=request_id)
        return request.user_id

    async def _resolve(
        self,
        request_id: str,
        status: QuotaStatus,
        admin_note: str,
        admin_id: Optional[str],
    ) -> QuotaRequest:
        user_id = await self._owner_of(request_id)

        async def operation(db: AsyncSession) -> QuotaRequestModel:
            now = self._clock()
            repo = QuotaRepository(db)
            request = await repo.get_request(request_id)
            if request is None:
                raise RequestNotFound(request_id=request_id)
            if request.status != QuotaStatus.PENDING.value:
                raise RequestNotPending(request_id=request_id, status=request.status)

            await repo.resolve_request(request, status.value, admin_id, admin_note, now)
            if status is QuotaStatus.APPROVED:
                quota = await self._load_quota(db, user_id, now)
                await repo.increment_allowed(quota, now)
            return request

        request = await self.serialized(user_id, operation)
        logger.info(f"Quota request {request_id} for user {user_id} {status.value} by {admin_id}")
        return QuotaRequest.model_validate(request)

    async def approve(
        self,
        request_id: str,
        admin_note: Optional[str] = None,
        admin_id: Optional[str] = None,
    ) -> QuotaRequest:
        """
        Approve a pending request and grant its owner one more slot.

        Raises:
            RequestNotFound: no such request
            RequestNotPending: the request was already approved or rejected
        """
        note = (admin_note or "").strip() or DEFAULT_APPROVAL_NOTE
        return await self._resolve(request_id, QuotaStatus.APPROVED, note, admin_id)

    async def reject(
        self,
        request_id: str,
        admin_note: Optional[str],
        admin_id: Optional[str] = None,
    ) -> QuotaRequest:
        """
        Reject a pending request. The owner's allowance is unchanged.

        Raises:
            ReasonRequired: admin_note is missing or blank
            RequestNotFound: no such request
            RequestNotPending: the request was already approved or rejected
        """
        note = (admin_note or "").strip()
        if not note:
            raise ReasonRequired()
        return await self._resolve(request_id, QuotaStatus.REJECTED, note, admin_id)

    # ============ Listings ============

    async def list_requests(self, user_id: str) -> list[QuotaRequest]:
        async with self._session_factory() as db:
            requests = await QuotaRepository(db).list_requests(user_id)
        return [QuotaRequest.model_validate(r) for r in requests]

    async def list_pending_requests(self, limit: int = 50, offset: int = 0) -> list[PendingQuotaRequest]:
        async with self._session_factory() as db:
            rows = await QuotaRepository(db).list_pending(limit=limit, offset=offset)
        return [
            PendingQuotaRequest(
                request=QuotaRequest.model_validate(request),
                allowed=quota.allowed,
                used=quota.used,
            )
            for request, quota in rows
        ]
