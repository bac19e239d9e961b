"""Repository pattern for database operations.

Repositories stage changes on the session they are given but never
commit: the ledger and quota services own the transaction so that a
check and the write it guards land together or not at all.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    CreditAccountModel,
    LedgerEntryModel,
    DefaultPolicyModel,
    ProjectQuotaModel,
    QuotaRequestModel,
)

logger = logging.getLogger(__name__)


class CreditRepository:
    """
    Ledger store: credit accounts and their append-only history.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============ Account Operations ============

    async def get_account(
        self,
        user_id: str,
        for_update: bool = False,
    ) -> Optional[CreditAccountModel]:
        """
        Get a user's credit account.

        Args:
            user_id: User ID string
            for_update: Take a row-level lock (SELECT ... FOR UPDATE) where supported

        Returns:
            CreditAccountModel or None if not found
        """
        query = select(CreditAccountModel).where(CreditAccountModel.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def create_account(
        self,
        user_id: str,
        credits: float,
        daily_limit: int,
        now: datetime,
    ) -> CreditAccountModel:
        """Create an account seeded with the given balance and daily limit."""
        account = CreditAccountModel(
            user_id=user_id,
            credits=float(credits),
            daily_limit=daily_limit,
            is_premium=False,
            total_used=0.0,
            last_reset_at=now,
            created_at=now,
            updated_at=now,
        )
        self.db.add(account)
        await self.db.flush()
        return account

    async def list_accounts(self, limit: int = 50, offset: int = 0) -> list[CreditAccountModel]:
        result = await self.db.execute(
            select(CreditAccountModel)
            .order_by(CreditAccountModel.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def count_accounts(self) -> int:
        result = await self.db.execute(select(func.count(CreditAccountModel.id)))
        return result.scalar() or 0

    async def list_user_ids(self, include_premium: bool = True) -> list[str]:
        query = select(CreditAccountModel.user_id).order_by(CreditAccountModel.user_id)
        if not include_premium:
            query = query.where(CreditAccountModel.is_premium.is_(False))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # ============ History ============

    def append_entry(
        self,
        account: CreditAccountModel,
        action: str,
        amount: float,
        message: str,
        now: datetime,
    ) -> LedgerEntryModel:
        """
        Stage a ledger entry reflecting the account's current balance.

        Call after the balance change has been applied to ``account``.
        """
        entry = LedgerEntryModel(
            account_id=account.id,
            user_id=account.user_id,
            action=action,
            amount=float(amount),
            resulting_balance=float(account.credits),
            message=message,
            created_at=now,
        )
        self.db.add(entry)
        return entry

    async def get_entries(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[LedgerEntryModel]:
        """
        Get ledger entries for a user, oldest first.

        Args:
            user_id: User ID string
            limit: Only return the most recent ``limit`` entries (still oldest first)

        Returns:
            List of LedgerEntryModel in insertion order
        """
        query = select(LedgerEntryModel).where(LedgerEntryModel.user_id == user_id)
        if limit is None:
            result = await self.db.execute(query.order_by(LedgerEntryModel.id))
            return list(result.scalars().all())

        result = await self.db.execute(query.order_by(LedgerEntryModel.id.desc()).limit(limit))
        return list(reversed(result.scalars().all()))


class DefaultPolicyRepository:
    """
    Default policy store: the singleton row seeding new credit accounts.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, for_update: bool = False) -> Optional[DefaultPolicyModel]:
        query = select(DefaultPolicyModel).where(DefaultPolicyModel.id == DefaultPolicyModel.SINGLETON_ID)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        default_credits: int,
        default_daily_limit: int,
        for_update: bool = False,
    ) -> DefaultPolicyModel:
        """
        Get the policy row, creating it from the given seed values if missing.
        """
        policy = await self.get(for_update=for_update)
        if policy:
            return policy

        policy = DefaultPolicyModel(
            id=DefaultPolicyModel.SINGLETON_ID,
            default_credits=default_credits,
            default_daily_limit=default_daily_limit,
        )
        self.db.add(policy)
        await self.db.flush()

        logger.info(
            f"Seeded default credit policy: credits={default_credits}, daily_limit={default_daily_limit}"
        )
        return policy


class QuotaRepository:
    """
    Quota store: per-user custom project quotas and their requests.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============ Quota Operations ============

    async def get_quota(
        self,
        user_id: str,
        for_update: bool = False,
    ) -> Optional[ProjectQuotaModel]:
        query = select(ProjectQuotaModel).where(ProjectQuotaModel.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_or_create_quota(
        self,
        user_id: str,
        allowed: int,
        now: datetime,
    ) -> ProjectQuotaModel:
        """
        Get a user's quota with a row lock, creating it with ``allowed`` slots if missing.
        """
        quota = await self.get_quota(user_id, for_update=True)
        if quota:
            return quota

        quota = ProjectQuotaModel(
            user_id=user_id,
            allowed=allowed,
            used=0,
            total_approved=0,
            created_at=now,
            updated_at=now,
        )
        self.db.add(quota)
        await self.db.flush()

        logger.info(f"Created project quota for user {user_id} with {allowed} slot(s)")
        return quota

    async def increment_used(self, quota: ProjectQuotaModel, now: datetime) -> None:
        quota.used += 1
        quota.updated_at = now
        await self.db.flush()

    async def increment_allowed(self, quota: ProjectQuotaModel, now: datetime) -> None:
        """Grant one more slot to an approved request's owner."""
        quota.allowed += 1
        quota.total_approved += 1
        quota.updated_at = now
        await self.db.flush()

    # ============ Request Operations ============

    async def get_request(self, request_id: str) -> Optional[QuotaRequestModel]:
        result = await self.db.execute(
            select(QuotaRequestModel).where(QuotaRequestModel.id == request_id)
        )
        return result.scalar_one_or_none()

    async def get_pending_request(self, user_id: str) -> Optional[QuotaRequestModel]:
        result = await self.db.execute(
            select(QuotaRequestModel)
            .where(
                QuotaRequestModel.user_id == user_id,
                QuotaRequestModel.status == "pending",
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def add_request(
        self,
        quota: ProjectQuotaModel,
        reason: str,
        payment_amount: float,
        now: datetime,
    ) -> QuotaRequestModel:
        """
        Stage a pending request and bump the quota row's version.

        Touching the quota row makes two writers racing to open a request
        for the same user collide on the version check.
        """
        request = QuotaRequestModel(
            quota_id=quota.id,
            user_id=quota.user_id,
            reason=reason,
            payment_amount=float(payment_amount),
            status="pending",
            request_date=now,
        )
        self.db.add(request)
        quota.updated_at = now
        await self.db.flush()
        return request

    async def resolve_request(
        self,
        request: QuotaRequestModel,
        status: str,
        resolved_by: Optional[str],
        admin_note: str,
        now: datetime,
    ) -> None:
        request.status = status
        request.resolved_by = resolved_by
        request.resolved_at = now
        request.admin_note = admin_note
        await self.db.flush()

    async def list_requests(self, user_id: str) -> list[QuotaRequestModel]:
        result = await self.db.execute(
            select(QuotaRequestModel)
            .where(QuotaRequestModel.user_id == user_id)
            .order_by(QuotaRequestModel.request_date, QuotaRequestModel.id)
        )
        return list(result.scalars().all())

    async def count_pending(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count(QuotaRequestModel.id)).where(
                QuotaRequestModel.user_id == user_id,
                QuotaRequestModel.status == "pending",
            )
        )
        return result.scalar() or 0

    async def list_pending(
        self,
        limit: int = 50,
        offset: int = 0,
    ) -> list[tuple[QuotaRequestModel, ProjectQuotaModel]]:
        """
        List pending requests across all users, oldest first, with each owner's quota.
        """
        result = await self.db.execute(
            select(QuotaRequestModel, ProjectQuotaModel)
            .join(ProjectQuotaModel, ProjectQuotaModel.id == QuotaRequestModel.quota_id)
            .where(QuotaRequestModel.status == "pending")
            .order_by(QuotaRequestModel.request_date, QuotaRequestModel.id)
            .limit(limit)
            .offset(offset)
        )
        return [(row[0], row[1]) for row in result.all()]
