"""Credit ledger service.

All credit mutations go through ``CreditLedgerService``: chat usage,
admin adjustments, premium toggles, resets and default policy edits.
Each mutation runs under the user's lock in its own transaction, so
a balance check and the debit it guards are never interleaved with
another write to the same account.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings, get_settings
from .credits import is_valid_amount, is_valid_count, reset_window_elapsed
from .exceptions import InsufficientCredits, InvalidAction, InvalidAmount
from .locks import KeyedLock, SerializedWriter
from ..db.models import CreditAccountModel, DefaultPolicyModel, LedgerEntryModel, utc_now
from ..db.repository import CreditRepository, DefaultPolicyRepository
from ..models.credits import AdminAction, ConsumeResult, LedgerAction

logger = logging.getLogger(__name__)


# ============ Admin Adjustments ============


def _add(credits: float, amount: float) -> float:
    return credits + amount


def _deduct(credits: float, amount: float) -> float:
    # Deductions never push a balance below zero; the excess is dropped
    return max(0.0, credits - amount)


def _set(credits: float, amount: float) -> float:
    return amount


# action -> (balance function, ledger action, message template)
ADJUSTMENTS = {
    AdminAction.ADD: (_add, LedgerAction.ADMIN_ADD, "Admin added {amount} credits"),
    AdminAction.DEDUCT: (_deduct, LedgerAction.ADMIN_DEDUCT, "Admin deducted {amount} credits"),
    AdminAction.SET: (_set, LedgerAction.ADMIN_SET, "Admin set credits to {amount}"),
}

POLICY_KEY = "default-policy"


class CreditLedgerService(SerializedWriter):
    """
    Atomic credit operations over the ledger and default policy stores.
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

    # ============ Internal Helpers ============

    async def _load_account(self, db: AsyncSession, user_id: str, now: datetime) -> CreditAccountModel:
        """Lock the user's account, creating it from the default policy on first use."""
        repo = CreditRepository(db)
        account = await repo.get_account(user_id, for_update=True)
        if account:
            return account

        policy = await self._policy(db)
        account = await repo.create_account(
            user_id,
            credits=policy.default_credits,
            daily_limit=policy.default_daily_limit,
            now=now,
        )
        logger.info(
            f"Created credit account for user {user_id} with {policy.default_credits} credits "
            f"(daily limit {policy.default_daily_limit})"
        )
        return account

    async def _policy(self, db: AsyncSession, for_update: bool = False) -> DefaultPolicyModel:
        return await DefaultPolicyRepository(db).get_or_create(
            self.settings.default_initial_credits,
            self.settings.default_daily_limit,
            for_update=for_update,
        )

    @staticmethod
    def _reset(
        repo: CreditRepository,
        account: CreditAccountModel,
        now: datetime,
        message: str,
    ) -> None:
        previous = account.credits
        account.credits = float(account.daily_limit)
        account.last_reset_at = now
        account.updated_at = now
        repo.append_entry(account, LedgerAction.RESET.value, account.credits - previous, message, now)

    # ============ Usage ============

    async def consume(
        self,
        user_id: str,
        cost: float = 1,
        note: Optional[str] = None,
    ) -> ConsumeResult:
        """
        Authorize and debit ``cost`` credits for one unit of AI usage.

        Premium accounts are never charged but their usage is still recorded.
        Non-premium accounts get their daily reset applied first.

        Raises:
            InvalidAmount: cost is negative or not a number
            InsufficientCredits: balance is below cost (nothing is written)
        """
        if not is_valid_amount(cost):
            raise InvalidAmount("Cost must be a non-negative number", cost=str(cost))
        cost = float(cost)

        async def operation(db: AsyncSession) -> ConsumeResult:
            now = self._clock()
            repo = CreditRepository(db)
            account = await self._load_account(db, user_id, now)

            if account.is_premium:
                account.total_used += cost
                account.updated_at = now
                repo.append_entry(
                    account,
                    LedgerAction.USE.value,
                    0,
                    note or f"Used {cost:g} credits (unlimited)",
                    now,
                )
                return ConsumeResult(
                    user_id=user_id,
                    cost=cost,
                    credits=account.credits,
                    total_used=account.total_used,
                    unlimited=True,
                )

            if reset_window_elapsed(account.last_reset_at, now):
                self._reset(repo, account, now, "Daily credits reset")

            if account.credits < cost:
                logger.warning(
                    f"Insufficient credits for user {user_id}: has {account.credits}, needs {cost}"
                )
                raise InsufficientCredits(credits=account.credits, required=cost)

            account.credits -= cost
            account.total_used += cost
            account.updated_at = now
            repo.append_entry(
                account,
                LedgerAction.USE.value,
                -cost,
                note or f"Used {cost:g} credits for AI chat",
                now,
            )
            return ConsumeResult(
                user_id=user_id,
                cost=cost,
                credits=account.credits,
                total_used=account.total_used,
            )

        result = await self.serialized(user_id, operation)
        logger.info(f"Consumed {cost:g} credits for user {user_id}, balance: {result.credits}")
        return result

    async def get_account(self, user_id: str) -> CreditAccountModel:
        """
        Get a user's account, creating it and applying a due daily reset.
        """
        async def operation(db: AsyncSession) -> CreditAccountModel:
            now = self._clock()
            account = await self._load_account(db, user_id, now)
            if not account.is_premium and reset_window_elapsed(account.last_reset_at, now):
                self._reset(CreditRepository(db), account, now, "Daily credits reset")
            return account

        return await self.serialized(user_id, operation)

    # ============ Admin Operations ============

    @staticmethod
    def _parse_adjustment(action: Optional[str], amount: Any) -> tuple[AdminAction, float]:
        try:
            parsed = AdminAction(action)
        except ValueError:
            raise InvalidAction(f"Unknown action '{action}'. Use add, deduct or set")
        if not is_valid_amount(amount):
            raise InvalidAmount(amount=str(amount))
        return parsed, float(amount)

    async def update_account(
        self,
        user_id: str,
        action: Optional[str] = None,
        amount: Any = None,
        daily_limit: Any = None,
        admin_id: Optional[str] = None,
    ) -> CreditAccountModel:
        """
        Apply a balance adjustment, a daily limit change, or both, in one transaction.

        Every value is validated before the account is touched, so a
        rejected call leaves the account and its history as they were.
        The ledger entry records the delta actually applied, which for a
        deduction larger than the balance is the clamped amount.

        Raises:
            InvalidAction: action is not add, deduct or set
            InvalidAmount: nothing to change, amount is negative or not a number,
                or daily_limit is not a non-negative integer
        """
        if action is None and daily_limit is None:
            raise InvalidAmount("Provide an action and amount, or a daily limit")
        adjustment = self._parse_adjustment(action, amount) if action is not None else None
        if daily_limit is not None and not is_valid_count(daily_limit):
            raise InvalidAmount("Daily limit must be a non-negative integer", daily_limit=str(daily_limit))

        message = None
        if adjustment:
            admin_action, value = adjustment
            apply, ledger_action, template = ADJUSTMENTS[admin_action]
            message = template.format(amount=f"{value:g}")
            if admin_id:
                message = f"{message} (by {admin_id})"

        async def operation(db: AsyncSession) -> CreditAccountModel:
            now = self._clock()
            account = await self._load_account(db, user_id, now)
            if adjustment:
                previous = account.credits
                account.credits = apply(previous, value)
                CreditRepository(db).append_entry(
                    account, ledger_action.value, account.credits - previous, message, now
                )
            if daily_limit is not None:
                account.daily_limit = daily_limit
            account.updated_at = now
            return account

        account = await self.serialized(user_id, operation)
        if message:
            logger.info(f"{message} for user {user_id}, new balance: {account.credits}")
        if daily_limit is not None:
            logger.info(f"Set daily limit for user {user_id} to {daily_limit}")
        return account

    async def admin_adjust(
        self,
        user_id: str,
        action: str,
        amount: float,
        admin_id: Optional[str] = None,
    ) -> CreditAccountModel:
        """
        Add, deduct or set a user's credits.

        Raises:
            InvalidAction: action is not add, deduct or set
            InvalidAmount: amount is negative or not a number
        """
        self._parse_adjustment(action, amount)
        return await self.update_account(user_id, action, amount, admin_id=admin_id)

    async def set_daily_limit(self, user_id: str, daily_limit: int) -> CreditAccountModel:
        """Change the ceiling a user's balance is restored to on reset."""
        if daily_limit is None:
            raise InvalidAmount("Daily limit must be a non-negative integer")
        return await self.update_account(user_id, daily_limit=daily_limit)

    async def toggle_premium(self, user_id: str, admin_id: Optional[str] = None) -> CreditAccountModel:
        """Flip a user's premium flag; the balance is left untouched."""

        async def operation(db: AsyncSession) -> CreditAccountModel:
            now = self._clock()
            account = await self._load_account(db, user_id, now)
            account.is_premium = not account.is_premium
            account.updated_at = now
            if account.is_premium:
                action, message = LedgerAction.PREMIUM_ON, "Premium activated by admin"
            else:
                action, message = LedgerAction.PREMIUM_OFF, "Premium deactivated by admin"
            if admin_id:
                message = f"{message} ({admin_id})"
            CreditRepository(db).append_entry(account, action.value, 0, message, now)
            return account

        account = await self.serialized(user_id, operation)
        logger.info(f"Premium {'enabled' if account.is_premium else 'disabled'} for user {user_id}")
        return account

    async def reset_all(self) -> int:
        """
        Restore every non-premium account to its daily limit.

        Accounts are reset one at a time under their own lock, so a
        concurrent ``consume`` on the same account is ordered before or
        after the reset, never lost.

        Returns:
            Number of accounts reset
        """
        async with self._session_factory() as db:
            user_ids = await CreditRepository(db).list_user_ids(include_premium=False)

        count = 0
        for user_id in user_ids:
            if await self._reset_one(user_id):
                count += 1

        logger.info(f"Reset credits for {count} account(s)")
        return count

    async def _reset_one(self, user_id: str) -> bool:
        async def operation(db: AsyncSession) -> bool:
            repo = CreditRepository(db)
            account = await repo.get_account(user_id, for_update=True)
            # Premium may have been switched on since the id list was read
            if account is None or account.is_premium:
                return False
            self._reset(repo, account, self._clock(), "Admin forced daily reset")
            return True

        return await self.serialized(user_id, operation)

    # ============ Default Policy ============

    async def get_default_policy(self) -> DefaultPolicyModel:
        """Get the defaults applied to new accounts, seeding them from settings if unset."""

        async def operation(db: AsyncSession) -> DefaultPolicyModel:
            return await self._policy(db)

        return await self.serialized(POLICY_KEY, operation)

    async def update_default_policy(
        self,
        default_credits: Optional[int] = None,
        default_daily_limit: Optional[int] = None,
        admin_id: Optional[str] = None,
    ) -> DefaultPolicyModel:
        """
        Update the defaults for accounts created from now on.

        Existing accounts are not touched. A field passed as None keeps its value.

        Raises:
            InvalidAmount: both fields missing, or a value is not a non-negative integer
        """
        if default_credits is None and default_daily_limit is None:
            raise InvalidAmount("Provide default credits or a default daily limit")
        if default_credits is not None and not is_valid_count(default_credits):
            raise InvalidAmount("Default credits must be a non-negative integer")
        if default_daily_limit is not None and not is_valid_count(default_daily_limit):
            raise InvalidAmount("Default daily limit must be a non-negative integer")

        async def operation(db: AsyncSession) -> DefaultPolicyModel:
            policy = await self._policy(db, for_update=True)
            if default_credits is not None:
                policy.default_credits = default_credits
            if default_daily_limit is not None:
                policy.default_daily_limit = default_daily_limit
            policy.updated_by = admin_id
            policy.updated_at = self._clock()
            return policy

        policy = await self.serialized(POLICY_KEY, operation)
        logger.info(
            f"Default credit policy updated: credits={policy.default_credits}, "
            f"daily_limit={policy.default_daily_limit}"
        )
        return policy

    # ============ Reads ============

    async def get_history(self, user_id: str, limit: Optional[int] = None) -> list[LedgerEntryModel]:
        """
        Get a user's ledger entries in the order they were appended.

        Read-only: never creates an account or applies a reset.
        """
        async with self._session_factory() as db:
            return await CreditRepository(db).get_entries(user_id, limit=limit)

    async def find_account(self, user_id: str) -> Optional[CreditAccountModel]:
        """Read a user's account without creating it or applying resets."""
        async with self._session_factory() as db:
            return await CreditRepository(db).get_account(user_id)

    async def list_accounts(
        self,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[CreditAccountModel], int]:
        """List accounts, newest first, with the total account count."""
        async with self._session_factory() as db:
            repo = CreditRepository(db)
            return await repo.list_accounts(limit=limit, offset=offset), await repo.count_accounts()
