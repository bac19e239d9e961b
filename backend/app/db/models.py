"""SQLAlchemy database models."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Float,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
)

from .database import Base


def generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


class UserModel(Base):
    """
    Database model for authenticated users.

    Users are provisioned from the auth token on first request.
    The ID is the token subject issued by the auth service.
    """

    __tablename__ = "users"

    id = Column(String(100), primary_key=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    display_name = Column(String(200), nullable=True)

    # Admin flag
    is_admin = Column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"


class CreditAccountModel(Base):
    """
    Database model for AI chat credit accounts.

    One row per user, created lazily from the default policy.
    ``version`` is checked on every UPDATE so concurrent writers
    cannot overwrite each other's balance.
    """

    __tablename__ = "credit_accounts"

    id = Column(String(36), primary_key=True, default=generate_uuid)

    # Auth subject; the user row may not exist yet when an admin acts first
    user_id = Column(String(100), nullable=False, unique=True, index=True)

    # Balance tracking
    credits = Column(Float, nullable=False, default=0)
    daily_limit = Column(Integer, nullable=False, default=0)
    is_premium = Column(Boolean, nullable=False, default=False)
    total_used = Column(Float, nullable=False, default=0)
    last_reset_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    # Optimistic concurrency token
    version = Column(Integer, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<CreditAccount(user_id={self.user_id}, credits={self.credits}, premium={self.is_premium})>"


class LedgerEntryModel(Base):
    """
    Database model for credit ledger entries.

    Append-only. The autoincrement key preserves insertion order,
    which is the order history is reported in.
    """

    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)

    account_id = Column(
        String(36),
        ForeignKey("credit_accounts.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = Column(String(100), nullable=False)

    # use, reset, admin_add, admin_deduct, admin_set, premium_on, premium_off
    action = Column(String(30), nullable=False)
    amount = Column(Float, nullable=False)  # Signed delta applied to credits
    resulting_balance = Column(Float, nullable=False)
    message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    __table_args__ = (
        Index("idx_ledger_entries_user", "user_id"),
        Index("idx_ledger_entries_account", "account_id"),
    )

    def __repr__(self) -> str:
        return f"<LedgerEntry(id={self.id}, user_id={self.user_id}, action={self.action}, amount={self.amount})>"


class DefaultPolicyModel(Base):
    """
    Singleton row holding the defaults applied to new credit accounts.
    """

    __tablename__ = "default_policies"

    SINGLETON_ID = 1

    id = Column(Integer, primary_key=True)
    default_credits = Column(Integer, nullable=False)
    default_daily_limit = Column(Integer, nullable=False)
    updated_by = Column(String(100), nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class ProjectQuotaModel(Base):
    """
    Database model for custom project quotas.

    Tracks how many AI-guided custom projects a user may create.
    """

    __tablename__ = "project_quotas"

    id = Column(String(36), primary_key=True, default=generate_uuid)

    user_id = Column(String(100), nullable=False, unique=True, index=True)

    allowed = Column(Integer, nullable=False, default=1)
    used = Column(Integer, nullable=False, default=0)
    total_approved = Column(Integer, nullable=False, default=0)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<ProjectQuota(user_id={self.user_id}, allowed={self.allowed}, used={self.used})>"


class QuotaRequestModel(Base):
    """
    Database model for requests for an additional custom project slot.

    Lifecycle: pending -> approved | rejected (both terminal).
    """

    __tablename__ = "quota_requests"

    id = Column(String(36), primary_key=True, default=generate_uuid)

    quota_id = Column(
        String(36),
        ForeignKey("project_quotas.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = Column(String(100), nullable=False)

    reason = Column(Text, nullable=False)
    payment_amount = Column(Float, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="pending")  # pending, approved, rejected
    admin_note = Column(Text, nullable=True)
    resolved_by = Column(String(100), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    request_date = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    __table_args__ = (
        Index("idx_quota_requests_user", "user_id"),
        Index("idx_quota_requests_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<QuotaRequest(id={self.id}, user_id={self.user_id}, status={self.status})>"
