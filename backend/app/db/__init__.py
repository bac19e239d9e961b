"""Database module for the credit and quota stores."""

from .database import get_db, engine, async_session, init_db
from .models import (
    Base,
    UserModel,
    CreditAccountModel,
    LedgerEntryModel,
    DefaultPolicyModel,
    ProjectQuotaModel,
    QuotaRequestModel,
)
from .repository import CreditRepository, DefaultPolicyRepository, QuotaRepository

__all__ = [
    "get_db",
    "engine",
    "async_session",
    "init_db",
    "Base",
    "UserModel",
    "CreditAccountModel",
    "LedgerEntryModel",
    "DefaultPolicyModel",
    "ProjectQuotaModel",
    "QuotaRequestModel",
    "CreditRepository",
    "DefaultPolicyRepository",
    "QuotaRepository",
]
