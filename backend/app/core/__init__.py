"""Credit ledger and quota workflow logic."""

from .config import get_settings
from .credits import calculate_credit_cost

__all__ = [
    "get_settings",
    "calculate_credit_cost",
]
