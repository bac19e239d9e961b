"""Credit cost calculation and daily reset window logic."""

import math
from datetime import datetime, timezone
from numbers import Real
from typing import Any, Optional

# Credit costs per chat message
CREDIT_COST_FULL = 1.0  # Long messages or coding mode
CREDIT_COST_HALF = 0.5  # Short messages (2 messages = 1 credit)

# Characters at which a message is billed as a long message
LONG_MESSAGE_THRESHOLD = 500

# Chat modes billed at the full rate regardless of length
FULL_COST_MODES = {"coding"}


def calculate_credit_cost(message: str, mode: str = "general") -> float:
    """
    Calculate the credits consumed by a single chat message.

    Args:
        message: Prompt text sent by the user
        mode: Chat mode (general, coding, creative)

    Returns:
        Credit cost of the message
    """
    if mode in FULL_COST_MODES:
        return CREDIT_COST_FULL

    if len(message) >= LONG_MESSAGE_THRESHOLD:
        return CREDIT_COST_FULL

    return CREDIT_COST_HALF


def as_utc(moment: datetime) -> datetime:
    """Attach UTC to naive timestamps (SQLite drops tzinfo on read)."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def reset_window_elapsed(last_reset_at: Optional[datetime], now: datetime) -> bool:
    """
    Check whether a new daily reset window has started since the last reset.

    Windows are UTC calendar days: a reset is due as soon as ``now`` falls
    on a later day than ``last_reset_at``.
    """
    if last_reset_at is None:
        return True
    return as_utc(now).date() > as_utc(last_reset_at).date()


def is_valid_amount(value: Any) -> bool:
    """True for finite, non-negative real numbers (booleans excluded)."""
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(value) and value >= 0


def is_valid_count(value: Any) -> bool:
    """True for non-negative integers (booleans excluded)."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0
