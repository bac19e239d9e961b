"""Tests for credit cost calculation and reset window helpers."""

import math
from datetime import datetime, timezone

import pytest

from app.core.credits import (
    LONG_MESSAGE_THRESHOLD,
    calculate_credit_cost,
    is_valid_amount,
    is_valid_count,
    reset_window_elapsed,
)


class TestCreditCost:
    """Chat message pricing."""

    def test_short_general_message_costs_half(self):
        assert calculate_credit_cost("How do I deploy this?", "general") == 0.5

    def test_long_message_costs_full(self):
        message = "x" * LONG_MESSAGE_THRESHOLD
        assert calculate_credit_cost(message, "creative") == 1.0

    def test_message_just_below_threshold_costs_half(self):
        message = "x" * (LONG_MESSAGE_THRESHOLD - 1)
        assert calculate_credit_cost(message, "general") == 0.5

    def test_coding_mode_always_costs_full(self):
        assert calculate_credit_cost("fix", "coding") == 1.0


class TestResetWindow:
    """Daily reset is due once the UTC calendar day changes."""

    def test_same_day_is_not_due(self):
        last = datetime(2026, 3, 10, 0, 5, tzinfo=timezone.utc)
        now = datetime(2026, 3, 10, 23, 59, tzinfo=timezone.utc)
        assert reset_window_elapsed(last, now) is False

    def test_next_day_is_due_even_minutes_later(self):
        last = datetime(2026, 3, 10, 23, 59, tzinfo=timezone.utc)
        now = datetime(2026, 3, 11, 0, 1, tzinfo=timezone.utc)
        assert reset_window_elapsed(last, now) is True

    def test_naive_timestamps_are_treated_as_utc(self):
        last = datetime(2026, 3, 10, 12, 0)
        now = datetime(2026, 3, 11, 1, 0, tzinfo=timezone.utc)
        assert reset_window_elapsed(last, now) is True

    def test_missing_last_reset_is_due(self):
        assert reset_window_elapsed(None, datetime.now(timezone.utc)) is True


@pytest.mark.parametrize("value", [0, 3, 2.5, 1_000_000])
def test_valid_amounts(value):
    assert is_valid_amount(value)


@pytest.mark.parametrize("value", [-1, -0.5, "5", None, True, math.nan, math.inf])
def test_invalid_amounts(value):
    assert not is_valid_amount(value)


def test_counts_must_be_non_negative_integers():
    assert is_valid_count(0)
    assert is_valid_count(50)
    assert not is_valid_count(2.5)
    assert not is_valid_count(-1)
    assert not is_valid_count(False)
