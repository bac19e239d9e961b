"""Errors raised by the credit ledger and quota workflow services.

Every error carries a stable ``code`` and the HTTP status the API layer
answers with. A service raising any of these has left the underlying
records exactly as they were before the call.
"""

from typing import Any, Optional


class LedgerError(Exception):
    """Base class for credit and quota failures."""

    code = "LedgerError"
    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        payload = {"success": False, "error": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


# ============ Credit Errors ============


class InsufficientCredits(LedgerError):
    code = "InsufficientCredits"
    status_code = 402
    default_message = "Insufficient credits. Daily limit reached."


class InvalidAmount(LedgerError):
    code = "InvalidAmount"
    status_code = 400
    default_message = "Amount must be a non-negative number"


class InvalidAction(LedgerError):
    code = "InvalidAction"
    status_code = 400
    default_message = "Unknown credit adjustment action"


# ============ Quota Errors ============


class QuotaNotExhausted(LedgerError):
    code = "QuotaNotExhausted"
    status_code = 409
    default_message = "Additional quota can only be requested once the current quota is used"


class DuplicatePendingRequest(LedgerError):
    code = "DuplicatePendingRequest"
    status_code = 409
    default_message = "A quota request is already pending review"


class RequestNotFound(LedgerError):
    code = "RequestNotFound"
    status_code = 404
    default_message = "Quota request not found"


class RequestNotPending(LedgerError):
    code = "RequestNotPending"
    status_code = 409
    default_message = "Quota request has already been resolved"


class ReasonRequired(LedgerError):
    code = "ReasonRequired"
    status_code = 400
    default_message = "A note is required to reject a request"


class QuotaExceeded(LedgerError):
    code = "QuotaExceeded"
    status_code = 403
    default_message = "Custom project limit reached"


# ============ Store Errors ============


class TransientFailure(LedgerError):
    """Concurrent writes kept colliding; safe to retry."""

    code = "TransientFailure"
    status_code = 503
    default_message = "The record is busy, please retry"
