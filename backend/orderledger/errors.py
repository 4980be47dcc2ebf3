# Overview: Typed domain errors shared by services and routes.

"""
Ledger error taxonomy.

Services raise these; routes translate them into JSON with a stable
``code`` and the matching HTTP status. ``details`` carries the limiting
numbers (amounts in cents, ids) so a UI can render them directly.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all domain errors."""
    code = "LEDGER_ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationError(LedgerError):
    """Malformed input or a violated business rule. Always pre-write."""
    code = "VALIDATION_FAILED"
    http_status = 400


class PendingLimitExceeded(ValidationError):
    """The client's outstanding pending would exceed their limit."""
    code = "PENDING_LIMIT_EXCEEDED"


class AuthorizationError(LedgerError):
    """Wrong role, or the actor does not own / is not assigned to the resource."""
    code = "FORBIDDEN"
    http_status = 403


class NotFoundError(LedgerError):
    code = "NOT_FOUND"
    http_status = 404


class InsufficientFundsError(LedgerError):
    """Wallet balance too low, or a payment larger than the pending amount."""
    code = "INSUFFICIENT_FUNDS"
    http_status = 400


class PersistenceError(LedgerError):
    """Database failure. Details identify what was being written."""
    code = "PERSISTENCE_FAILED"
    http_status = 500


class ConcurrencyConflict(LedgerError):
    """Lock contention or version conflict that survived the retry budget."""
    code = "CONCURRENCY_CONFLICT"
    http_status = 409

    def __init__(self, message: str = "Concurrent update detected, please retry", details: dict | None = None):
        super().__init__(message, details)
