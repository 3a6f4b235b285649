from __future__ import annotations


class AutoServiceError(Exception):
    pass


class ValidationError(AutoServiceError):
    """Bad input shape or values: negative price, unknown foreign key, ledger total mismatch."""


class NotFound(AutoServiceError):
    pass


class PersistenceError(AutoServiceError):
    pass


class InvariantViolation(AutoServiceError):
    """Stored data broke an invariant that should have been enforced on write."""
