"""
Errors raised by order lifecycle operations.
"""

from typing import Iterable, Optional


class LifecycleError(Exception):
    """Base class for lifecycle failures surfaced to callers."""


class NotFoundError(LifecycleError):
    """Order, provider or quote missing at read time."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class PreconditionFailedError(LifecycleError):
    """The order is no longer in a state allowing the operation."""

    def __init__(
        self,
        message: str,
        expected: Optional[Iterable[str]] = None,
        actual: Optional[str] = None,
    ):
        self.expected = [str(s) for s in expected] if expected else []
        self.actual = actual
        super().__init__(message)


class DuplicateQuoteError(PreconditionFailedError):
    """Provider already has a non-rejected quote on this order."""


class TransactionConflictError(LifecycleError):
    """Concurrent writers kept winning; the retry budget is spent."""

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(f"{operation} aborted after {attempts} conflicting attempts")


class InvalidLocationError(LifecycleError, ValueError):
    """Coordinates missing, out of range, or (0, 0)."""
