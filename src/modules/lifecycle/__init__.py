"""
Order lifecycle module

State machine for orders and quotes:
- Creation (searched, direct or urgent with triage)
- Quote submission, acceptance and rejection with replacement search
- Manual radius expansion, closure request, cancellation
- Atomic archival with provider stat updates
"""

from .archival import ArchivalTransaction, recompute_rating
from .controller import OrderLifecycleController, get_controller
from .exceptions import (
    DuplicateQuoteError,
    InvalidLocationError,
    LifecycleError,
    NotFoundError,
    PreconditionFailedError,
    TransactionConflictError,
)
from .schemas import (
    ArchiveResultSchema,
    OrderCreateSchema,
    OrderSchema,
    QuoteCreateSchema,
    QuoteSchema,
    ReviewInputSchema,
    TriageResultSchema,
    UrgentOrderCreateSchema,
)

__all__ = [
    "ArchivalTransaction",
    "recompute_rating",
    "OrderLifecycleController",
    "get_controller",
    "DuplicateQuoteError",
    "InvalidLocationError",
    "LifecycleError",
    "NotFoundError",
    "PreconditionFailedError",
    "TransactionConflictError",
    "ArchiveResultSchema",
    "OrderCreateSchema",
    "OrderSchema",
    "QuoteCreateSchema",
    "QuoteSchema",
    "ReviewInputSchema",
    "TriageResultSchema",
    "UrgentOrderCreateSchema",
]
