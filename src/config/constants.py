"""
Application constants and enumerations.
"""

from enum import Enum


class OrderStatus(str, Enum):
    """Lifecycle states of an order."""
    SEARCHING = "SEARCHING"
    ASSIGNED = "ASSIGNED"
    PENDING_CLOSURE = "PENDING_CLOSURE"
    ARCHIVED = "ARCHIVED"
    CANCELLED = "CANCELLED"


class QuoteStatus(str, Enum):
    """Status of a provider quote."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Priority(str, Enum):
    """Urgency levels produced by the triage assistant."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class FinishRequestedBy(str, Enum):
    """Who asked for an order to be closed."""
    REQUESTER = "requester"
    PROVIDER = "provider"


class DispatchMode(str, Enum):
    """How replacement searches are scheduled."""
    BACKGROUND = "background"
    CELERY = "celery"


# Statuses from which the requester may complete an order
CLOSABLE_STATUSES = (OrderStatus.ASSIGNED, OrderStatus.PENDING_CLOSURE)

# Triage fallback when the assistant is unavailable
FALLBACK_CATEGORY = "Multi-service"
FALLBACK_PRIORITY = Priority.HIGH
FALLBACK_SAFETY_ADVICE = (
    "Stay away from the affected area, cut the water or power supply if it "
    "is safe to do so, and wait for the professional."
)
FALLBACK_PRICE_RANGE = "On quote"
