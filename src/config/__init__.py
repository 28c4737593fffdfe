from .settings import settings
from .constants import (
    OrderStatus,
    QuoteStatus,
    Priority,
    DispatchMode,
)

__all__ = [
    "settings",
    "OrderStatus",
    "QuoteStatus",
    "Priority",
    "DispatchMode",
]
