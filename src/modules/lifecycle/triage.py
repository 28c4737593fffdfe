"""
Urgent intake classification with a fixed fallback.
"""

import logging
from typing import List, Optional

from src.config.constants import (
    FALLBACK_CATEGORY,
    FALLBACK_PRICE_RANGE,
    FALLBACK_PRIORITY,
    FALLBACK_SAFETY_ADVICE,
)

from .collaborators import TriageAssistant
from .schemas import TriageResultSchema

logger = logging.getLogger(__name__)


def fallback_classification(description: str) -> TriageResultSchema:
    """Classification used whenever the assistant cannot answer."""
    return TriageResultSchema(
        category=FALLBACK_CATEGORY,
        priority=FALLBACK_PRIORITY,
        summary=description[:200],
        safety_advice=FALLBACK_SAFETY_ADVICE,
        estimated_price_range=FALLBACK_PRICE_RANGE,
    )


async def classify_with_fallback(
    assistant: Optional[TriageAssistant],
    description: str,
    images: Optional[List[str]] = None,
) -> TriageResultSchema:
    """
    Classify an urgent request without ever blocking order creation.

    Args:
        assistant: Triage assistant, or None when not configured
        description: Free-text description
        images: Optional image URLs

    Returns:
        The assistant's classification, or the fallback on any failure
    """
    if assistant is None:
        return fallback_classification(description)

    try:
        result = await assistant.classify(description, images or [])
    except Exception as e:
        logger.warning(
            f"Triage failed, using fallback classification: {e}",
            extra={"event": "triage_fallback"},
        )
        return fallback_classification(description)

    if not result.category.strip():
        logger.warning("Triage returned an empty category, using fallback")
        return fallback_classification(description)

    return result
