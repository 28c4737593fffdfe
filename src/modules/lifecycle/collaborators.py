"""
External collaborators consumed by the lifecycle: messaging and triage.

Only the interfaces live here, with logging defaults used when no real
backend is configured.
"""

import logging
from typing import List, Optional, Protocol

from .schemas import TriageResultSchema

logger = logging.getLogger(__name__)


class MessagingService(Protocol):
    """Conversation channel between a requester and a provider."""

    async def ensure_conversation(self, requester_id: str, provider_id: str) -> str:
        """Create or reuse a conversation, returning its id."""
        ...

    async def post_system_message(self, conversation_id: str, text: str) -> None:
        ...


class TriageAssistant(Protocol):
    """Classifies a free-text urgent request."""

    async def classify(self, description: str, images: List[str]) -> TriageResultSchema:
        ...


def conversation_id_for(requester_id: str, provider_id: str) -> str:
    """One conversation per (requester, provider) pair."""
    return f"{requester_id}_{provider_id}"


class LoggingMessagingService:
    """Messaging stand-in that only logs what would be delivered."""

    async def ensure_conversation(self, requester_id: str, provider_id: str) -> str:
        conversation_id = conversation_id_for(requester_id, provider_id)
        logger.info(
            f"Conversation {conversation_id} ensured",
            extra={"event": "conversation_ensured", "conversation_id": conversation_id},
        )
        return conversation_id

    async def post_system_message(self, conversation_id: str, text: str) -> None:
        logger.info(
            f"System message to {conversation_id}: {text}",
            extra={"event": "system_message", "conversation_id": conversation_id},
        )


_messaging_instance: Optional[MessagingService] = None


def get_messaging_service() -> MessagingService:
    global _messaging_instance

    if _messaging_instance is None:
        _messaging_instance = LoggingMessagingService()

    return _messaging_instance
