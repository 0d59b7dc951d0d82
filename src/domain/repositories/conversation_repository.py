"""Abstract repository for Conversation aggregates.

Beyond the generic Repository contract, the conversation store exposes the
three operations the orchestrator relies on (owner-scoped load, create and
revision-checked append) plus the listing queries used by the API.
"""

from abc import ABC, abstractmethod
from typing import Any

from neuroglia.data.infrastructure.abstractions import Repository

from domain.entities.conversation import Conversation
from domain.models.message import Message


class ConversationRepository(Repository[Conversation, str], ABC):
    """Abstract repository for Conversation"""

    @abstractmethod
    async def load_async(self, conversation_id: str, owner_id: str) -> Conversation | None:
        """Load a conversation owned by ``owner_id``.

        Returns None when the conversation does not exist or belongs to someone else,
        so callers cannot distinguish the two cases.
        """
        pass

    @abstractmethod
    async def create_async(self, owner_id: str, initial_context: dict[str, Any] | None = None, title: str | None = None) -> Conversation:
        """Create and persist a new conversation for ``owner_id``."""
        pass

    @abstractmethod
    async def append_messages_async(self, conversation_id: str, messages: list[Message], expected_revision: int) -> Conversation:
        """Append one completed turn and return the updated conversation.

        Raises:
            ConversationNotFoundError: If the conversation no longer exists.
            ConversationConcurrencyError: If the stored revision differs from ``expected_revision``.
        """
        pass

    @abstractmethod
    async def get_by_user_async(self, user_id: str) -> list[Conversation]:
        """Retrieve conversations for a specific user, most recently updated first."""
        pass

    @abstractmethod
    async def get_recent_by_user_async(self, user_id: str, limit: int = 10) -> list[Conversation]:
        """Retrieve the most recent conversations for a user."""
        pass
