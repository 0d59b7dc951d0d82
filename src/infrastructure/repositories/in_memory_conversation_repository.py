"""In-memory conversation repository implementation (for testing/development)."""

import copy
import logging
from collections import defaultdict
from datetime import UTC, datetime
from typing import Any

from neuroglia.hosting.abstractions import ApplicationBuilderBase

from domain.entities.conversation import Conversation
from domain.exceptions import ConversationConcurrencyError, ConversationNotFoundError
from domain.models.message import Message
from domain.repositories.conversation_repository import ConversationRepository

logger = logging.getLogger(__name__)


class InMemoryConversationRepository(ConversationRepository):
    """
    In-memory implementation of ConversationRepository.

    Stores snapshots of Conversation state so callers never share mutable
    aggregates with the store. Suitable for testing and development only.
    Production uses MongoDB via Motor.
    """

    def __init__(self) -> None:
        # conversation_id -> Conversation
        self._conversations: dict[str, Conversation] = {}
        # user_id -> list of conversation_ids
        self._user_conversations: dict[str, list[str]] = defaultdict(list)

    @staticmethod
    def _snapshot(conversation: Conversation) -> Conversation:
        return Conversation.from_state(copy.deepcopy(conversation.state))

    async def get_async(self, id: str) -> Conversation | None:
        conversation = self._conversations.get(id)
        return self._snapshot(conversation) if conversation else None

    async def load_async(self, conversation_id: str, owner_id: str) -> Conversation | None:
        conversation = self._conversations.get(conversation_id)
        if conversation is None or not conversation.is_owned_by(owner_id):
            logger.debug(f"Conversation {conversation_id} not found for user {owner_id}")
            return None
        return self._snapshot(conversation)

    async def create_async(self, owner_id: str, initial_context: dict[str, Any] | None = None, title: str | None = None) -> Conversation:
        conversation = Conversation(user_id=owner_id, context=initial_context, title=title)
        return await self.add_async(conversation)

    async def append_messages_async(self, conversation_id: str, messages: list[Message], expected_revision: int) -> Conversation:
        stored = self._conversations.get(conversation_id)
        if stored is None:
            raise ConversationNotFoundError(conversation_id)
        if stored.state.revision != expected_revision:
            raise ConversationConcurrencyError(conversation_id, expected_revision, stored.state.revision)

        updated = self._snapshot(stored)
        updated.append_messages(messages)
        self._conversations[conversation_id] = updated
        logger.debug(f"Appended {len(messages)} messages to conversation {conversation_id} (revision {updated.state.revision})")
        return self._snapshot(updated)

    async def add_async(self, entity: Conversation) -> Conversation:
        conv_id = entity.id()
        user_id = entity.state.user_id

        entity.state.updated_at = datetime.now(UTC)
        self._conversations[conv_id] = self._snapshot(entity)

        if conv_id not in self._user_conversations[user_id]:
            self._user_conversations[user_id].append(conv_id)

        logger.debug(f"Added conversation {conv_id} for user {user_id}")
        return entity

    async def update_async(self, entity: Conversation) -> Conversation:
        conv_id = entity.id()
        entity.state.updated_at = datetime.now(UTC)
        self._conversations[conv_id] = self._snapshot(entity)
        logger.debug(f"Updated conversation {conv_id}")
        return entity

    async def remove_async(self, id: str) -> None:
        conversation = self._conversations.pop(id, None)
        if conversation:
            user_id = conversation.state.user_id
            if id in self._user_conversations.get(user_id, []):
                self._user_conversations[user_id].remove(id)
            logger.debug(f"Removed conversation {id}")

    async def contains_async(self, id: str) -> bool:
        return id in self._conversations

    async def _do_add_async(self, entity: Conversation) -> Conversation:
        """Internal add implementation required by Repository base class."""
        return await self.add_async(entity)

    async def _do_update_async(self, entity: Conversation) -> Conversation:
        """Internal update implementation required by Repository base class."""
        return await self.update_async(entity)

    async def _do_remove_async(self, id: str) -> None:
        """Internal remove implementation required by Repository base class."""
        await self.remove_async(id)

    async def get_by_user_async(self, user_id: str) -> list[Conversation]:
        conv_ids = self._user_conversations.get(user_id, [])
        conversations = [self._snapshot(self._conversations[cid]) for cid in conv_ids if cid in self._conversations]
        return sorted(conversations, key=lambda c: c.state.updated_at, reverse=True)

    async def get_recent_by_user_async(self, user_id: str, limit: int = 10) -> list[Conversation]:
        conversations = await self.get_by_user_async(user_id)
        return conversations[:limit]

    @staticmethod
    def configure(builder: ApplicationBuilderBase) -> None:
        """
        Configure InMemoryConversationRepository in the service collection.

        Args:
            builder: The application builder
        """
        repository = InMemoryConversationRepository()

        builder.services.add_singleton(InMemoryConversationRepository, singleton=repository)
        builder.services.add_singleton(ConversationRepository, singleton=repository)

        logger.info("Configured InMemoryConversationRepository")
