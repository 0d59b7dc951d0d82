"""MongoDB repository implementation for Conversation."""

import logging
from typing import Any

from neuroglia.data.infrastructure.mongo import MotorRepository
from pymongo import ReturnDocument

from domain.entities.conversation import Conversation
from domain.exceptions import ConversationConcurrencyError, ConversationNotFoundError
from domain.models.message import Message
from domain.repositories.conversation_repository import ConversationRepository

logger = logging.getLogger(__name__)


class MotorConversationRepository(MotorRepository[Conversation, str], ConversationRepository):
    """
    MongoDB-based repository for Conversation entities.

    Extends Neuroglia's MotorRepository to inherit standard CRUD operations
    and implements ConversationRepository for owner-scoped loads and
    revision-checked appends.

    The Neuroglia MotorRepository flattens the AggregateState fields to the
    document root, so filters address ``id``, ``user_id`` and ``revision``
    directly (not state.revision).
    """

    async def load_async(self, conversation_id: str, owner_id: str) -> Conversation | None:
        conversation = await self.get_async(conversation_id)
        if conversation is None or not conversation.is_owned_by(owner_id):
            logger.debug(f"Conversation {conversation_id} not found for user {owner_id}")
            return None
        return conversation

    async def create_async(self, owner_id: str, initial_context: dict[str, Any] | None = None, title: str | None = None) -> Conversation:
        conversation = Conversation(user_id=owner_id, context=initial_context, title=title)
        return await self.add_async(conversation)

    async def append_messages_async(self, conversation_id: str, messages: list[Message], expected_revision: int) -> Conversation:
        """Append one completed turn with a compare-and-set on ``revision``.

        The update only matches while the stored revision equals
        ``expected_revision``; a concurrent append makes it miss.
        """
        conversation = await self.get_async(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        if conversation.state.revision != expected_revision:
            raise ConversationConcurrencyError(conversation_id, expected_revision, conversation.state.revision)

        conversation.append_messages(messages)
        state = conversation.state

        doc = await self.collection.find_one_and_update(
            {"id": conversation_id, "revision": expected_revision},
            {
                "$push": {"messages": {"$each": state.messages[-len(messages) :]}},
                "$set": {
                    "revision": state.revision,
                    "title": state.title,
                    "updated_at": state.updated_at.isoformat(),
                },
            },
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            current = await self.get_async(conversation_id)
            if current is None:
                raise ConversationNotFoundError(conversation_id)
            raise ConversationConcurrencyError(conversation_id, expected_revision, current.state.revision)

        logger.debug(f"Appended {len(messages)} messages to conversation {conversation_id} (revision {state.revision})")
        return conversation

    async def get_by_user_async(self, user_id: str) -> list[Conversation]:
        """Retrieve conversations for a specific user.

        Sorted by updated_at descending (most recent first).
        """
        cursor = self.collection.find({"user_id": user_id}).sort("updated_at", -1)
        results = []
        async for doc in cursor:
            entity = self._deserialize_entity(doc)
            if entity:
                results.append(entity)
        return results

    async def get_recent_by_user_async(self, user_id: str, limit: int = 10) -> list[Conversation]:
        """Retrieve the most recent conversations for a user.

        Uses native MongoDB filter with sort and limit.
        """
        cursor = self.collection.find({"user_id": user_id}).sort("updated_at", -1).limit(limit)
        results = []
        async for doc in cursor:
            entity = self._deserialize_entity(doc)
            if entity:
                results.append(entity)
        return results
