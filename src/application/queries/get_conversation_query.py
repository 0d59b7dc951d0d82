"""Get conversation query with handler."""

from dataclasses import dataclass
from typing import Any

from neuroglia.core import OperationResult
from neuroglia.mediation import Query, QueryHandler

from domain.entities.conversation import Conversation
from domain.models.caller import CallerIdentity
from domain.repositories.conversation_repository import ConversationRepository


@dataclass
class GetConversationQuery(Query[OperationResult[dict[str, Any]]]):
    """Query to retrieve a specific conversation with its messages."""

    conversation_id: str
    caller: CallerIdentity


class GetConversationQueryHandler(QueryHandler[GetConversationQuery, OperationResult[dict[str, Any]]]):
    """Handle conversation retrieval with ownership validation.

    A conversation owned by someone else is reported as not found.
    """

    def __init__(self, conversation_repository: ConversationRepository):
        super().__init__()
        self.conversation_repository = conversation_repository

    async def handle_async(self, request: GetConversationQuery) -> OperationResult[dict[str, Any]]:
        """Handle get conversation query."""
        query = request

        conversation = await self.conversation_repository.load_async(query.conversation_id, query.caller.user_id)
        if conversation is None:
            return self.not_found(Conversation, query.conversation_id)

        return self.ok(conversation.to_dict())
