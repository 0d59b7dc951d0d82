"""Get conversations query with handler."""

from dataclasses import dataclass
from typing import Any

from neuroglia.core import OperationResult
from neuroglia.mediation import Query, QueryHandler

from domain.models.caller import CallerIdentity
from domain.repositories.conversation_repository import ConversationRepository

DEFAULT_RECENT_LIMIT = 10


@dataclass
class GetConversationsQuery(Query[OperationResult[list[dict[str, Any]]]]):
    """Query to retrieve the caller's most recent conversations."""

    caller: CallerIdentity
    limit: int | None = DEFAULT_RECENT_LIMIT


class GetConversationsQueryHandler(QueryHandler[GetConversationsQuery, OperationResult[list[dict[str, Any]]]]):
    """Handle conversations retrieval for a user.

    Returns conversation summaries, most recently updated first.
    """

    def __init__(self, conversation_repository: ConversationRepository):
        super().__init__()
        self.conversation_repository = conversation_repository

    async def handle_async(self, request: GetConversationsQuery) -> OperationResult[list[dict[str, Any]]]:
        """Handle get conversations query."""
        query = request

        user_id = query.caller.user_id
        if not user_id:
            return self.ok([])  # No user ID means no conversations

        if query.limit:
            conversations = await self.conversation_repository.get_recent_by_user_async(user_id, query.limit)
        else:
            conversations = await self.conversation_repository.get_by_user_async(user_id)

        return self.ok([c.to_summary() for c in conversations])
