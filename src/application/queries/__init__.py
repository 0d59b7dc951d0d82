"""Application queries package.

All queries are re-exported here for Neuroglia framework auto-discovery.
"""

from .get_conversation_query import GetConversationQuery, GetConversationQueryHandler
from .get_conversations_query import GetConversationsQuery, GetConversationsQueryHandler

__all__ = [
    "GetConversationQuery",
    "GetConversationQueryHandler",
    "GetConversationsQuery",
    "GetConversationsQueryHandler",
]
