from .in_memory_conversation_repository import InMemoryConversationRepository

__all__ = [
    "InMemoryConversationRepository",
]
