"""Domain events for the CRM agent host."""

from domain.events.conversation import (
    ConversationCreatedDomainEvent,
    ConversationMessagesAppendedDomainEvent,
    ConversationTitleUpdatedDomainEvent,
)

__all__ = [
    "ConversationCreatedDomainEvent",
    "ConversationMessagesAppendedDomainEvent",
    "ConversationTitleUpdatedDomainEvent",
]
