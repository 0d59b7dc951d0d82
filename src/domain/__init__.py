"""Domain layer for the CRM agent host.

Contains:
- entities/: Conversation aggregate root using the AggregateRoot[TState, TKey] pattern
- events/: Domain events with @cloudevent decorators
- exceptions: Domain-specific exceptions
- models/: Messages, tool executions and tool schemas
- repositories/: Abstract conversation repository
"""

from domain.entities import Conversation, ConversationState
from domain.events import (
    ConversationCreatedDomainEvent,
    ConversationMessagesAppendedDomainEvent,
    ConversationTitleUpdatedDomainEvent,
)
from domain.exceptions import (
    ConversationConcurrencyError,
    ConversationNotFoundError,
    DomainError,
    InvalidTurnError,
)
from domain.models import Message, MessageRole, ToolExecution, ToolExecutionStatus, ToolSchema

__all__ = [
    "Conversation",
    "ConversationState",
    "ConversationCreatedDomainEvent",
    "ConversationMessagesAppendedDomainEvent",
    "ConversationTitleUpdatedDomainEvent",
    "ConversationConcurrencyError",
    "ConversationNotFoundError",
    "DomainError",
    "InvalidTurnError",
    "Message",
    "MessageRole",
    "ToolExecution",
    "ToolExecutionStatus",
    "ToolSchema",
]
