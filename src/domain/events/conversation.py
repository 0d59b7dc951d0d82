"""Conversation domain events.

Events emitted by the Conversation aggregate to capture state changes.
Repositories publish them after the conversation was persisted.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from neuroglia.data.abstractions import DomainEvent
from neuroglia.eventing.cloud_events.decorators import cloudevent


@cloudevent("conversation.created.v1")
@dataclass
class ConversationCreatedDomainEvent(DomainEvent):
    """Emitted when a new conversation is created."""

    aggregate_id: str
    user_id: str
    title: str | None
    context: dict[str, Any]
    created_at: datetime

    def __init__(
        self,
        aggregate_id: str,
        user_id: str,
        title: str | None = None,
        context: dict[str, Any] | None = None,
        created_at: datetime | None = None,
    ) -> None:
        super().__init__(aggregate_id)
        self.aggregate_id = aggregate_id
        self.user_id = user_id
        self.title = title
        self.context = dict(context or {})
        self.created_at = created_at or datetime.now(UTC)


@cloudevent("conversation.messages.appended.v1")
@dataclass
class ConversationMessagesAppendedDomainEvent(DomainEvent):
    """Emitted when a completed turn is appended to a conversation."""

    aggregate_id: str
    messages: list[dict[str, Any]]
    appended_at: datetime

    def __init__(
        self,
        aggregate_id: str,
        messages: list[dict[str, Any]],
        appended_at: datetime | None = None,
    ) -> None:
        super().__init__(aggregate_id)
        self.aggregate_id = aggregate_id
        self.messages = messages
        self.appended_at = appended_at or datetime.now(UTC)


@cloudevent("conversation.title.updated.v1")
@dataclass
class ConversationTitleUpdatedDomainEvent(DomainEvent):
    """Emitted when the conversation title is set."""

    aggregate_id: str
    new_title: str

    def __init__(self, aggregate_id: str, new_title: str) -> None:
        super().__init__(aggregate_id)
        self.aggregate_id = aggregate_id
        self.new_title = new_title
