"""Conversation aggregate definition using the AggregateState pattern.

DomainEvents are appended/aggregated in the Conversation and the
repository publishes them after the Conversation was persisted.

The message list is append-only: turns are added as one user message
immediately followed by one assistant message, and every append advances
the ``revision`` counter used for optimistic concurrency checks.
"""

from datetime import UTC, datetime
from typing import Any, cast
from uuid import uuid4

from multipledispatch import dispatch
from neuroglia.data.abstractions import AggregateRoot, AggregateState

from domain.events.conversation import (
    ConversationCreatedDomainEvent,
    ConversationMessagesAppendedDomainEvent,
    ConversationTitleUpdatedDomainEvent,
)
from domain.exceptions import InvalidTurnError
from domain.models.message import Message, MessageRole

TITLE_MAX_LENGTH = 60


class ConversationState(AggregateState[str]):
    """Encapsulates the persisted state for the Conversation aggregate."""

    id: str
    user_id: str
    title: str | None

    # Serialized Message dicts, oldest first
    messages: list[dict[str, Any]]
    context: dict[str, Any]

    revision: int

    created_at: datetime
    updated_at: datetime

    def __init__(self) -> None:
        super().__init__()
        self.id = ""
        self.user_id = ""
        self.title = None
        self.messages = []
        self.context = {}
        self.revision = 0
        now = datetime.now(UTC)
        self.created_at = now
        self.updated_at = now

    @dispatch(ConversationCreatedDomainEvent)
    def on(self, event: ConversationCreatedDomainEvent) -> None:  # type: ignore[override]
        """Apply the creation event to the state."""
        self.id = event.aggregate_id
        self.user_id = event.user_id
        self.title = event.title
        self.context = dict(event.context)
        self.created_at = event.created_at
        self.updated_at = event.created_at

    @dispatch(ConversationMessagesAppendedDomainEvent)
    def on(self, event: ConversationMessagesAppendedDomainEvent) -> None:  # type: ignore[override]
        """Apply the messages appended event to the state."""
        self.messages.extend(event.messages)
        self.revision += 1
        self.updated_at = event.appended_at

    @dispatch(ConversationTitleUpdatedDomainEvent)
    def on(self, event: ConversationTitleUpdatedDomainEvent) -> None:  # type: ignore[override]
        """Apply the title updated event to the state."""
        self.title = event.new_title


class Conversation(AggregateRoot[ConversationState, str]):
    """Represents a conversation between a CRM user and the assistant."""

    def __init__(
        self,
        user_id: str,
        context: dict[str, Any] | None = None,
        title: str | None = None,
        conversation_id: str | None = None,
    ) -> None:
        super().__init__()
        aggregate_id = conversation_id or str(uuid4())
        self.state.on(
            self.register_event(  # type: ignore
                ConversationCreatedDomainEvent(
                    aggregate_id=aggregate_id,
                    user_id=user_id,
                    title=title,
                    context=context,
                )
            )
        )

    def id(self) -> str:
        aggregate_id = super().id()
        if aggregate_id is None:
            raise ValueError("Conversation aggregate identifier has not been initialized")
        return cast(str, aggregate_id)

    @classmethod
    def from_state(cls, state: ConversationState) -> "Conversation":
        """Rehydrate a conversation from persisted state without emitting events."""
        conversation = cls.__new__(cls)
        AggregateRoot.__init__(conversation)
        conversation.state = state
        return conversation

    def is_owned_by(self, user_id: str) -> bool:
        return bool(user_id) and self.state.user_id == user_id

    def append_messages(self, messages: list[Message]) -> None:
        """Append a completed turn given as a message list.

        Raises:
            InvalidTurnError: If the list is not exactly one user message followed by one assistant message.
        """
        roles = [m.role for m in messages]
        if roles != [MessageRole.USER, MessageRole.ASSISTANT]:
            raise InvalidTurnError(f"expected [user, assistant], got {[r.value for r in roles]}")
        if any(m.tool_executions for m in messages if m.role != MessageRole.ASSISTANT):
            raise InvalidTurnError("only assistant messages may carry tool executions")

        self.state.on(
            self.register_event(  # type: ignore
                ConversationMessagesAppendedDomainEvent(
                    aggregate_id=self.id(),
                    messages=[m.to_dict() for m in messages],
                )
            )
        )

        if not self.state.title:
            self.update_title(messages[0].content)

    def update_title(self, new_title: str) -> bool:
        """Set the conversation title, truncated to a display-friendly length."""
        title = " ".join(new_title.split())
        if len(title) > TITLE_MAX_LENGTH:
            title = title[: TITLE_MAX_LENGTH - 3].rstrip() + "..."
        if not title or title == self.state.title:
            return False
        self.state.on(self.register_event(ConversationTitleUpdatedDomainEvent(self.id(), title)))  # type: ignore
        return True

    def get_messages(self) -> list[Message]:
        """Get all messages as Message objects."""
        return [Message.from_dict(m) for m in self.state.messages]

    def get_message_count(self) -> int:
        return len(self.state.messages)

    def get_last_message(self) -> Message | None:
        if not self.state.messages:
            return None
        return Message.from_dict(self.state.messages[-1])

    def to_summary(self) -> dict[str, Any]:
        """Lightweight representation for listings and completion payloads."""
        return {
            "id": self.id(),
            "user_id": self.state.user_id,
            "title": self.state.title,
            "message_count": self.get_message_count(),
            "revision": self.state.revision,
            "created_at": self.state.created_at.isoformat(),
            "updated_at": self.state.updated_at.isoformat(),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.to_summary(),
            "context": self.state.context,
            "messages": list(self.state.messages),
        }
