"""Domain layer tests for the Conversation aggregate.

Tests the core domain logic including:
- Conversation creation and initialization
- Appending completed turns and revision tracking
- Automatic titles
- Domain events generation
"""

import pytest

from domain.entities.conversation import TITLE_MAX_LENGTH, Conversation
from domain.events.conversation import (
    ConversationCreatedDomainEvent,
    ConversationMessagesAppendedDomainEvent,
    ConversationTitleUpdatedDomainEvent,
)
from domain.exceptions import InvalidTurnError
from domain.models.message import Message, MessageRole, ToolExecution
from tests.fixtures.factories import ConversationFactory, MessageFactory


class TestConversationCreation:
    """Test Conversation aggregate creation."""

    def test_create_conversation_with_defaults(self) -> None:
        conversation = Conversation(user_id="user-123")

        assert conversation.id() != ""
        assert conversation.state.user_id == "user-123"
        assert conversation.state.title is None
        assert conversation.state.messages == []
        assert conversation.state.context == {}
        assert conversation.state.revision == 0

    def test_create_conversation_with_context(self) -> None:
        context = {"agent_config": {"enable_extended_thinking": False}}

        conversation = Conversation(user_id="user-123", context=context, conversation_id="conv-1")

        assert conversation.id() == "conv-1"
        assert conversation.state.context == context
        assert conversation.state.context is not context

    def test_creation_raises_created_event(self) -> None:
        conversation = Conversation(user_id="user-123")

        events = conversation.domain_events
        assert len(events) == 1
        assert isinstance(events[0], ConversationCreatedDomainEvent)
        assert events[0].user_id == "user-123"

    def test_ownership(self) -> None:
        conversation = Conversation(user_id="user-123")

        assert conversation.is_owned_by("user-123")
        assert not conversation.is_owned_by("someone-else")
        assert not conversation.is_owned_by("")


class TestConversationTurns:
    """Test appending completed turns."""

    def test_append_advances_revision(self) -> None:
        conversation = ConversationFactory.create()

        conversation.append_messages(MessageFactory.turn(1))
        conversation.append_messages(MessageFactory.turn(2))

        assert conversation.state.revision == 2
        assert conversation.get_message_count() == 4
        assert [m.role for m in conversation.get_messages()] == [MessageRole.USER, MessageRole.ASSISTANT] * 2
        assert conversation.get_last_message().content == "Answer 2"

    def test_append_keeps_tool_executions(self) -> None:
        conversation = ConversationFactory.create()
        execution = ToolExecution.failed("call_1", "search_deals", {"search_term": "Acme"}, "CRM unavailable")

        conversation.append_messages([MessageFactory.user(), MessageFactory.assistant("Sorry.", [execution])])

        stored = conversation.get_messages()[1].tool_executions
        assert len(stored) == 1
        assert stored[0].id == "call_1"
        assert stored[0].error == "CRM unavailable"

    def test_append_raises_event(self) -> None:
        conversation = ConversationFactory.create(title="Pipeline review")
        conversation.clear_pending_events()

        conversation.append_messages(MessageFactory.turn())

        events = conversation.domain_events
        assert len(events) == 1
        assert isinstance(events[0], ConversationMessagesAppendedDomainEvent)
        assert len(events[0].messages) == 2

    @pytest.mark.parametrize(
        "messages",
        [
            [],
            [Message.create_user_message("only a question")],
            [Message.create_assistant_message("a"), Message.create_user_message("q")],
            [Message.create_user_message("q"), Message.create_assistant_message("a"), Message.create_user_message("q2")],
        ],
    )
    def test_invalid_turn_is_rejected(self, messages: list[Message]) -> None:
        conversation = ConversationFactory.create()

        with pytest.raises(InvalidTurnError):
            conversation.append_messages(messages)

        assert conversation.state.revision == 0
        assert conversation.state.messages == []

    def test_user_message_with_tool_executions_is_rejected(self) -> None:
        conversation = ConversationFactory.create()
        user = MessageFactory.user()
        user.tool_executions.append(ToolExecution.failed("call_1", "search_deals", {}, "boom"))

        with pytest.raises(InvalidTurnError):
            conversation.append_messages([user, MessageFactory.assistant()])


class TestConversationTitle:
    """Test automatic titles."""

    def test_first_user_message_becomes_title(self) -> None:
        conversation = ConversationFactory.create()

        conversation.append_messages([MessageFactory.user("Show   me\nmy deals"), MessageFactory.assistant()])

        assert conversation.state.title == "Show me my deals"
        assert any(isinstance(e, ConversationTitleUpdatedDomainEvent) for e in conversation.domain_events)

    def test_long_title_is_truncated(self) -> None:
        conversation = ConversationFactory.create()

        conversation.append_messages([MessageFactory.user("word " * 40), MessageFactory.assistant()])

        assert len(conversation.state.title) <= TITLE_MAX_LENGTH
        assert conversation.state.title.endswith("...")

    def test_existing_title_is_kept(self) -> None:
        conversation = ConversationFactory.create(title="Q3 pipeline")

        conversation.append_messages(MessageFactory.turn())

        assert conversation.state.title == "Q3 pipeline"


class TestConversationSerialization:
    """Test summaries and full representations."""

    def test_summary(self) -> None:
        conversation = ConversationFactory.create(conversation_id="conv-1", turns=1)

        summary = conversation.to_summary()

        assert summary["id"] == "conv-1"
        assert summary["message_count"] == 2
        assert summary["revision"] == 1
        assert "messages" not in summary

    def test_from_state_does_not_raise_events(self) -> None:
        original = ConversationFactory.create(turns=1)

        restored = Conversation.from_state(original.state)

        assert restored.id() == original.id()
        assert restored.domain_events == []
        assert restored.to_dict()["messages"] == original.state.messages
