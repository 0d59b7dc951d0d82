"""Unit tests for TurnState and TurnContext.

Tests cover:
- Valid and invalid state transitions
- Terminal states
- Stage numbering and text assembly
"""

import pytest

from application.orchestrator import InvalidTurnTransitionError, TurnContext, TurnState
from domain.models.message import ToolExecution


class TestTurnStateTransitions:
    """Test the state machine transition table."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (TurnState.INIT, TurnState.RESOLVING_CONVERSATION),
            (TurnState.RESOLVING_CONVERSATION, TurnState.GENERATING),
            (TurnState.GENERATING, TurnState.EXECUTING_TOOLS),
            (TurnState.GENERATING, TurnState.PERSISTING),
            (TurnState.EXECUTING_TOOLS, TurnState.GENERATING),
            (TurnState.PERSISTING, TurnState.COMPLETE),
            (TurnState.GENERATING, TurnState.ERROR),
        ],
    )
    def test_valid_transitions(self, current: TurnState, target: TurnState) -> None:
        assert current.can_transition_to(target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (TurnState.INIT, TurnState.GENERATING),
            (TurnState.EXECUTING_TOOLS, TurnState.PERSISTING),
            (TurnState.PERSISTING, TurnState.GENERATING),
            (TurnState.COMPLETE, TurnState.ERROR),
            (TurnState.ERROR, TurnState.INIT),
        ],
    )
    def test_invalid_transitions(self, current: TurnState, target: TurnState) -> None:
        assert not current.can_transition_to(target)

    def test_terminal_states(self) -> None:
        assert TurnState.COMPLETE.is_terminal()
        assert TurnState.ERROR.is_terminal()
        assert not TurnState.GENERATING.is_terminal()


class TestTurnContext:
    """Test the per-turn working state."""

    def test_invalid_transition_raises(self) -> None:
        """Test an illegal transition raises and leaves the state unchanged."""
        turn = TurnContext(user_text="Hi")

        with pytest.raises(InvalidTurnTransitionError) as exc_info:
            turn.transition_to(TurnState.PERSISTING)

        assert "init -> persisting" in str(exc_info.value)
        assert turn.state == TurnState.INIT

    def test_stages_are_numbered_from_one(self) -> None:
        turn = TurnContext(user_text="Hi")
        turn.transition_to(TurnState.RESOLVING_CONVERSATION)

        assert turn.begin_stage() == 1
        turn.transition_to(TurnState.EXECUTING_TOOLS)
        assert turn.begin_stage() == 2
        assert turn.state == TurnState.GENERATING

    def test_content_joins_all_stage_text(self) -> None:
        turn = TurnContext(user_text="Hi")
        turn.append_text("Let me check.")
        turn.append_text(" Done.")

        assert turn.content == "Let me check. Done."

    def test_executed_call_ids(self) -> None:
        turn = TurnContext(user_text="Hi")
        turn.record_execution(ToolExecution.succeeded("call_1", "search_deals", {}, {"deals": []}, 1.0))
        turn.record_execution(ToolExecution.failed("call_2", "search_deals", {}, "boom"))

        assert turn.executed_call_ids == {"call_1", "call_2"}

    def test_turn_ids_are_unique(self) -> None:
        assert TurnContext(user_text="a").turn_id != TurnContext(user_text="b").turn_id
