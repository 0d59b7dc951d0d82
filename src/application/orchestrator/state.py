"""Turn state machine and per-turn working state.

This module contains the data structures the stream orchestrator mutates
while it runs one turn:
- TurnState: Enum defining the state machine states
- TurnContext: Text, tool executions and bookkeeping of the running turn
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from domain.models.message import ToolExecution

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    """State of one orchestrated turn.

    State Machine Transitions:
        INIT → RESOLVING_CONVERSATION
        RESOLVING_CONVERSATION → GENERATING (stage 1)
        GENERATING → EXECUTING_TOOLS (model announced tool calls)
        GENERATING → PERSISTING (no tool calls, or final synthesis stage)
        EXECUTING_TOOLS → GENERATING (next stage)
        PERSISTING → COMPLETE
        ANY non-terminal → ERROR
    """

    INIT = "init"
    RESOLVING_CONVERSATION = "resolving_conversation"
    GENERATING = "generating"
    EXECUTING_TOOLS = "executing_tools"
    PERSISTING = "persisting"
    COMPLETE = "complete"
    ERROR = "error"

    def can_transition_to(self, target: "TurnState") -> bool:
        """Check if transition to target state is allowed.

        Args:
            target: The target state to transition to

        Returns:
            True if the transition is valid, False otherwise
        """
        valid_transitions: dict[TurnState, set[TurnState]] = {
            TurnState.INIT: {
                TurnState.RESOLVING_CONVERSATION,
                TurnState.ERROR,
            },
            TurnState.RESOLVING_CONVERSATION: {
                TurnState.GENERATING,
                TurnState.ERROR,
            },
            TurnState.GENERATING: {
                TurnState.EXECUTING_TOOLS,
                TurnState.PERSISTING,
                TurnState.ERROR,
            },
            TurnState.EXECUTING_TOOLS: {
                TurnState.GENERATING,
                TurnState.ERROR,
            },
            TurnState.PERSISTING: {
                TurnState.COMPLETE,
                TurnState.ERROR,
            },
            TurnState.COMPLETE: set(),  # Terminal state
            TurnState.ERROR: set(),  # Terminal state
        }
        return target in valid_transitions.get(self, set())

    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no further transitions)."""
        return self in {TurnState.COMPLETE, TurnState.ERROR}


class InvalidTurnTransitionError(RuntimeError):
    """Raised when the orchestrator attempts an illegal state transition."""

    def __init__(self, current: TurnState, target: TurnState) -> None:
        super().__init__(f"Invalid turn state transition: {current.value} -> {target.value}")
        self.current = current
        self.target = target


@dataclass
class TurnContext:
    """Working state of one turn.

    Attributes:
        turn_id: Unique identifier of the turn (for logs and tool contexts)
        user_text: The user's message for this turn
        conversation_id: Resolved conversation id (None until resolved)
        state: Current state machine state
        stage: Number of the current generation stage (1-based, 0 before the first)
        text_parts: Every text delta of every stage, in emission order
        tool_executions: Every tool execution of the turn, in announcement order
        started_at: When the turn started
    """

    user_text: str
    turn_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    conversation_id: str | None = None
    state: TurnState = TurnState.INIT
    stage: int = 0
    text_parts: list[str] = field(default_factory=list)
    tool_executions: list[ToolExecution] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def transition_to(self, target: TurnState) -> None:
        """Move to ``target``.

        Raises:
            InvalidTurnTransitionError: If the transition is not allowed
        """
        if not self.state.can_transition_to(target):
            raise InvalidTurnTransitionError(self.state, target)
        logger.debug(f"Turn {self.turn_id}: {self.state.value} -> {target.value} (stage {self.stage})")
        self.state = target

    def begin_stage(self) -> int:
        self.transition_to(TurnState.GENERATING)
        self.stage += 1
        return self.stage

    def append_text(self, text: str) -> None:
        self.text_parts.append(text)

    def record_execution(self, execution: ToolExecution) -> None:
        self.tool_executions.append(execution)

    @property
    def content(self) -> str:
        """The assistant content assembled so far."""
        return "".join(self.text_parts)

    @property
    def executed_call_ids(self) -> set[str]:
        return {te.id for te in self.tool_executions}
