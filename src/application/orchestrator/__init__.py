"""Stream orchestration of chat turns.

Architecture:
    ChatController → StreamOrchestrator.stream()
        → ConversationRepository (resolve/create, append)
        → LlmProvider.open_stream() per stage
        → ToolExecutor → ToolRegistry (buffered tool calls)
        → ChunkSink (content..., complete | error)

Components:
- StreamOrchestrator: Runs one turn through its state machine
- TurnState / TurnContext: State machine and working state of a turn
- ToolExecutor: Normalizes tool calls into ToolExecution records
- Chunks: Wire contracts of the emitted stream
"""

from application.orchestrator.chunks import (
    ChunkEmitter,
    ChunkKind,
    ChunkSink,
    ChunkSinkClosedError,
    CompleteChunk,
    ContentChunk,
    ErrorChunk,
    QueueChunkSink,
    StreamChunk,
    TerminalChunk,
)
from application.orchestrator.errors import (
    AuthenticationMissingError,
    ConversationCreateFailedError,
    ConversationLookupError,
    LlmStreamError,
    OrchestratorError,
    PersistenceError,
)
from application.orchestrator.locks import ConversationLockRegistry
from application.orchestrator.state import InvalidTurnTransitionError, TurnContext, TurnState
from application.orchestrator.stream_orchestrator import OrchestratorConfig, StreamOrchestrator
from application.orchestrator.tool_executor import ToolExecuteFn, ToolExecutor, tool_result_message

__all__ = [
    # Orchestrator
    "StreamOrchestrator",
    "OrchestratorConfig",
    "ConversationLockRegistry",
    # State
    "TurnState",
    "TurnContext",
    "InvalidTurnTransitionError",
    # Tools
    "ToolExecutor",
    "ToolExecuteFn",
    "tool_result_message",
    # Chunks
    "ChunkKind",
    "ContentChunk",
    "CompleteChunk",
    "ErrorChunk",
    "StreamChunk",
    "TerminalChunk",
    "ChunkSink",
    "ChunkSinkClosedError",
    "ChunkEmitter",
    "QueueChunkSink",
    # Errors
    "OrchestratorError",
    "AuthenticationMissingError",
    "ConversationLookupError",
    "ConversationCreateFailedError",
    "LlmStreamError",
    "PersistenceError",
]
