"""Stream chunk contracts and chunk sinks.

A turn emits zero or more ``content`` chunks followed by exactly one
terminal chunk (``complete`` or ``error``). Nothing is emitted after the
terminal chunk; ``ChunkEmitter`` enforces this for every sink.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol, Union

from domain.entities.conversation import Conversation
from domain.models.message import Message, ToolExecution
from observability import chat_chunks_sent

logger = logging.getLogger(__name__)


class ChunkKind(str, Enum):
    """Discriminator of stream chunks."""

    CONTENT = "content"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class ContentChunk:
    """Incremental assistant text."""

    content: str
    conversation_id: str
    kind: ChunkKind = field(default=ChunkKind.CONTENT, init=False)

    @property
    def is_terminal(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "conversation_id": self.conversation_id,
            "content": self.content,
        }


@dataclass(frozen=True)
class CompleteChunk:
    """Terminal chunk of a successful turn.

    ``persisted`` is False when the turn could not be appended to the
    conversation; ``conversation`` is then the last known (stale) state.
    """

    conversation_id: str
    message: Message
    tool_executions: list[ToolExecution]
    conversation: Optional[Conversation] = None
    persisted: bool = True
    persistence_error: Optional[dict[str, Any]] = None
    kind: ChunkKind = field(default=ChunkKind.COMPLETE, init=False)

    @property
    def is_terminal(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "conversation_id": self.conversation_id,
            "message": self.message.to_dict(),
            "tool_executions": [te.to_dict() for te in self.tool_executions],
            "conversation": self.conversation.to_summary() if self.conversation else None,
            "persisted": self.persisted,
            "persistence_error": self.persistence_error,
        }


@dataclass(frozen=True)
class ErrorChunk:
    """Terminal chunk of a failed turn."""

    message: str
    error_type: str
    conversation_id: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)
    kind: ChunkKind = field(default=ChunkKind.ERROR, init=False)

    @property
    def is_terminal(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "conversation_id": self.conversation_id,
            "error_type": self.error_type,
            "message": self.message,
            "details": self.details,
        }


StreamChunk = Union[ContentChunk, CompleteChunk, ErrorChunk]
TerminalChunk = Union[CompleteChunk, ErrorChunk]


class ChunkSinkClosedError(Exception):
    """Raised by a chunk sink whose consumer went away."""


class ChunkSink(Protocol):
    """Caller-supplied consumer of stream chunks."""

    async def send(self, chunk: StreamChunk) -> None:
        """Receive one chunk. Raise ChunkSinkClosedError when the consumer is gone."""
        ...


class QueueChunkSink:
    """Chunk sink backed by an asyncio queue.

    With a positive ``maxsize`` a slow consumer slows the producer down once
    the buffer is full.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[StreamChunk] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, chunk: StreamChunk) -> None:
        if self._closed:
            raise ChunkSinkClosedError("Chunk sink is closed")
        await self._queue.put(chunk)

    async def get(self) -> StreamChunk:
        return await self._queue.get()

    def empty(self) -> bool:
        return self._queue.empty()

    def close(self) -> None:
        self._closed = True


class ChunkEmitter:
    """Writes chunks of one turn to a sink, guaranteeing a single terminal chunk."""

    def __init__(self, sink: Optional[ChunkSink]) -> None:
        self._sink = sink
        self._terminal: Optional[TerminalChunk] = None

    @property
    def terminal(self) -> Optional[TerminalChunk]:
        return self._terminal

    @property
    def terminated(self) -> bool:
        return self._terminal is not None

    async def emit(self, chunk: StreamChunk) -> None:
        """Send a chunk unless the turn already terminated.

        Raises:
            ChunkSinkClosedError: If the sink's consumer went away or the sink failed
        """
        if self._terminal is not None:
            logger.warning(f"Dropping {chunk.kind.value} chunk emitted after the terminal chunk")
            return
        if chunk.is_terminal:
            self._terminal = chunk  # type: ignore[assignment]
        if self._sink is None:
            return
        try:
            await self._sink.send(chunk)
        except ChunkSinkClosedError:
            raise
        except Exception as e:
            logger.warning(f"Chunk sink failed, treating it as disconnected: {e}")
            raise ChunkSinkClosedError(str(e)) from e
        chat_chunks_sent.add(1, {"kind": chunk.kind.value})
