"""Unit tests for stream chunks and chunk sinks.

Tests cover:
- Chunk serialization
- Single terminal chunk enforcement
- Queue sink closing and failing sinks
"""

import pytest

from application.orchestrator import (
    ChunkEmitter,
    ChunkSinkClosedError,
    CompleteChunk,
    ContentChunk,
    ErrorChunk,
    QueueChunkSink,
)
from domain.models.message import Message, ToolExecution
from tests.fixtures.doubles import RecordingChunkSink
from tests.fixtures.factories import ConversationFactory


class FailingSink:
    async def send(self, chunk) -> None:
        raise ConnectionResetError("socket closed")


class TestChunkSerialization:
    """Test chunk payloads."""

    def test_content_chunk(self) -> None:
        chunk = ContentChunk(content="Hello", conversation_id="conv-1")

        assert chunk.to_dict() == {"type": "content", "conversation_id": "conv-1", "content": "Hello"}
        assert chunk.is_terminal is False

    def test_complete_chunk(self) -> None:
        conversation = ConversationFactory.create(conversation_id="conv-1", turns=1)
        execution = ToolExecution.succeeded("call_1", "search_deals", {"search_term": "Acme"}, {"deals": []}, 12.5)
        message = Message.create_assistant_message("You have no deals.", [execution])

        data = CompleteChunk(conversation_id="conv-1", message=message, tool_executions=[execution], conversation=conversation).to_dict()

        assert data["type"] == "complete"
        assert data["message"]["content"] == "You have no deals."
        assert data["tool_executions"][0]["id"] == "call_1"
        assert data["conversation"]["id"] == "conv-1"
        assert data["conversation"]["message_count"] == 2
        assert data["persisted"] is True
        assert data["persistence_error"] is None

    def test_error_chunk(self) -> None:
        chunk = ErrorChunk(message="Conversation not found", error_type="ConversationNotFound", conversation_id="conv-1")

        assert chunk.is_terminal is True
        assert chunk.to_dict() == {
            "type": "error",
            "conversation_id": "conv-1",
            "error_type": "ConversationNotFound",
            "message": "Conversation not found",
            "details": {},
        }


class TestChunkEmitter:
    """Test the terminal chunk guarantee."""

    @pytest.mark.asyncio
    async def test_nothing_is_sent_after_terminal_chunk(self) -> None:
        sink = RecordingChunkSink()
        emitter = ChunkEmitter(sink)
        error = ErrorChunk(message="boom", error_type="InternalError")

        await emitter.emit(ContentChunk(content="a", conversation_id="c"))
        await emitter.emit(error)
        await emitter.emit(ContentChunk(content="b", conversation_id="c"))
        await emitter.emit(ErrorChunk(message="again", error_type="InternalError"))

        assert [c.to_dict()["type"] for c in sink.chunks] == ["content", "error"]
        assert emitter.terminal is error
        assert emitter.terminated is True

    @pytest.mark.asyncio
    async def test_emitter_without_sink_tracks_terminal(self) -> None:
        emitter = ChunkEmitter(None)
        error = ErrorChunk(message="boom", error_type="InternalError")

        await emitter.emit(error)

        assert emitter.terminal is error

    @pytest.mark.asyncio
    async def test_failing_sink_counts_as_closed(self) -> None:
        emitter = ChunkEmitter(FailingSink())

        with pytest.raises(ChunkSinkClosedError, match="socket closed"):
            await emitter.emit(ContentChunk(content="a", conversation_id="c"))


class TestQueueChunkSink:
    """Test the queue-backed sink."""

    @pytest.mark.asyncio
    async def test_chunks_come_out_in_order(self) -> None:
        sink = QueueChunkSink()
        await sink.send(ContentChunk(content="a", conversation_id="c"))
        await sink.send(ContentChunk(content="b", conversation_id="c"))

        assert (await sink.get()).content == "a"
        assert (await sink.get()).content == "b"
        assert sink.empty()

    @pytest.mark.asyncio
    async def test_closed_sink_rejects_chunks(self) -> None:
        sink = QueueChunkSink()
        sink.close()

        assert sink.closed
        with pytest.raises(ChunkSinkClosedError):
            await sink.send(ContentChunk(content="a", conversation_id="c"))
