"""Chat controller: streamed chat turns and conversation retrieval."""

import json
import logging
from typing import Any, AsyncIterator

from classy_fastapi.decorators import get, post
from fastapi import Depends, Query
from fastapi.responses import StreamingResponse
from neuroglia.mvc import ControllerBase
from pydantic import BaseModel, Field

from api.dependencies import get_auth_context, get_current_caller, get_stream_orchestrator
from application.orchestrator import StreamChunk, StreamOrchestrator
from application.queries import GetConversationQuery, GetConversationsQuery
from application.settings import app_settings
from domain.models.caller import AuthContext, CallerIdentity

logger = logging.getLogger(__name__)


class SendMessageRequest(BaseModel):
    """Request body for sending a chat message."""

    message: str = Field(..., min_length=1, max_length=10000, description="The user's message")
    conversation_id: str | None = Field(None, description="Conversation to continue; omit to start a new one")


def format_sse(chunk: StreamChunk) -> str:
    """Format a chunk as one Server-Sent Event named after its type."""
    data = chunk.to_dict()
    return f"event: {data['type']}\ndata: {json.dumps(data, default=str)}\n\n"


class ChatController(ControllerBase):
    """Controller for chat and conversation endpoints with CQRS pattern."""

    @post("/send")
    async def send_message(
        self,
        request: SendMessageRequest,
        caller: CallerIdentity = Depends(get_current_caller),
        auth: AuthContext = Depends(get_auth_context),
        orchestrator: StreamOrchestrator = Depends(get_stream_orchestrator),
    ) -> StreamingResponse:
        """
        Send a message and stream the assistant's response.

        **Output:** a `text/event-stream` with the events:
        - `content`: an incremental piece of assistant text
        - `complete`: the final assistant message, its tool executions and the conversation summary
        - `error`: the turn failed (`error_type` tells why)

        Exactly one `complete` or `error` event ends the stream. Disconnecting
        cancels the turn and nothing is saved.
        """
        logger.info(f"Chat turn requested by {caller.user_id} (conversation={request.conversation_id or 'new'})")

        async def event_generator() -> AsyncIterator[str]:
            chunks = orchestrator.stream(
                user_text=request.message,
                caller=caller,
                auth_context=auth,
                conversation_id=request.conversation_id,
                max_buffered_chunks=app_settings.chunk_buffer_size,
            )
            try:
                async for chunk in chunks:
                    yield format_sse(chunk)
            finally:
                await chunks.aclose()

        return StreamingResponse(
            event_generator(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",
            },
        )

    @get("/conversations")
    async def list_conversations(
        self,
        limit: int = Query(app_settings.conversation_list_default_limit, ge=1, le=100),
        caller: CallerIdentity = Depends(get_current_caller),
    ) -> Any:
        """
        List the current user's most recent conversations.

        Each summary contains `id`, `title`, `message_count`, `revision`,
        `created_at` and `updated_at`, most recently updated first.
        """
        result = await self.mediator.execute_async(GetConversationsQuery(caller=caller, limit=limit))
        return self.process(result)

    @get("/conversations/{conversation_id}")
    async def get_conversation(
        self,
        conversation_id: str,
        caller: CallerIdentity = Depends(get_current_caller),
    ) -> Any:
        """Get one of the current user's conversations with its messages."""
        result = await self.mediator.execute_async(GetConversationQuery(conversation_id=conversation_id, caller=caller))
        return self.process(result)
