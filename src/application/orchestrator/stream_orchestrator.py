"""Stream orchestrator: runs one chat turn against an LLM provider.

A turn resolves (or creates) the conversation, then runs a bounded loop of
generation stages. Text deltas are forwarded to the chunk sink as soon as
they arrive; tool calls are buffered and executed after the stage ends, in
the order they were announced. Their results are fed to the next stage. The
stage after the last tool round is a synthesis call that offers no tools,
so the loop always terminates. Finally the user message and the single
assistant message are appended to the conversation and a terminal chunk is
emitted.
"""

import asyncio
import copy
import logging
import time
from contextlib import aclosing, suppress
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, AsyncIterator, Optional

from neuroglia.hosting.abstractions import ApplicationBuilderBase
from opentelemetry import trace

from application.agents.llm_provider import LlmMessage, LlmProvider, LlmProviderError, LlmStreamEvent, LlmStreamEventType, LlmToolCall
from application.agents.system_prompt import build_system_prompt
from application.orchestrator.chunks import (
    ChunkEmitter,
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
from application.orchestrator.state import TurnContext, TurnState
from application.orchestrator.tool_executor import ToolExecuteFn, ToolExecutor, tool_result_message
from application.services.tool_registry import ToolRegistry
from application.settings import DEFAULT_SYSTEM_PROMPT, Settings
from domain.entities.conversation import Conversation
from domain.exceptions import ConversationConcurrencyError, ConversationNotFoundError
from domain.models.caller import AuthContext, CallerIdentity
from domain.models.message import Message, MessageRole, ToolExecution
from domain.models.tool import ToolSchema
from domain.repositories.conversation_repository import ConversationRepository
from observability import (
    chat_turn_duration,
    chat_turns_completed,
    chat_turns_failed,
    chat_turns_started,
    conversation_persistence_failures,
    conversations_created,
    llm_request_count,
    llm_request_time,
    llm_tool_calls,
)

log = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def default_initial_context() -> dict[str, Any]:
    return {"agent_config": {"enable_extended_thinking": False, "thinking_budget": "standard"}}


@dataclass
class OrchestratorConfig:
    """Tuning of the stream orchestrator.

    Attributes:
        max_tool_rounds: Stages that may request tools before the final synthesis stage
        parallel_tool_execution: Execute one stage's tool calls concurrently (results keep call order)
        tool_execution_timeout_seconds: Timeout of a single tool call
        llm_stream_idle_timeout_seconds: Max wait for the next provider event (None = no limit)
        history_max_messages: Prior messages sent to the model (0 = all)
        persistence_retry_attempts: Extra append attempts after a transient store failure
        persistence_retry_delay_seconds: Base delay between append attempts
        system_prompt: Persona and general instructions
        initial_context: Context map of newly created conversations
    """

    max_tool_rounds: int = 2
    parallel_tool_execution: bool = False
    tool_execution_timeout_seconds: float = 30.0
    llm_stream_idle_timeout_seconds: Optional[float] = 60.0
    history_max_messages: int = 50
    persistence_retry_attempts: int = 2
    persistence_retry_delay_seconds: float = 0.1
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    initial_context: dict[str, Any] = field(default_factory=default_initial_context)

    @classmethod
    def from_settings(cls, settings: Settings) -> "OrchestratorConfig":
        return cls(
            max_tool_rounds=settings.agent_max_tool_rounds,
            parallel_tool_execution=settings.agent_parallel_tool_execution,
            tool_execution_timeout_seconds=settings.tool_execution_timeout_seconds,
            llm_stream_idle_timeout_seconds=settings.llm_stream_idle_timeout_seconds or None,
            history_max_messages=settings.conversation_history_max_messages,
            persistence_retry_attempts=settings.persistence_retry_attempts,
            system_prompt=settings.system_prompt,
        )


class StreamOrchestrator:
    """Runs chat turns: conversation lifecycle, staged generation, tool execution and persistence.

    Turns of different conversations run independently. Turns of the same
    conversation are serialized by a per-conversation lock, and the append
    is checked against the revision the turn was generated from.
    """

    def __init__(
        self,
        conversation_repository: ConversationRepository,
        tool_registry: ToolRegistry,
        llm_provider: LlmProvider,
        config: Optional[OrchestratorConfig] = None,
        lock_registry: Optional[ConversationLockRegistry] = None,
    ) -> None:
        self._conversation_repository = conversation_repository
        self._tool_registry = tool_registry
        self._llm_provider = llm_provider
        self._config = config or OrchestratorConfig()
        self._locks = lock_registry or ConversationLockRegistry()
        self._tool_executor = ToolExecutor(tool_registry, timeout_seconds=self._config.tool_execution_timeout_seconds)

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    # =========================================================================
    # Public API
    # =========================================================================

    async def run(
        self,
        user_text: str,
        caller: Optional[CallerIdentity],
        auth_context: Optional[AuthContext] = None,
        conversation_id: Optional[str] = None,
        sink: Optional[ChunkSink] = None,
    ) -> TerminalChunk:
        """Run one turn and return its terminal chunk.

        Chunks are written to ``sink`` as they are produced; the returned
        value is the same terminal chunk the sink received. Turn failures are
        reported as an ErrorChunk and never raised. Task cancellation
        propagates after the provider stream has been closed.

        Args:
            user_text: The user's message
            caller: Authenticated caller (required)
            auth_context: Credentials forwarded to tools
            conversation_id: Existing conversation to continue, or None to start a new one
            sink: Consumer of the emitted chunks

        Returns:
            The CompleteChunk or ErrorChunk that ended the turn
        """
        turn = TurnContext(user_text=user_text, conversation_id=conversation_id or None)
        emitter = ChunkEmitter(sink)
        start_time = time.perf_counter()
        chat_turns_started.add(1)

        with tracer.start_as_current_span("stream_orchestrator.run") as span:
            span.set_attribute("turn.id", turn.turn_id)
            if turn.conversation_id:
                span.set_attribute("conversation.id", turn.conversation_id)

            try:
                result: TerminalChunk = await self._run_turn(turn, caller, auth_context or AuthContext(), emitter)
            except OrchestratorError as e:
                log.warning(f"Turn {turn.turn_id} failed in state {turn.state.value}: [{e.error_type}] {e.message}")
                result = await self._fail(turn, emitter, e.message, e.error_type, e.to_dict())
            except ChunkSinkClosedError:
                log.info(f"Chunk sink of turn {turn.turn_id} disconnected in state {turn.state.value}; turn abandoned")
                result = self._abandon(turn)
            except Exception as e:
                log.exception(f"Unexpected error in turn {turn.turn_id}")
                result = await self._fail(turn, emitter, f"Unexpected error: {str(e) or type(e).__name__}", "InternalError")
            finally:
                chat_turn_duration.record((time.perf_counter() - start_time) * 1000, {"state": turn.state.value})

            span.set_attribute("turn.state", turn.state.value)
            span.set_attribute("turn.stages", turn.stage)
            span.set_attribute("turn.tool_executions", len(turn.tool_executions))

        return result

    async def stream(
        self,
        user_text: str,
        caller: Optional[CallerIdentity],
        auth_context: Optional[AuthContext] = None,
        conversation_id: Optional[str] = None,
        max_buffered_chunks: int = 0,
    ) -> AsyncGenerator[StreamChunk, None]:
        """Run one turn in a background task and yield its chunks.

        Closing the iterator before the terminal chunk cancels the turn: the
        provider stream and any running tool call are abandoned and nothing
        is persisted.
        """
        sink = QueueChunkSink(maxsize=max_buffered_chunks)
        task = asyncio.create_task(self.run(user_text, caller, auth_context, conversation_id, sink))
        pending_get: Optional[asyncio.Future[StreamChunk]] = None
        try:
            while True:
                if pending_get is None:
                    pending_get = asyncio.ensure_future(sink.get())
                done, _ = await asyncio.wait({pending_get, task}, return_when=asyncio.FIRST_COMPLETED)
                if pending_get in done:
                    chunk = pending_get.result()
                    pending_get = None
                    yield chunk
                    if chunk.is_terminal:
                        return
                elif sink.empty():
                    log.warning("Turn task finished without a terminal chunk")
                    return
        finally:
            sink.close()
            if pending_get is not None:
                pending_get.cancel()
            if not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task

    # =========================================================================
    # Turn phases
    # =========================================================================

    async def _run_turn(
        self,
        turn: TurnContext,
        caller: Optional[CallerIdentity],
        auth: AuthContext,
        emitter: ChunkEmitter,
    ) -> TerminalChunk:
        if caller is None or not caller.user_id:
            raise AuthenticationMissingError()

        turn.transition_to(TurnState.RESOLVING_CONVERSATION)
        conversation: Optional[Conversation] = None
        if turn.conversation_id is None:
            conversation = await self._create_conversation(caller)
            turn.conversation_id = conversation.id()

        async with self._locks.hold(turn.conversation_id):
            if conversation is None:
                conversation = await self._load_conversation(turn.conversation_id, caller)
            return await self._generate_and_persist(turn, conversation, caller, auth, emitter)

    async def _create_conversation(self, caller: CallerIdentity) -> Conversation:
        try:
            conversation = await self._conversation_repository.create_async(
                owner_id=caller.user_id,
                initial_context=copy.deepcopy(self._config.initial_context),
            )
        except Exception as e:
            log.error(f"Failed to create conversation for user {caller.user_id}: {e}")
            raise ConversationCreateFailedError(f"Failed to create conversation: {e}") from e

        conversations_created.add(1)
        log.info(f"Created conversation {conversation.id()} for user {caller.user_id}")
        return conversation

    async def _load_conversation(self, conversation_id: str, caller: CallerIdentity) -> Conversation:
        conversation = await self._conversation_repository.load_async(conversation_id, caller.user_id)
        if conversation is None:
            raise ConversationLookupError(conversation_id)
        return conversation

    async def _list_tools(self, auth: AuthContext) -> list[ToolSchema]:
        try:
            return await self._tool_registry.list_tool_schemas(auth.access_token)
        except Exception as e:
            log.warning(f"Could not list tools, continuing without tools: {e}")
            return []

    async def _generate_and_persist(
        self,
        turn: TurnContext,
        conversation: Conversation,
        caller: CallerIdentity,
        auth: AuthContext,
        emitter: ChunkEmitter,
    ) -> TerminalChunk:
        conversation_id = conversation.id()
        history = self._build_history(conversation, turn.user_text)
        tool_schemas = await self._list_tools(auth)
        execute_tool = self._tool_executor.create_executor(conversation_id, caller, auth.access_token, turn.turn_id)
        max_rounds = max(0, self._config.max_tool_rounds)

        while True:
            stage = turn.begin_stage()
            offers_tools = stage <= max_rounds
            system_prompt = build_system_prompt(tool_schemas, self._config.system_prompt, allow_tools=offers_tools)
            tools = tool_schemas if offers_tools and tool_schemas else None

            stage_text, tool_calls = await self._run_stage(turn, history, tools, system_prompt, emitter)
            if not tool_calls:
                break

            if not offers_tools:
                log.warning(f"Turn {turn.turn_id}: {len(tool_calls)} tool call(s) requested after the last tool round; not executed")
                for call in tool_calls:
                    turn.record_execution(
                        ToolExecution.failed(call.id, call.name, call.arguments, f"Tool call not executed: maximum of {max_rounds} tool rounds reached")
                    )
                break

            turn.transition_to(TurnState.EXECUTING_TOOLS)
            executions = await self._execute_tools(tool_calls, execute_tool)
            for execution in executions:
                turn.record_execution(execution)

            history.append(LlmMessage.assistant(stage_text, tool_calls=tool_calls))
            history.extend(tool_result_message(execution) for execution in executions)

        turn.transition_to(TurnState.PERSISTING)
        user_message = Message.create_user_message(turn.user_text, created_at=turn.started_at)
        assistant_message = Message.create_assistant_message(turn.content, turn.tool_executions)
        updated, persistence_error = await self._persist_turn(conversation, [user_message, assistant_message])

        turn.transition_to(TurnState.COMPLETE)
        chunk = CompleteChunk(
            conversation_id=conversation_id,
            message=assistant_message,
            tool_executions=list(turn.tool_executions),
            conversation=updated,
            persisted=persistence_error is None,
            persistence_error=persistence_error.to_dict() if persistence_error else None,
        )
        try:
            await emitter.emit(chunk)
        except ChunkSinkClosedError:
            log.info(f"Chunk sink of turn {turn.turn_id} disconnected before the complete chunk")

        chat_turns_completed.add(1, {"persisted": str(chunk.persisted).lower()})
        log.info(
            f"Turn {turn.turn_id} complete: conversation={conversation_id}, stages={turn.stage}, "
            f"tool_executions={len(turn.tool_executions)}, persisted={chunk.persisted}"
        )
        return chunk

    async def _run_stage(
        self,
        turn: TurnContext,
        history: list[LlmMessage],
        tools: Optional[list[ToolSchema]],
        system_prompt: str,
        emitter: ChunkEmitter,
    ) -> tuple[str, list[LlmToolCall]]:
        """Run one generation stage.

        Returns:
            The stage's text and the tool calls it announced, in order
        """
        stage = turn.stage
        provider_name = self._llm_provider.provider_type.value
        stage_parts: list[str] = []
        tool_calls: list[LlmToolCall] = []
        seen_call_ids = turn.executed_call_ids
        completed = False
        start_time = time.perf_counter()
        llm_request_count.add(1, {"provider": provider_name, "stage": str(stage)})

        with tracer.start_as_current_span("stream_orchestrator.stage") as span:
            span.set_attribute("stage.number", stage)
            span.set_attribute("stage.offers_tools", tools is not None)
            span.set_attribute("llm.provider", provider_name)

            try:
                async with aclosing(self._llm_provider.open_stream(list(history), tools, system_prompt)) as stream:
                    while True:
                        try:
                            event = await self._next_event(stream, stage)
                        except StopAsyncIteration:
                            break

                        if event.type == LlmStreamEventType.TEXT_DELTA:
                            if not event.text:
                                continue
                            stage_parts.append(event.text)
                            turn.append_text(event.text)
                            await emitter.emit(ContentChunk(content=event.text, conversation_id=turn.conversation_id or ""))

                        elif event.type == LlmStreamEventType.TOOL_CALL_ANNOUNCED:
                            call = event.tool_call
                            if call is None:
                                log.warning(f"Stage {stage}: tool call event without a tool call; ignored")
                                continue
                            if call.id in seen_call_ids:
                                log.warning(f"Stage {stage}: duplicate tool call id {call.id} ({call.name}); ignored")
                                continue
                            seen_call_ids.add(call.id)
                            tool_calls.append(call)

                        elif event.type == LlmStreamEventType.TURN_COMPLETE:
                            completed = True
                            break

            except (ChunkSinkClosedError, OrchestratorError):
                raise
            except LlmProviderError as e:
                span.set_attribute("error", True)
                raise LlmStreamError(e.message, stage, e.is_retryable, {"provider": e.provider, "provider_error_code": e.error_code}) from e
            except TimeoutError as e:
                span.set_attribute("error", True)
                raise LlmStreamError(str(e) or type(e).__name__, stage, is_retryable=True) from e
            except Exception as e:
                span.set_attribute("error", True)
                raise LlmStreamError(str(e) or type(e).__name__, stage) from e
            finally:
                llm_request_time.record((time.perf_counter() - start_time) * 1000, {"provider": provider_name})

            if not completed:
                raise LlmStreamError("Provider stream ended before the turn was complete", stage, is_retryable=True)

            if tool_calls:
                llm_tool_calls.add(len(tool_calls), {"provider": provider_name})
            span.set_attribute("stage.tool_calls", len(tool_calls))

        log.debug(f"Turn {turn.turn_id} stage {stage}: {len(stage_parts)} text deltas, {len(tool_calls)} tool calls")
        return "".join(stage_parts), tool_calls

    async def _next_event(self, stream: AsyncIterator[LlmStreamEvent], stage: int) -> LlmStreamEvent:
        timeout = self._config.llm_stream_idle_timeout_seconds
        if not timeout:
            return await anext(stream)

        deadline: Optional[asyncio.Timeout] = None
        try:
            async with asyncio.timeout(timeout) as deadline:
                return await anext(stream)
        except TimeoutError as e:
            if deadline is not None and deadline.expired():
                raise LlmStreamError(f"Provider stream stalled for more than {timeout:g}s", stage, is_retryable=True) from e
            raise

    async def _execute_tools(self, tool_calls: list[LlmToolCall], execute_tool: ToolExecuteFn) -> list[ToolExecution]:
        if self._config.parallel_tool_execution and len(tool_calls) > 1:
            return list(await asyncio.gather(*(execute_tool(call) for call in tool_calls)))

        executions: list[ToolExecution] = []
        for call in tool_calls:
            executions.append(await execute_tool(call))
        return executions

    async def _persist_turn(self, conversation: Conversation, messages: list[Message]) -> tuple[Conversation, Optional[PersistenceError]]:
        """Append the turn's messages.

        Returns:
            The updated conversation (or the stale one on failure) and the failure, if any
        """
        conversation_id = conversation.id()
        attempts = 1 + max(0, self._config.persistence_retry_attempts)
        error: Optional[PersistenceError] = None

        for attempt in range(1, attempts + 1):
            try:
                updated = await self._conversation_repository.append_messages_async(
                    conversation_id,
                    messages,
                    expected_revision=conversation.state.revision,
                )
                return updated, None
            except (ConversationConcurrencyError, ConversationNotFoundError) as e:
                error = PersistenceError(str(e), is_retryable=False)
                break
            except Exception as e:
                error = PersistenceError(f"Failed to append messages: {e}")
                log.warning(f"Append to conversation {conversation_id} failed (attempt {attempt}/{attempts}): {e}")
                if attempt < attempts:
                    await asyncio.sleep(self._config.persistence_retry_delay_seconds * attempt)

        conversation_persistence_failures.add(1)
        log.error(f"Turn could not be persisted to conversation {conversation_id}: {error.message if error else 'unknown error'}")
        return conversation, error

    # =========================================================================
    # Failure handling
    # =========================================================================

    async def _fail(
        self,
        turn: TurnContext,
        emitter: ChunkEmitter,
        message: str,
        error_type: str,
        details: Optional[dict[str, Any]] = None,
    ) -> TerminalChunk:
        if emitter.terminal is not None:
            return emitter.terminal

        if not turn.state.is_terminal():
            turn.transition_to(TurnState.ERROR)

        chunk = ErrorChunk(
            message=message,
            error_type=error_type,
            conversation_id=turn.conversation_id,
            details=details or {},
        )
        try:
            await emitter.emit(chunk)
        except ChunkSinkClosedError:
            log.info(f"Chunk sink of turn {turn.turn_id} disconnected before the error chunk")

        chat_turns_failed.add(1, {"error_type": error_type})
        return chunk

    def _abandon(self, turn: TurnContext) -> TerminalChunk:
        if not turn.state.is_terminal():
            turn.transition_to(TurnState.ERROR)
        chat_turns_failed.add(1, {"error_type": "SinkDisconnected"})
        return ErrorChunk(
            message="Chunk sink disconnected",
            error_type="SinkDisconnected",
            conversation_id=turn.conversation_id,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _build_history(self, conversation: Conversation, user_text: str) -> list[LlmMessage]:
        messages = [m for m in conversation.get_messages() if m.role in (MessageRole.USER, MessageRole.ASSISTANT) and m.content]
        limit = self._config.history_max_messages
        if limit and len(messages) > limit:
            messages = messages[-limit:]
        while messages and messages[0].role != MessageRole.USER:
            messages.pop(0)

        history = [LlmMessage.user(m.content) if m.role == MessageRole.USER else LlmMessage.assistant(m.content) for m in messages]
        history.append(LlmMessage.user(user_text))
        return history

    @staticmethod
    def configure(builder: ApplicationBuilderBase) -> None:
        """
        Configure StreamOrchestrator as a scoped service in the DI container.

        StreamOrchestrator is registered as scoped because it depends on the
        ConversationRepository, which is scoped for the MongoDB store. The
        per-conversation lock registry is a singleton shared by all scopes.

        Args:
            builder: The application builder
        """
        settings: Settings = next(
            (d.singleton for d in builder.services if d.service_type is Settings and d.singleton),
            None,
        ) or Settings()
        config = OrchestratorConfig.from_settings(settings)
        lock_registry = ConversationLockRegistry()
        builder.services.add_singleton(ConversationLockRegistry, singleton=lock_registry)

        builder.services.add_scoped(
            StreamOrchestrator,
            implementation_factory=lambda sp: StreamOrchestrator(
                conversation_repository=sp.get_required_service(ConversationRepository),
                tool_registry=sp.get_required_service(ToolRegistry),
                llm_provider=sp.get_required_service(LlmProvider),
                config=config,
                lock_registry=lock_registry,
            ),
        )
        log.info(f"Configured StreamOrchestrator as scoped service (max_tool_rounds={config.max_tool_rounds})")
