"""Test doubles for the orchestrator's collaborators.

- ScriptedLlmProvider: replays one scripted event list per provider call
- FakeToolRegistry: answers tool calls from a name -> result map
- RecordingChunkSink: records every chunk it receives
"""

import asyncio
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional, Union

from application.agents.llm_provider import LlmConfig, LlmMessage, LlmProvider, LlmProviderType, LlmStreamEvent
from application.orchestrator.chunks import ChunkSinkClosedError, ContentChunk, StreamChunk
from application.services.tool_registry import ToolExecutionContext, ToolExecutionError, ToolRegistry
from domain.models.tool import ToolSchema

# ============================================================================
# SCRIPTED LLM PROVIDER
# ============================================================================


@dataclass
class Pause:
    """Script step: sleep before the next event."""

    seconds: float


@dataclass
class WaitFor:
    """Script step: block until the event is set."""

    event: asyncio.Event


ScriptStep = Union[LlmStreamEvent, Pause, WaitFor, BaseException]


@dataclass
class RecordedCall:
    history: list[LlmMessage]
    tools: Optional[list[ToolSchema]]
    system_prompt: str


class ScriptedLlmProvider(LlmProvider):
    """LLM provider replaying scripted stages, one per open_stream call.

    A step that is an exception is raised from the stream at that point.
    """

    def __init__(self, stages: Optional[list[list[ScriptStep]]] = None) -> None:
        super().__init__(LlmConfig(model="scripted-model"))
        self._stages = list(stages or [])
        self.calls: list[RecordedCall] = []
        self.closed_streams = 0

    @property
    def provider_type(self) -> LlmProviderType:
        return LlmProviderType.ANTHROPIC

    def add_stage(self, *steps: ScriptStep) -> None:
        self._stages.append(list(steps))

    async def open_stream(
        self,
        history: list[LlmMessage],
        tools: Optional[list[ToolSchema]],
        system_prompt: str,
    ) -> AsyncIterator[LlmStreamEvent]:
        self.calls.append(RecordedCall(history=list(history), tools=list(tools) if tools is not None else None, system_prompt=system_prompt))
        if not self._stages:
            raise AssertionError("Unexpected provider call: no scripted stage left")
        steps = self._stages.pop(0)
        try:
            for step in steps:
                if isinstance(step, BaseException):
                    raise step
                if isinstance(step, Pause):
                    await asyncio.sleep(step.seconds)
                    continue
                if isinstance(step, WaitFor):
                    await step.event.wait()
                    continue
                yield step
        finally:
            self.closed_streams += 1

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        pass


# ============================================================================
# FAKE TOOL REGISTRY
# ============================================================================


class FakeToolRegistry(ToolRegistry):
    """Tool registry answering from a map of tool name to result.

    A result may be a value, an exception to raise, or an async callable
    receiving ``(arguments, context)``.
    """

    def __init__(self, schemas: Optional[list[ToolSchema]] = None, results: Optional[dict[str, Any]] = None) -> None:
        self.schemas = list(schemas or [])
        self.results = dict(results or {})
        self.executed: list[tuple[str, dict[str, Any], ToolExecutionContext]] = []
        self.list_calls: list[Optional[str]] = []
        self.list_error: Optional[Exception] = None

    async def list_tool_schemas(self, access_token: Optional[str] = None) -> list[ToolSchema]:
        self.list_calls.append(access_token)
        if self.list_error is not None:
            raise self.list_error
        return list(self.schemas)

    async def execute(self, name: str, arguments: dict[str, Any], context: ToolExecutionContext) -> Any:
        self.executed.append((name, arguments, context))
        if name not in self.results:
            raise ToolExecutionError(f"Tool '{name}' not found", name, "tool_not_found")
        outcome = self.results[name]
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return await outcome(arguments, context)
        return outcome

    @property
    def executed_names(self) -> list[str]:
        return [name for name, _, _ in self.executed]


# ============================================================================
# RECORDING CHUNK SINK
# ============================================================================


class RecordingChunkSink:
    """Chunk sink recording what it receives.

    With ``disconnect_after`` set, the sink accepts that many chunks and then
    behaves like a consumer that went away.
    """

    def __init__(self, disconnect_after: Optional[int] = None) -> None:
        self.chunks: list[StreamChunk] = []
        self.disconnect_after = disconnect_after

    async def send(self, chunk: StreamChunk) -> None:
        if self.disconnect_after is not None and len(self.chunks) >= self.disconnect_after:
            raise ChunkSinkClosedError("Client disconnected")
        self.chunks.append(chunk)

    @property
    def content_chunks(self) -> list[ContentChunk]:
        return [c for c in self.chunks if isinstance(c, ContentChunk)]

    @property
    def streamed_text(self) -> str:
        return "".join(c.content for c in self.content_chunks)

    @property
    def terminal_chunks(self) -> list[StreamChunk]:
        return [c for c in self.chunks if c.is_terminal]
