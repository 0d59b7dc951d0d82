"""Tool execution for orchestrated turns.

This module provides the ToolExecutor class, which wraps a ToolRegistry so
that every tool call yields a ToolExecution record. Failures of any kind
(unknown tool, invalid input, timeout, tool error) are normalized into an
ERROR record; nothing raises past this boundary except cancellation.
"""

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from opentelemetry import trace

from application.agents.llm_provider import LlmMessage, LlmToolCall
from application.services.tool_registry import ToolExecutionContext, ToolExecutionError, ToolRegistry
from domain.models.caller import CallerIdentity
from domain.models.message import ToolExecution
from observability import tool_execution_count, tool_execution_errors, tool_execution_time

log = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ToolExecuteFn = Callable[[LlmToolCall], Awaitable[ToolExecution]]


def tool_result_message(execution: ToolExecution) -> LlmMessage:
    """Convert a tool execution to the tool-result entry sent back to the model."""
    if execution.is_error:
        content = json.dumps({"status": "ERROR", "error": execution.error})
    else:
        content = json.dumps(execution.result, default=str)
    return LlmMessage.tool_result(
        tool_call_id=execution.id,
        tool_name=execution.name,
        content=content,
        is_error=execution.is_error,
    )


class ToolExecutor:
    """Executes tool calls through a ToolRegistry with a per-call timeout.

    Example:
        >>> executor = ToolExecutor(tool_registry, timeout_seconds=30.0)
        >>> execute_fn = executor.create_executor(conversation_id, caller, access_token="...")
        >>> execution = await execute_fn(tool_call)
        >>> print(execution.status)
    """

    def __init__(
        self,
        tool_registry: Optional[ToolRegistry] = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        """Initialize the ToolExecutor.

        Args:
            tool_registry: Registry that executes the tools. If None, every
                           execution fails gracefully.
            timeout_seconds: Maximum duration of one tool call
        """
        self._tool_registry = tool_registry
        self._timeout_seconds = timeout_seconds

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    def create_executor(
        self,
        conversation_id: str,
        caller: CallerIdentity,
        access_token: Optional[str] = None,
        turn_id: Optional[str] = None,
    ) -> ToolExecuteFn:
        """Create a tool executor function bound to one turn.

        Args:
            conversation_id: Conversation the turn belongs to
            caller: Authenticated caller
            access_token: Token for delegated calls made by tools
            turn_id: Identifier of the running turn

        Returns:
            An async function executing one tool call
        """

        async def execute_tool(call: LlmToolCall) -> ToolExecution:
            context = ToolExecutionContext(
                conversation_id=conversation_id,
                caller=caller,
                access_token=access_token,
                turn_id=turn_id,
                call_id=call.id,
            )
            return await self.execute(call, context)

        return execute_tool

    async def execute(self, call: LlmToolCall, context: ToolExecutionContext) -> ToolExecution:
        """Execute one tool call and return its execution record.

        Args:
            call: The tool call announced by the model
            context: Execution context passed to the registry

        Returns:
            A SUCCESS or ERROR ToolExecution
        """
        start_time = time.perf_counter()
        log.info(f"🔧 Tool execution requested: {call.name}({call.arguments})")

        with tracer.start_as_current_span("tool_executor.execute") as span:
            span.set_attribute("tool.name", call.name)
            span.set_attribute("tool.call_id", call.id)

            outcome = await self._run(call, context)

            execution_time_ms = (time.perf_counter() - start_time) * 1000
            tool_execution_time.record(execution_time_ms, {"tool_name": call.name})
            span.set_attribute("tool.duration_ms", execution_time_ms)

            if isinstance(outcome, _Failure):
                tool_execution_count.add(1, {"tool_name": call.name, "success": "false"})
                tool_execution_errors.add(1, {"tool_name": call.name, "error_type": outcome.kind})
                span.set_attribute("error", True)
                span.set_attribute("error.message", outcome.message)
                log.warning(f"🔧 Tool execution failed: {call.name} - {outcome.message}")
                return ToolExecution.failed(call.id, call.name, call.arguments, outcome.message, execution_time_ms)

            tool_execution_count.add(1, {"tool_name": call.name, "success": "true"})
            span.set_attribute("tool.success", True)
            log.info(f"🔧 Tool executed successfully: {call.name} in {execution_time_ms:.2f}ms")
            return ToolExecution.succeeded(call.id, call.name, call.arguments, outcome.value, execution_time_ms)

    async def _run(self, call: LlmToolCall, context: ToolExecutionContext) -> "_Success | _Failure":
        if self._tool_registry is None:
            log.error("ToolRegistry not configured - cannot execute tools")
            return _Failure("Tool execution not available - no tool registry configured", "unavailable")

        deadline: Optional[asyncio.Timeout] = None
        try:
            async with asyncio.timeout(self._timeout_seconds) as deadline:
                result = await self._tool_registry.execute(call.name, call.arguments, context)
        except TimeoutError as e:
            if deadline is not None and deadline.expired():
                return _Failure(f"Tool execution timeout after {self._timeout_seconds:g}s", "timeout")
            return _Failure(str(e) or type(e).__name__, "tool_failed")
        except ToolExecutionError as e:
            return _Failure(e.message, e.error_code)
        except Exception as e:
            log.exception(f"🔧 Unexpected error executing tool {call.name}")
            return _Failure(str(e) or type(e).__name__, "tool_failed")

        # Remote tools report failures in-band
        if isinstance(result, dict) and result.get("success") is False:
            return _Failure(str(result.get("error") or "Unknown error"), "tool_failed")

        return _Success(result)


class _Success:
    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        self.value = value


class _Failure:
    __slots__ = ("message", "kind")

    def __init__(self, message: str, kind: str) -> None:
        self.message = message
        self.kind = kind
