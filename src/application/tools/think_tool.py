"""The ``think`` tool: lets the model record structured reasoning before acting."""

import uuid
from datetime import UTC, datetime
from typing import Any

from application.services.tool_registry import ToolExecutionContext
from application.tools.local_tool_registry import LocalToolRegistry
from application.tools.payloads import ThinkInput

THINK_TOOL_DESCRIPTION = (
    "Record your reasoning before answering complex or multi-step CRM requests. "
    "Use it to restate the request, plan which searches are needed and note concerns. "
    "The user does not see the output."
)


async def think(payload: ThinkInput, context: ToolExecutionContext) -> dict[str, Any]:
    """Echo the structured reasoning back so it becomes part of the model's context."""
    return {
        "id": str(uuid.uuid4()),
        "type": "thinking",
        "conversation_id": context.conversation_id,
        "acknowledgment": payload.acknowledgment,
        "reasoning": payload.reasoning,
        "strategy": payload.strategy,
        "concerns": payload.concerns,
        "next_steps": payload.next_steps,
        "recorded_at": datetime.now(UTC).isoformat(),
    }


def register_builtin_tools(registry: LocalToolRegistry) -> LocalToolRegistry:
    """Register the tools that need no CRM backend."""
    registry.register("think", THINK_TOOL_DESCRIPTION, think, input_model=ThinkInput, category="Reasoning & Analysis")
    return registry
