"""LLM provider contracts and prompt assembly."""

from application.agents.llm_provider import (
    LlmConfig,
    LlmMessage,
    LlmMessageRole,
    LlmProvider,
    LlmProviderError,
    LlmProviderType,
    LlmStreamEvent,
    LlmStreamEventType,
    LlmToolCall,
)
from application.agents.system_prompt import build_system_prompt

__all__ = [
    "LlmConfig",
    "LlmMessage",
    "LlmMessageRole",
    "LlmProvider",
    "LlmProviderError",
    "LlmProviderType",
    "LlmStreamEvent",
    "LlmStreamEventType",
    "LlmToolCall",
    "build_system_prompt",
]
