"""LLM provider adapters."""

from infrastructure.adapters.anthropic_llm_provider import AnthropicLlmProvider
from infrastructure.adapters.openai_llm_provider import OpenAiLlmProvider

__all__ = [
    "AnthropicLlmProvider",
    "OpenAiLlmProvider",
]
