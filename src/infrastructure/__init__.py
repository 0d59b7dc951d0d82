"""Infrastructure layer: conversation store and LLM provider adapters."""

from .adapters import AnthropicLlmProvider, OpenAiLlmProvider
from .llm_provider_factory import configure_llm_provider, create_llm_provider
from .repositories import InMemoryConversationRepository

__all__ = [
    "AnthropicLlmProvider",
    "OpenAiLlmProvider",
    "configure_llm_provider",
    "create_llm_provider",
    "InMemoryConversationRepository",
]
