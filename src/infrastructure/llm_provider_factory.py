"""LLM provider selection.

The provider used by the orchestrator is chosen once at startup from
``Settings.llm_provider`` and registered as the ``LlmProvider`` singleton.

Usage:
    provider = create_llm_provider(settings)
    builder.services.add_singleton(LlmProvider, singleton=provider)
"""

import logging
from typing import TYPE_CHECKING, Optional

from application.agents.llm_provider import LlmConfig, LlmProvider, LlmProviderError, LlmProviderType
from application.settings import Settings
from infrastructure.adapters import AnthropicLlmProvider, OpenAiLlmProvider

if TYPE_CHECKING:
    import httpx
    from neuroglia.hosting.abstractions import ApplicationBuilderBase

logger = logging.getLogger(__name__)


def parse_provider_type(value: str) -> LlmProviderType:
    """Parse a provider name (case-insensitive).

    Raises:
        LlmProviderError: If the provider is not supported
    """
    try:
        return LlmProviderType(value.strip().lower())
    except ValueError:
        supported = ", ".join(t.value for t in LlmProviderType)
        raise LlmProviderError(
            message=f"Unsupported LLM provider '{value}'. Supported: {supported}",
            error_code="unsupported_provider",
            provider=value,
            is_retryable=False,
        )


def create_llm_provider(settings: Settings, transport: Optional["httpx.AsyncBaseTransport"] = None) -> LlmProvider:
    """Create the configured LLM provider.

    Args:
        settings: Application settings
        transport: Optional HTTP transport (used by tests)

    Returns:
        The provider instance

    Raises:
        LlmProviderError: If the configured provider is not supported
    """
    provider_type = parse_provider_type(settings.llm_provider)

    if provider_type == LlmProviderType.ANTHROPIC:
        config = LlmConfig(
            model=settings.anthropic_model,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            timeout=settings.llm_timeout_seconds,
            base_url=settings.anthropic_url,
            api_key=settings.anthropic_api_key,
            extra={"api_version": settings.anthropic_api_version},
        )
        provider: LlmProvider = AnthropicLlmProvider(config, transport=transport)
    else:
        config = LlmConfig(
            model=settings.openai_model,
            temperature=settings.llm_temperature,
            top_p=settings.llm_top_p,
            max_tokens=settings.llm_max_tokens,
            timeout=settings.llm_timeout_seconds,
            base_url=settings.openai_url,
            api_key=settings.openai_api_key,
        )
        provider = OpenAiLlmProvider(config, transport=transport)

    if not config.api_key:
        logger.warning(f"LLM provider '{provider_type.value}' has no API key configured; requests will fail")

    logger.info(f"✅ Created {type(provider).__name__}: model={config.model}")
    return provider


def configure_llm_provider(builder: "ApplicationBuilderBase", settings: Settings) -> LlmProvider:
    """Create the configured provider and register it as the LlmProvider singleton."""
    provider = create_llm_provider(settings)
    builder.services.add_singleton(LlmProvider, singleton=provider)
    return provider
