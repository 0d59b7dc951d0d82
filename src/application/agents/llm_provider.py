"""LLM Provider abstraction for the CRM Agent Host.

This module defines the abstract interface for LLM providers, allowing
the orchestrator to work with different LLM backends (Anthropic, OpenAI
compatible endpoints, scripted test doubles) without coupling to a
specific wire protocol.

A provider exposes one operation, ``open_stream``, which turns a single
provider call into an ordered async sequence of typed events:

- ``TEXT_DELTA``: a fragment of assistant text, in emission order
- ``TOOL_CALL_ANNOUNCED``: a fully assembled tool call, announced exactly once
- ``TURN_COMPLETE``: always the last event of a successful stream

Failures are raised as ``LlmProviderError`` instead of being yielded.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Optional

from domain.models.tool import ToolSchema

logger = logging.getLogger(__name__)


# =============================================================================
# Provider Enumeration
# =============================================================================


class LlmProviderType(str, Enum):
    """Supported LLM provider types."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"


# =============================================================================
# Unified Error Handling
# =============================================================================


class LlmProviderError(Exception):
    """Base error class for all LLM provider errors.

    Attributes:
        message: Human-readable error message
        error_code: Categorized error code for programmatic handling
        provider: The provider that raised the error (anthropic, openai, etc.)
        is_retryable: Whether the operation might succeed on retry
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        provider: str,
        is_retryable: bool = False,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.provider = provider
        self.is_retryable = is_retryable
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "message": self.message,
            "error_code": self.error_code,
            "provider": self.provider,
            "is_retryable": self.is_retryable,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"LlmProviderError({self.provider}:{self.error_code}: {self.message})"


# =============================================================================
# Messages
# =============================================================================


class LlmMessageRole(str, Enum):
    """Role of a message in the LLM conversation."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass
class LlmToolCall:
    """A tool call requested by the LLM.

    Attributes:
        id: Provider-assigned identifier (for matching with results)
        name: Name of the tool to call
        arguments: Arguments to pass to the tool (as dict)
    """

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class LlmMessage:
    """A message in the LLM conversation history.

    The system prompt is not part of the history; it is passed to
    ``open_stream`` separately.

    Attributes:
        role: Role of the message sender
        content: Text content of the message
        name: Tool name (for tool results)
        tool_calls: Tool calls issued by the assistant in this message
        tool_call_id: ID linking a tool result to its call
        is_error: Whether a tool result carries an error payload
    """

    role: LlmMessageRole
    content: str
    name: Optional[str] = None
    tool_calls: Optional[list[LlmToolCall]] = None
    tool_call_id: Optional[str] = None
    is_error: bool = False

    @classmethod
    def user(cls, content: str) -> "LlmMessage":
        """Create a user message."""
        return cls(role=LlmMessageRole.USER, content=content)

    @classmethod
    def assistant(
        cls,
        content: str,
        tool_calls: Optional[list[LlmToolCall]] = None,
    ) -> "LlmMessage":
        """Create an assistant message."""
        return cls(role=LlmMessageRole.ASSISTANT, content=content, tool_calls=tool_calls)

    @classmethod
    def tool_result(
        cls,
        tool_call_id: str,
        tool_name: str,
        content: str,
        is_error: bool = False,
    ) -> "LlmMessage":
        """Create a tool result message."""
        return cls(
            role=LlmMessageRole.TOOL,
            content=content,
            name=tool_name,
            tool_call_id=tool_call_id,
            is_error=is_error,
        )


# =============================================================================
# Stream Events
# =============================================================================


class LlmStreamEventType(str, Enum):
    """Kinds of events produced by an open provider stream."""

    TEXT_DELTA = "text_delta"
    TOOL_CALL_ANNOUNCED = "tool_call_announced"
    TURN_COMPLETE = "turn_complete"


@dataclass
class LlmStreamEvent:
    """One event of a provider stream.

    Attributes:
        type: Event kind
        text: Text fragment (TEXT_DELTA only)
        tool_call: Assembled tool call (TOOL_CALL_ANNOUNCED only)
        finish_reason: Why generation stopped (TURN_COMPLETE only)
    """

    type: LlmStreamEventType
    text: str = ""
    tool_call: Optional[LlmToolCall] = None
    finish_reason: Optional[str] = None

    @classmethod
    def text_delta(cls, text: str) -> "LlmStreamEvent":
        return cls(type=LlmStreamEventType.TEXT_DELTA, text=text)

    @classmethod
    def tool_call_announced(cls, tool_call: LlmToolCall) -> "LlmStreamEvent":
        return cls(type=LlmStreamEventType.TOOL_CALL_ANNOUNCED, tool_call=tool_call)

    @classmethod
    def turn_complete(cls, finish_reason: Optional[str] = "stop") -> "LlmStreamEvent":
        return cls(type=LlmStreamEventType.TURN_COMPLETE, finish_reason=finish_reason)


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class LlmConfig:
    """Configuration for an LLM provider.

    Attributes:
        model: Model identifier (e.g., "claude-3-5-sonnet-20241022", "gpt-4o")
        temperature: Sampling temperature (0.0 = deterministic, 1.0 = creative)
        top_p: Top-p (nucleus) sampling parameter
        max_tokens: Maximum tokens to generate
        timeout: Request timeout in seconds
        base_url: Base URL for the API
        api_key: API key (if applicable)
        extra: Provider-specific extra configuration
    """

    model: str
    temperature: float = 0.7
    top_p: Optional[float] = None
    max_tokens: int = 4096
    timeout: float = 120.0
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Provider Interface
# =============================================================================


class LlmProvider(ABC):
    """Abstract base class for LLM providers.

    Implementations:
    - AnthropicLlmProvider: Anthropic Messages API
    - OpenAiLlmProvider: OpenAI-compatible Chat Completions API

    Usage:
        async with provider:
            async for event in provider.open_stream(history, tools, system_prompt):
                ...
    """

    def __init__(self, config: LlmConfig) -> None:
        """Initialize the LLM provider.

        Args:
            config: Provider configuration
        """
        self._config = config

    @property
    @abstractmethod
    def provider_type(self) -> LlmProviderType:
        """Get the provider type identifier."""
        pass

    @property
    def config(self) -> LlmConfig:
        """Get the provider configuration."""
        return self._config

    @property
    def model(self) -> str:
        """Get the model identifier."""
        return self._config.model

    @abstractmethod
    def open_stream(
        self,
        history: list[LlmMessage],
        tools: Optional[list[ToolSchema]],
        system_prompt: str,
    ) -> AsyncIterator[LlmStreamEvent]:
        """Open one streaming generation call.

        This method is an async generator - implementations should use
        `async def` with `yield` statements. Closing the generator must
        abandon the upstream request.

        Args:
            history: Conversation history, oldest first
            tools: Tool schemas to offer, or None to disallow tool calls
            system_prompt: Instruction text for this call

        Yields:
            Stream events, terminated by TURN_COMPLETE

        Raises:
            LlmProviderError: On any provider or transport failure
        """
        raise NotImplementedError

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the LLM provider is available.

        Returns:
            True if healthy, False otherwise
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any resources held by the provider."""
        pass

    async def __aenter__(self) -> "LlmProvider":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
