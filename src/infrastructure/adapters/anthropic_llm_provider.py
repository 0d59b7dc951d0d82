"""Anthropic LLM Provider implementation.

This module provides the Anthropic implementation of the LlmProvider
interface on top of the streaming Messages API.

Streamed events handled:
- content_block_start: opens a text or tool_use block
- content_block_delta: text_delta (forwarded) or input_json_delta (accumulated)
- content_block_stop: closes a block; a completed tool_use block is announced
- message_delta: carries the stop_reason
- message_stop: ends the stream
- error: raised as LlmProviderError
"""

import json
import logging
from typing import Any, AsyncIterator, Optional

import httpx
from opentelemetry import trace

from application.agents.llm_provider import LlmConfig, LlmMessage, LlmMessageRole, LlmProvider, LlmProviderError, LlmProviderType, LlmStreamEvent, LlmToolCall
from domain.models.tool import ToolSchema

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_API_VERSION = "2023-06-01"


class AnthropicLlmProvider(LlmProvider):
    """Anthropic implementation of the LLM provider interface.

    Configuration:
        - base_url: API endpoint (e.g., "https://api.anthropic.com")
        - model: Model name (e.g., "claude-3-5-sonnet-20241022")
        - api_key: Anthropic API key
        - extra["api_version"]: Value of the anthropic-version header

    Usage:
        config = LlmConfig(model="claude-3-5-sonnet-20241022", api_key="sk-ant-xxx")  # pragma: allowlist secret
        provider = AnthropicLlmProvider(config)
        async for event in provider.open_stream([LlmMessage.user("Hello!")], None, "You are helpful."):
            ...
    """

    PROVIDER_NAME = "anthropic"

    def __init__(
        self,
        config: LlmConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the Anthropic provider.

        Args:
            config: LLM configuration
            transport: Optional HTTP transport (used by tests)
        """
        super().__init__(config)
        self._base_url = (config.base_url or "https://api.anthropic.com").rstrip("/")
        self._api_version = config.extra.get("api_version", DEFAULT_API_VERSION)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def provider_type(self) -> LlmProviderType:
        """Get the provider type identifier."""
        return LlmProviderType.ANTHROPIC

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._config.timeout,
                transport=self._transport,
            )
        return self._client

    def _get_headers(self) -> dict[str, str]:
        if not self._config.api_key:
            raise LlmProviderError(
                message="Anthropic provider requires api_key",
                error_code="anthropic_auth_config_error",
                provider=self.PROVIDER_NAME,
                is_retryable=False,
            )
        return {
            "x-api-key": self._config.api_key,
            "anthropic-version": self._api_version,
            "content-type": "application/json",
            "accept": "text/event-stream",
        }

    def _convert_messages(self, history: list[LlmMessage]) -> list[dict[str, Any]]:
        """Convert LlmMessage list to Anthropic format.

        Assistant tool calls become ``tool_use`` blocks. Consecutive tool
        results are grouped into one user message of ``tool_result`` blocks.

        Args:
            history: Conversation history

        Returns:
            List of messages in Anthropic Messages API format
        """
        anthropic_messages: list[dict[str, Any]] = []

        for msg in history:
            if msg.role == LlmMessageRole.TOOL:
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id,
                    "content": msg.content,
                }
                if msg.is_error:
                    block["is_error"] = True

                previous = anthropic_messages[-1] if anthropic_messages else None
                if previous and previous["role"] == "user" and isinstance(previous["content"], list) and previous["content"] and previous["content"][0].get("type") == "tool_result":
                    previous["content"].append(block)
                else:
                    anthropic_messages.append({"role": "user", "content": [block]})
                continue

            if msg.role == LlmMessageRole.ASSISTANT and msg.tool_calls:
                blocks: list[dict[str, Any]] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                blocks.extend({"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.arguments} for tc in msg.tool_calls)
                anthropic_messages.append({"role": "assistant", "content": blocks})
                continue

            anthropic_messages.append({"role": msg.role.value, "content": msg.content})

        return anthropic_messages

    def _build_request_body(
        self,
        history: list[LlmMessage],
        tools: Optional[list[ToolSchema]],
        system_prompt: str,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self._config.max_tokens,
            "messages": self._convert_messages(history),
            "temperature": self._config.temperature,
            "stream": True,
        }

        if system_prompt:
            body["system"] = system_prompt
        if self._config.top_p is not None:
            body["top_p"] = self._config.top_p
        if tools:
            body["tools"] = [tool.to_anthropic_tool() for tool in tools]

        return body

    async def open_stream(
        self,
        history: list[LlmMessage],
        tools: Optional[list[ToolSchema]],
        system_prompt: str,
    ) -> AsyncIterator[LlmStreamEvent]:
        """Open a streaming Messages API request.

        Args:
            history: Conversation messages
            tools: Tools to offer, or None
            system_prompt: Instruction text, sent as the top-level system field

        Yields:
            Text deltas and tool calls in block order, then TURN_COMPLETE

        Raises:
            LlmProviderError: If the API call fails
        """
        client = await self._get_client()
        model = self.model

        with tracer.start_as_current_span("anthropic.open_stream") as span:
            span.set_attribute("llm.model", model)
            span.set_attribute("llm.message_count", len(history))
            span.set_attribute("llm.provider", self.PROVIDER_NAME)

            try:
                headers = self._get_headers()
                body = self._build_request_body(history, tools, system_prompt)

                logger.info(f"🔧 Anthropic stream request: model={model}, messages={len(history)}, tools={len(tools) if tools else 0}")

                async with client.stream("POST", "/v1/messages", json=body, headers=headers) as response:
                    if response.status_code != 200:
                        error_content = await response.aread()
                        error_text = error_content.decode("utf-8", errors="replace")
                        logger.error(f"Anthropic HTTP error: {response.status_code} - {error_text}")
                        raise self._handle_http_error_from_status(response.status_code, error_text, model)

                    blocks: dict[int, dict[str, Any]] = {}  # Index -> open tool_use block
                    stop_reason: Optional[str] = None
                    tool_call_count = 0

                    async for line in response.aiter_lines():
                        if not line or not line.startswith("data:"):
                            continue

                        try:
                            event = json.loads(line[5:].strip())
                        except json.JSONDecodeError:
                            logger.warning(f"Failed to parse Anthropic event: {line}")
                            continue

                        event_type = event.get("type")

                        if event_type == "content_block_start":
                            block = event.get("content_block") or {}
                            if block.get("type") == "tool_use":
                                blocks[event.get("index", 0)] = {"id": block.get("id", ""), "name": block.get("name", ""), "json": ""}
                            elif block.get("type") == "text" and block.get("text"):
                                yield LlmStreamEvent.text_delta(block["text"])

                        elif event_type == "content_block_delta":
                            delta = event.get("delta") or {}
                            if delta.get("type") == "text_delta":
                                if delta.get("text"):
                                    yield LlmStreamEvent.text_delta(delta["text"])
                            elif delta.get("type") == "input_json_delta":
                                block = blocks.get(event.get("index", 0))
                                if block is not None:
                                    block["json"] += delta.get("partial_json", "")

                        elif event_type == "content_block_stop":
                            block = blocks.pop(event.get("index", 0), None)
                            if block is not None:
                                tool_call_count += 1
                                yield LlmStreamEvent.tool_call_announced(self._parse_tool_block(block))

                        elif event_type == "message_delta":
                            stop_reason = (event.get("delta") or {}).get("stop_reason") or stop_reason

                        elif event_type == "message_stop":
                            span.set_attribute("llm.tool_call_count", tool_call_count)
                            span.set_attribute("llm.finish_reason", stop_reason or "end_turn")
                            logger.info(f"🏁 Anthropic stream completed: stop_reason={stop_reason}, tool_calls={tool_call_count}")
                            yield LlmStreamEvent.turn_complete(stop_reason or "end_turn")
                            return

                        elif event_type == "error":
                            raise self._handle_stream_error(event.get("error") or {})

                    logger.warning("Anthropic stream ended without message_stop")

            except LlmProviderError:
                span.set_attribute("error", True)
                raise
            except httpx.ConnectError as e:
                span.set_attribute("error", True)
                logger.error(f"Cannot connect to Anthropic at {self._base_url}: {e}")
                raise LlmProviderError(
                    message="Cannot connect to Anthropic service",
                    error_code="anthropic_unavailable",
                    provider=self.PROVIDER_NAME,
                    is_retryable=True,
                    details={"url": self._base_url},
                )
            except httpx.TimeoutException as e:
                span.set_attribute("error", True)
                logger.error(f"Anthropic request timed out: {e}")
                raise LlmProviderError(
                    message="Anthropic request timed out",
                    error_code="anthropic_timeout",
                    provider=self.PROVIDER_NAME,
                    is_retryable=True,
                )
            except httpx.HTTPError as e:
                span.set_attribute("error", True)
                logger.error(f"Anthropic stream error: {e}")
                raise LlmProviderError(
                    message=f"Anthropic stream error: {e}",
                    error_code="anthropic_stream_error",
                    provider=self.PROVIDER_NAME,
                    is_retryable=True,
                )

    def _parse_tool_block(self, block: dict[str, Any]) -> LlmToolCall:
        raw = block.get("json") or "{}"
        try:
            arguments = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Malformed input for tool call {block.get('name')}: {raw[:200]}")
            arguments = {}
        if not isinstance(arguments, dict):
            arguments = {}
        return LlmToolCall(id=block.get("id", ""), name=block.get("name", ""), arguments=arguments)

    def _handle_stream_error(self, error: dict[str, Any]) -> LlmProviderError:
        error_type = error.get("type", "api_error")
        return LlmProviderError(
            message=f"Anthropic stream error: {error.get('message', error_type)}",
            error_code=f"anthropic_{error_type}",
            provider=self.PROVIDER_NAME,
            is_retryable=error_type in ("overloaded_error", "api_error", "rate_limit_error"),
        )

    def _handle_http_error_from_status(self, status_code: int, error_text: str, model: str) -> LlmProviderError:
        """Handle HTTP errors by status code.

        Args:
            status_code: HTTP status code
            error_text: Error response text
            model: Model name for error details

        Returns:
            Appropriate LlmProviderError
        """
        try:
            error_json = json.loads(error_text)
            error_detail = error_json.get("error", {}).get("message", error_text[:200])
        except (json.JSONDecodeError, AttributeError):
            error_detail = error_text[:200]

        if status_code == 401:
            return LlmProviderError(
                message="Anthropic authentication failed. Check your API key.",
                error_code="anthropic_auth_error",
                provider=self.PROVIDER_NAME,
                is_retryable=False,
            )
        elif status_code == 403:
            return LlmProviderError(
                message="Access denied to Anthropic API. Check your permissions.",
                error_code="anthropic_forbidden",
                provider=self.PROVIDER_NAME,
                is_retryable=False,
            )
        elif status_code == 404:
            return LlmProviderError(
                message=f"Model '{model}' not found or endpoint not available",
                error_code="anthropic_model_not_found",
                provider=self.PROVIDER_NAME,
                is_retryable=False,
                details={"model": model},
            )
        elif status_code == 429:
            return LlmProviderError(
                message="Anthropic rate limit exceeded. Please try again later.",
                error_code="anthropic_rate_limit",
                provider=self.PROVIDER_NAME,
                is_retryable=True,
            )
        elif status_code == 529:
            return LlmProviderError(
                message="Anthropic API is overloaded. Please try again later.",
                error_code="anthropic_overloaded",
                provider=self.PROVIDER_NAME,
                is_retryable=True,
            )
        elif status_code >= 500:
            return LlmProviderError(
                message=f"Anthropic server error: {error_detail}",
                error_code="anthropic_server_error",
                provider=self.PROVIDER_NAME,
                is_retryable=True,
            )
        else:
            return LlmProviderError(
                message=f"Anthropic API error: {error_detail}",
                error_code="anthropic_api_error",
                provider=self.PROVIDER_NAME,
                is_retryable=False,
            )

    async def health_check(self) -> bool:
        """Check if Anthropic is available by listing models.

        Returns:
            True if healthy, False otherwise
        """
        try:
            client = await self._get_client()
            headers = self._get_headers()
            response = await client.get("/v1/models", headers={k: v for k, v in headers.items() if k != "accept"})
            response.raise_for_status()
            logger.debug("Anthropic health check passed")
            return True
        except (LlmProviderError, httpx.HTTPError) as e:
            logger.error(f"Anthropic health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
