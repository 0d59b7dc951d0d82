"""OpenAI LLM Provider implementation.

This module provides the OpenAI implementation of the LlmProvider interface
on top of the Chat Completions streaming API (or any compatible endpoint).

Features:
- Streaming chat completions (Server-Sent Events)
- Tool/function calling with incrementally streamed arguments
- API key authentication
- OpenTelemetry tracing
"""

import json
import logging
from typing import Any, AsyncIterator, Optional
from uuid import uuid4

import httpx
from opentelemetry import trace

from application.agents.llm_provider import LlmConfig, LlmMessage, LlmMessageRole, LlmProvider, LlmProviderError, LlmProviderType, LlmStreamEvent, LlmToolCall
from domain.models.tool import ToolSchema

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class OpenAiLlmProvider(LlmProvider):
    """OpenAI implementation of the LLM provider interface.

    Text deltas are yielded as they arrive. Tool call fragments are
    accumulated by index and announced, in index order, once the model has
    finished the response.

    Usage:
        config = LlmConfig(
            model="gpt-4o",
            base_url="https://api.openai.com/v1",
            api_key="sk-xxx",  # pragma: allowlist secret
        )
        provider = OpenAiLlmProvider(config)
        async for event in provider.open_stream([LlmMessage.user("Hello!")], None, "You are helpful."):
            ...
    """

    PROVIDER_NAME = "openai"

    def __init__(
        self,
        config: LlmConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the OpenAI provider.

        Args:
            config: LLM configuration
            transport: Optional HTTP transport (used by tests)
        """
        super().__init__(config)
        self._base_url = (config.base_url or "https://api.openai.com/v1").rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def provider_type(self) -> LlmProviderType:
        """Get the provider type identifier."""
        return LlmProviderType.OPENAI

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._config.timeout,
                transport=self._transport,
            )
        return self._client

    def _get_auth_headers(self) -> dict[str, str]:
        if not self._config.api_key:
            raise LlmProviderError(
                message="API key authentication requires api_key",
                error_code="openai_auth_config_error",
                provider=self.PROVIDER_NAME,
                is_retryable=False,
            )
        return {"Authorization": f"Bearer {self._config.api_key}"}

    def _convert_messages(self, history: list[LlmMessage], system_prompt: str) -> list[dict[str, Any]]:
        """Convert LlmMessage list to OpenAI format.

        Args:
            history: Conversation history
            system_prompt: Instruction text, sent as the leading system message

        Returns:
            List of messages in OpenAI API format
        """
        openai_messages: list[dict[str, Any]] = []
        if system_prompt:
            openai_messages.append({"role": "system", "content": system_prompt})

        for msg in history:
            openai_msg: dict[str, Any] = {
                "role": msg.role.value,
                "content": msg.content or "",
            }

            # Handle tool calls in assistant messages
            if msg.tool_calls:
                openai_msg["content"] = msg.content or None
                openai_msg["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.name,
                            "arguments": json.dumps(tc.arguments),
                        },
                    }
                    for tc in msg.tool_calls
                ]

            # Handle tool result messages
            if msg.role == LlmMessageRole.TOOL and msg.tool_call_id:
                openai_msg["tool_call_id"] = msg.tool_call_id
                if msg.name:
                    openai_msg["name"] = msg.name

            openai_messages.append(openai_msg)

        return openai_messages

    def _build_request_body(
        self,
        history: list[LlmMessage],
        tools: Optional[list[ToolSchema]],
        system_prompt: str,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": self._convert_messages(history, system_prompt),
            "temperature": self._config.temperature,
            "stream": True,
        }

        if self._config.top_p is not None:
            body["top_p"] = self._config.top_p
        if self._config.max_tokens:
            body["max_tokens"] = self._config.max_tokens

        if tools:
            body["tools"] = [tool.to_openai_function() for tool in tools]
            body["tool_choice"] = "auto"

        return body

    async def open_stream(
        self,
        history: list[LlmMessage],
        tools: Optional[list[ToolSchema]],
        system_prompt: str,
    ) -> AsyncIterator[LlmStreamEvent]:
        """Open a streaming chat completion request.

        Args:
            history: Conversation messages
            tools: Tools to offer, or None
            system_prompt: Instruction text for this call

        Yields:
            Text deltas, then the announced tool calls, then TURN_COMPLETE

        Raises:
            LlmProviderError: If the API call fails
        """
        client = await self._get_client()
        model = self.model

        with tracer.start_as_current_span("openai.open_stream") as span:
            span.set_attribute("llm.model", model)
            span.set_attribute("llm.message_count", len(history))
            span.set_attribute("llm.provider", self.PROVIDER_NAME)

            try:
                headers = self._get_auth_headers()
                headers["Content-Type"] = "application/json"
                headers["Accept"] = "text/event-stream"
                body = self._build_request_body(history, tools, system_prompt)

                logger.info(f"🔧 OpenAI stream request: model={model}, messages={len(history)}, tools={len(tools) if tools else 0}")

                async with client.stream("POST", "/chat/completions", json=body, headers=headers) as response:
                    if response.status_code != 200:
                        error_content = await response.aread()
                        error_text = error_content.decode("utf-8", errors="replace")
                        logger.error(f"OpenAI HTTP error: {response.status_code} - {error_text}")
                        raise self._handle_http_error_from_status(response.status_code, error_text, model)

                    accumulated_tool_calls: dict[int, dict[str, Any]] = {}  # Index -> tool call data
                    finish_reason: Optional[str] = None
                    done = False

                    async for line in response.aiter_lines():
                        if not line or not line.startswith("data:"):
                            continue

                        data_str = line[5:].strip()
                        if data_str == "[DONE]":
                            done = True
                            break

                        try:
                            chunk = json.loads(data_str)
                        except json.JSONDecodeError:
                            logger.warning(f"Failed to parse OpenAI chunk: {data_str}")
                            continue

                        if "error" in chunk:
                            raise self._handle_stream_error(chunk["error"])

                        choices = chunk.get("choices", [])
                        if not choices:
                            continue

                        delta = choices[0].get("delta") or {}

                        content = delta.get("content")
                        if content:
                            yield LlmStreamEvent.text_delta(content)

                        for tc_delta in delta.get("tool_calls") or []:
                            idx = tc_delta.get("index", 0)
                            if idx not in accumulated_tool_calls:
                                accumulated_tool_calls[idx] = {"id": "", "name": "", "arguments": ""}
                            if tc_delta.get("id"):
                                accumulated_tool_calls[idx]["id"] = tc_delta["id"]
                            func_delta = tc_delta.get("function") or {}
                            if func_delta.get("name"):
                                accumulated_tool_calls[idx]["name"] += func_delta["name"]
                            if func_delta.get("arguments"):
                                accumulated_tool_calls[idx]["arguments"] += func_delta["arguments"]

                        if choices[0].get("finish_reason"):
                            finish_reason = choices[0]["finish_reason"]

                    if not done and finish_reason is None:
                        logger.warning("OpenAI stream ended without completion marker")
                        return

                    tool_calls = self._parse_accumulated_tool_calls(accumulated_tool_calls)
                    for tool_call in tool_calls:
                        yield LlmStreamEvent.tool_call_announced(tool_call)

                    span.set_attribute("llm.tool_call_count", len(tool_calls))
                    span.set_attribute("llm.finish_reason", finish_reason or "stop")
                    logger.info(f"🏁 OpenAI stream completed: finish_reason={finish_reason}, tool_calls={len(tool_calls)}")
                    yield LlmStreamEvent.turn_complete(finish_reason or ("tool_calls" if tool_calls else "stop"))

            except LlmProviderError:
                span.set_attribute("error", True)
                raise
            except httpx.ConnectError as e:
                span.set_attribute("error", True)
                logger.error(f"Cannot connect to OpenAI at {self._base_url}: {e}")
                raise LlmProviderError(
                    message="Cannot connect to OpenAI service",
                    error_code="openai_unavailable",
                    provider=self.PROVIDER_NAME,
                    is_retryable=True,
                    details={"url": self._base_url},
                )
            except httpx.TimeoutException as e:
                span.set_attribute("error", True)
                logger.error(f"OpenAI request timed out: {e}")
                raise LlmProviderError(
                    message="OpenAI request timed out",
                    error_code="openai_timeout",
                    provider=self.PROVIDER_NAME,
                    is_retryable=True,
                )
            except httpx.HTTPError as e:
                span.set_attribute("error", True)
                logger.error(f"OpenAI stream error: {e}")
                raise LlmProviderError(
                    message=f"OpenAI stream error: {e}",
                    error_code="openai_stream_error",
                    provider=self.PROVIDER_NAME,
                    is_retryable=True,
                )

    def _parse_accumulated_tool_calls(self, accumulated: dict[int, dict[str, Any]]) -> list[LlmToolCall]:
        """Parse accumulated tool call fragments into LlmToolCall objects.

        Args:
            accumulated: Dictionary of index -> tool call data

        Returns:
            List of LlmToolCall objects, in index order
        """
        tool_calls = []
        for idx in sorted(accumulated.keys()):
            tc = accumulated[idx]
            arguments_str = tc.get("arguments") or "{}"

            try:
                arguments = json.loads(arguments_str)
            except json.JSONDecodeError:
                logger.warning(f"Malformed arguments for tool call {tc.get('name')}: {arguments_str[:200]}")
                arguments = {}
            if not isinstance(arguments, dict):
                arguments = {}

            tool_calls.append(
                LlmToolCall(
                    id=tc.get("id") or f"call_{uuid4().hex[:24]}",
                    name=tc.get("name", ""),
                    arguments=arguments,
                )
            )
        return tool_calls

    def _handle_stream_error(self, error: Any) -> LlmProviderError:
        message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
        return LlmProviderError(
            message=f"OpenAI stream error: {message}",
            error_code="openai_stream_error",
            provider=self.PROVIDER_NAME,
            is_retryable=True,
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
                message="OpenAI authentication failed. Check your API key.",
                error_code="openai_auth_error",
                provider=self.PROVIDER_NAME,
                is_retryable=False,
            )
        elif status_code == 403:
            return LlmProviderError(
                message="Access denied to OpenAI API. Check your permissions.",
                error_code="openai_forbidden",
                provider=self.PROVIDER_NAME,
                is_retryable=False,
            )
        elif status_code == 404:
            return LlmProviderError(
                message=f"Model '{model}' not found or endpoint not available",
                error_code="openai_model_not_found",
                provider=self.PROVIDER_NAME,
                is_retryable=False,
                details={"model": model},
            )
        elif status_code == 429:
            return LlmProviderError(
                message="OpenAI rate limit exceeded. Please try again later.",
                error_code="openai_rate_limit",
                provider=self.PROVIDER_NAME,
                is_retryable=True,
            )
        elif status_code >= 500:
            return LlmProviderError(
                message=f"OpenAI server error: {error_detail}",
                error_code="openai_server_error",
                provider=self.PROVIDER_NAME,
                is_retryable=True,
            )
        else:
            return LlmProviderError(
                message=f"OpenAI API error: {error_detail}",
                error_code="openai_api_error",
                provider=self.PROVIDER_NAME,
                is_retryable=False,
            )

    async def health_check(self) -> bool:
        """Check if OpenAI is available by listing models.

        Returns:
            True if healthy, False otherwise
        """
        try:
            client = await self._get_client()
            response = await client.get("/models", headers=self._get_auth_headers())
            response.raise_for_status()
            logger.debug("OpenAI health check passed")
            return True
        except (LlmProviderError, httpx.HTTPError) as e:
            logger.error(f"OpenAI health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
