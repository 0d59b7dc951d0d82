"""Unit tests for AnthropicLlmProvider against a mocked Messages API."""

import json

import httpx
import pytest

from application.agents.llm_provider import LlmConfig, LlmMessage, LlmProviderError, LlmStreamEventType, LlmToolCall
from infrastructure.adapters import AnthropicLlmProvider
from tests.fixtures.factories import ToolSchemaFactory


def sse(*events: dict) -> str:
    return "".join(f"event: {e['type']}\ndata: {json.dumps(e)}\n\n" for e in events)


MESSAGE_START = {"type": "message_start", "message": {"id": "msg_1", "role": "assistant", "content": []}}
MESSAGE_STOP = {"type": "message_stop"}

TOOL_USE_STREAM = sse(
    MESSAGE_START,
    {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
    {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Checking"}},
    {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": " deals."}},
    {"type": "content_block_stop", "index": 0},
    {"type": "content_block_start", "index": 1, "content_block": {"type": "tool_use", "id": "toolu_1", "name": "search_deals", "input": {}}},
    {"type": "content_block_delta", "index": 1, "delta": {"type": "input_json_delta", "partial_json": '{"search_term":'}},
    {"type": "content_block_delta", "index": 1, "delta": {"type": "input_json_delta", "partial_json": ' "Acme"}'}},
    {"type": "content_block_stop", "index": 1},
    {"type": "message_delta", "delta": {"stop_reason": "tool_use"}},
    MESSAGE_STOP,
)


class Recorder:
    """MockTransport handler returning a fixed response and keeping the requests."""

    def __init__(self, status_code: int = 200, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, text=self.body, headers={"content-type": "text/event-stream"})

    @property
    def last_body(self) -> dict:
        return json.loads(self.requests[-1].content)


def make_provider(handler, api_key: str | None = "sk-ant-test") -> AnthropicLlmProvider:
    config = LlmConfig(
        model="claude-3-5-sonnet-20241022",
        base_url="http://anthropic.test",
        api_key=api_key,
        max_tokens=1024,
        extra={"api_version": "2023-06-01"},
    )
    return AnthropicLlmProvider(config, transport=httpx.MockTransport(handler))


async def collect(provider, history=None, tools=None, system_prompt="You are a CRM assistant."):
    return [event async for event in provider.open_stream(history or [LlmMessage.user("Hi")], tools, system_prompt)]


class TestAnthropicStreaming:
    """Test event production from the SSE stream."""

    @pytest.mark.asyncio
    async def test_text_then_tool_use(self) -> None:
        provider = make_provider(Recorder(body=TOOL_USE_STREAM))

        events = await collect(provider)

        assert [e.type for e in events] == [
            LlmStreamEventType.TEXT_DELTA,
            LlmStreamEventType.TEXT_DELTA,
            LlmStreamEventType.TOOL_CALL_ANNOUNCED,
            LlmStreamEventType.TURN_COMPLETE,
        ]
        assert "".join(e.text for e in events[:2]) == "Checking deals."
        assert events[2].tool_call == LlmToolCall(id="toolu_1", name="search_deals", arguments={"search_term": "Acme"})
        assert events[3].finish_reason == "tool_use"

    @pytest.mark.asyncio
    async def test_stream_without_message_stop(self) -> None:
        body = sse(
            MESSAGE_START,
            {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Partial"}},
        )
        provider = make_provider(Recorder(body=body))

        events = await collect(provider)

        assert [e.type for e in events] == [LlmStreamEventType.TEXT_DELTA]

    @pytest.mark.asyncio
    async def test_overloaded_error_event(self) -> None:
        body = sse(MESSAGE_START, {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}})
        provider = make_provider(Recorder(body=body))

        with pytest.raises(LlmProviderError) as exc_info:
            await collect(provider)

        assert exc_info.value.error_code == "anthropic_overloaded_error"
        assert exc_info.value.is_retryable is True


class TestAnthropicRequest:
    """Test request conversion."""

    @pytest.mark.asyncio
    async def test_request_headers_and_body(self) -> None:
        recorder = Recorder(body=sse(MESSAGE_STOP))
        provider = make_provider(recorder)
        history = [
            LlmMessage.user("Acme overview"),
            LlmMessage.assistant(
                "Looking it up.",
                tool_calls=[
                    LlmToolCall(id="toolu_1", name="search_organizations", arguments={"search_term": "Acme"}),
                    LlmToolCall(id="toolu_2", name="search_deals", arguments={"search_term": "Acme"}),
                ],
            ),
            LlmMessage.tool_result("toolu_1", "search_organizations", '{"organizations": []}'),
            LlmMessage.tool_result("toolu_2", "search_deals", '{"status": "ERROR"}', is_error=True),
        ]

        await collect(provider, history=history, tools=ToolSchemaFactory.crm_tools(), system_prompt="Be brief.")

        request = recorder.requests[0]
        assert request.url.path == "/v1/messages"
        assert request.headers["x-api-key"] == "sk-ant-test"
        assert request.headers["anthropic-version"] == "2023-06-01"

        body = recorder.last_body
        assert body["system"] == "Be brief."
        assert body["max_tokens"] == 1024
        assert "top_p" not in body
        assert [t["name"] for t in body["tools"]] == ["search_deals", "search_organizations"]
        assert "input_schema" in body["tools"][0]

        messages = body["messages"]
        assert len(messages) == 3
        assert messages[1]["content"][0] == {"type": "text", "text": "Looking it up."}
        assert [b["id"] for b in messages[1]["content"][1:]] == ["toolu_1", "toolu_2"]
        assert messages[2]["role"] == "user"
        assert [b["tool_use_id"] for b in messages[2]["content"]] == ["toolu_1", "toolu_2"]
        assert "is_error" not in messages[2]["content"][0]
        assert messages[2]["content"][1]["is_error"] is True


class TestAnthropicErrors:
    """Test error mapping."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status_code,error_code,retryable",
        [
            (401, "anthropic_auth_error", False),
            (429, "anthropic_rate_limit", True),
            (529, "anthropic_overloaded", True),
            (500, "anthropic_server_error", True),
        ],
    )
    async def test_http_status_mapping(self, status_code: int, error_code: str, retryable: bool) -> None:
        provider = make_provider(Recorder(status_code=status_code, body='{"error": {"message": "nope"}}'))

        with pytest.raises(LlmProviderError) as exc_info:
            await collect(provider)

        assert exc_info.value.error_code == error_code
        assert exc_info.value.is_retryable is retryable

    @pytest.mark.asyncio
    async def test_missing_api_key(self) -> None:
        provider = make_provider(Recorder(body=sse(MESSAGE_STOP)), api_key="")

        with pytest.raises(LlmProviderError) as exc_info:
            await collect(provider)

        assert exc_info.value.error_code == "anthropic_auth_config_error"
