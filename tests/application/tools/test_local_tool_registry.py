"""Unit tests for LocalToolRegistry, tool payloads and the think tool.

Tests cover:
- Tool registration and advertised schemas
- Input validation at the registry boundary
- Permission checks
- Handler failures
"""

import pytest

from application.services.tool_registry import ToolExecutionContext, ToolExecutionError
from application.tools.local_tool_registry import LocalToolRegistry
from application.tools.payloads import (
    GenericToolInput,
    SearchDealsInput,
    SearchOrganizationsInput,
    ToolInputValidationError,
    parse_tool_input,
)
from application.tools.think_tool import register_builtin_tools
from tests.fixtures.factories import CallerFactory


@pytest.fixture
def context() -> ToolExecutionContext:
    return ToolExecutionContext(conversation_id="conv-1", caller=CallerFactory.create(permissions=("sales",)), call_id="call_1")


@pytest.fixture
def registry() -> LocalToolRegistry:
    return register_builtin_tools(LocalToolRegistry())


# ============================================================================
# PAYLOADS
# ============================================================================


class TestToolPayloads:
    """Test the typed tool input variants."""

    def test_known_tool_gets_typed_payload(self) -> None:
        payload = parse_tool_input("search_deals", {"search_term": "Acme", "min_amount": 1000})

        assert isinstance(payload, SearchDealsInput)
        assert payload.search_term == "Acme"
        assert payload.min_amount == 1000
        assert payload.limit == 20

    def test_missing_required_field(self) -> None:
        with pytest.raises(ToolInputValidationError) as exc_info:
            parse_tool_input("search_organizations", {})

        assert exc_info.value.tool_name == "search_organizations"
        assert str(exc_info.value).startswith("Invalid input for tool 'search_organizations':")
        assert any("search_term" in error for error in exc_info.value.errors)

    def test_unexpected_field_is_rejected(self) -> None:
        with pytest.raises(ToolInputValidationError):
            parse_tool_input("search_organizations", {"search_term": "Acme", "colour": "blue"})

    def test_unknown_tool_falls_back_to_generic(self) -> None:
        payload = parse_tool_input("custom_report", {"quarter": "Q3"})

        assert isinstance(payload, GenericToolInput)
        assert payload.tool == "custom_report"
        assert payload.arguments == {"quarter": "Q3"}

    def test_none_arguments_are_empty(self) -> None:
        payload = parse_tool_input("search_deals", None)

        assert isinstance(payload, SearchDealsInput)
        assert payload.search_term is None


# ============================================================================
# REGISTRY
# ============================================================================


class TestLocalToolRegistry:
    """Test registration, validation and execution."""

    @pytest.mark.asyncio
    async def test_builtin_think_tool_is_listed(self, registry) -> None:
        schemas = await registry.list_tool_schemas()

        assert [s.name for s in schemas] == ["think"]
        think = schemas[0]
        assert think.category == "Reasoning & Analysis"
        assert set(think.input_schema["required"]) == {"reasoning", "strategy", "next_steps"}
        assert "tool" not in think.input_schema["properties"]
        assert "title" not in think.input_schema

    @pytest.mark.asyncio
    async def test_think_tool_echoes_reasoning(self, registry, context) -> None:
        result = await registry.execute(
            "think",
            {"reasoning": "User wants Acme deals", "strategy": "Search deals", "next_steps": "Call search_deals"},
            context,
        )

        assert result["type"] == "thinking"
        assert result["conversation_id"] == "conv-1"
        assert result["reasoning"] == "User wants Acme deals"
        assert result["concerns"] is None

    @pytest.mark.asyncio
    async def test_handler_receives_validated_payload(self, context) -> None:
        received = []

        async def search(payload: SearchOrganizationsInput, ctx: ToolExecutionContext):
            received.append(payload)
            return {"organizations": [payload.search_term]}

        registry = LocalToolRegistry()
        registry.register("search_organizations", "Search organizations", search)

        result = await registry.execute("search_organizations", {"search_term": "Acme"}, context)

        assert result == {"organizations": ["Acme"]}
        assert isinstance(received[0], SearchOrganizationsInput)

    @pytest.mark.asyncio
    async def test_unknown_tool(self, registry, context) -> None:
        with pytest.raises(ToolExecutionError) as exc_info:
            await registry.execute("missing", {}, context)

        assert exc_info.value.error_code == "tool_not_found"
        assert exc_info.value.message == "Tool 'missing' not found"

    @pytest.mark.asyncio
    async def test_invalid_input(self, registry, context) -> None:
        with pytest.raises(ToolExecutionError) as exc_info:
            await registry.execute("think", {"reasoning": "x"}, context)

        assert exc_info.value.error_code == "invalid_input"
        assert exc_info.value.details["errors"]

    @pytest.mark.asyncio
    async def test_permission_denied(self, context) -> None:
        async def export(payload, ctx):
            return {"exported": True}

        registry = LocalToolRegistry()
        registry.register("export_pipeline", "Export the pipeline", export, required_permissions=["admin", "manager"])

        with pytest.raises(ToolExecutionError) as exc_info:
            await registry.execute("export_pipeline", {}, context)

        assert exc_info.value.error_code == "permission_denied"
        assert exc_info.value.message == "Insufficient permissions for export_pipeline. Required: admin, manager"

    @pytest.mark.asyncio
    async def test_handler_failure_is_wrapped(self, context) -> None:
        async def broken(payload, ctx):
            raise RuntimeError("CRM timeout")

        registry = LocalToolRegistry()
        registry.register("search_deals", "Search deals", broken)

        with pytest.raises(ToolExecutionError) as exc_info:
            await registry.execute("search_deals", {}, context)

        assert exc_info.value.error_code == "tool_failed"
        assert exc_info.value.message == "CRM timeout"

    def test_unregister(self, registry) -> None:
        assert registry.unregister("think") is True
        assert registry.unregister("think") is False
        assert registry.tool_names == []
