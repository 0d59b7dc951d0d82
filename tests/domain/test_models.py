"""Domain layer tests for value models: messages, tool executions, callers and tool schemas."""

from domain.models.caller import CallerIdentity
from domain.models.message import Message, MessageRole, ToolExecution, ToolExecutionStatus
from domain.models.tool import ToolSchema


class TestToolExecution:
    """Test tool execution records."""

    def test_error_record_drops_result(self) -> None:
        execution = ToolExecution(id="call_1", name="search_deals", input={}, status=ToolExecutionStatus.ERROR, result={"partial": True})

        assert execution.result is None
        assert execution.error == "Tool execution failed"
        assert execution.is_error

    def test_success_record_drops_error(self) -> None:
        execution = ToolExecution(id="call_1", name="search_deals", input={}, status=ToolExecutionStatus.SUCCESS, result=[], error="stale")

        assert execution.error is None
        assert not execution.is_error

    def test_from_dict_tolerates_missing_fields(self) -> None:
        execution = ToolExecution.from_dict({"id": "call_1", "name": "search_deals"})

        assert execution.status == ToolExecutionStatus.SUCCESS
        assert execution.input == {}
        assert execution.execution_time_ms == 0.0


class TestMessage:
    """Test conversation messages."""

    def test_assistant_message_keeps_execution_order(self) -> None:
        executions = [
            ToolExecution.succeeded("call_1", "search_organizations", {}, [], 1.0),
            ToolExecution.failed("call_2", "search_deals", {}, "timeout"),
        ]

        message = Message.create_assistant_message("Done.", executions)
        restored = Message.from_dict(message.to_dict())

        assert restored.role == MessageRole.ASSISTANT
        assert [te.id for te in restored.tool_executions] == ["call_1", "call_2"]
        assert restored.tool_executions[1].status == ToolExecutionStatus.ERROR

    def test_user_message_has_no_executions(self) -> None:
        message = Message.create_user_message("Hi")

        assert message.role == MessageRole.USER
        assert message.to_dict()["tool_executions"] == []


class TestCallerIdentity:
    """Test caller identities built from token claims."""

    def test_from_claims_merges_permission_sources(self) -> None:
        caller = CallerIdentity.from_claims(
            {"sub": "user-123", "email": "jdoe@example.com", "roles": ["sales"], "realm_access": {"roles": ["sales", "admin"]}}
        )

        assert caller.user_id == "user-123"
        assert caller.username == "jdoe@example.com"
        assert caller.permissions == ("sales", "admin")

    def test_permission_checks(self) -> None:
        caller = CallerIdentity(user_id="user-123", permissions=("sales",))

        assert caller.has_any_permission([])
        assert caller.has_any_permission(["admin", "sales"])
        assert not caller.has_any_permission(["admin"])


class TestToolSchema:
    """Test tool schema conversions."""

    def test_provider_formats(self) -> None:
        schema = ToolSchema(name="search_deals", description="Search deals", input_schema={"type": "object", "properties": {"stage": {"type": "string"}}})

        assert schema.to_openai_function()["function"]["parameters"]["properties"] == {"stage": {"type": "string"}}
        assert schema.to_anthropic_tool()["input_schema"] == schema.input_schema

    def test_from_provider_response_accepts_camel_case(self) -> None:
        schema = ToolSchema.from_provider_response({"name": "get_details", "description": "Details", "parameters": {"type": "object"}, "requiredPermissions": ["sales"]})

        assert schema.input_schema == {"type": "object"}
        assert schema.required_permissions == ["sales"]
