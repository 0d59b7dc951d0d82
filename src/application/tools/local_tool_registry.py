"""In-process tool registry with typed inputs and permission checks."""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from neuroglia.hosting.abstractions import ApplicationBuilderBase

from application.services.tool_registry import ToolExecutionContext, ToolExecutionError, ToolRegistry
from application.tools.payloads import ToolInput, ToolInputBase, ToolInputValidationError, input_model_for, input_schema_for, parse_tool_input
from domain.models.tool import ToolSchema

logger = logging.getLogger(__name__)

ToolHandler = Callable[[ToolInput, ToolExecutionContext], Awaitable[Any]]


@dataclass
class RegisteredTool:
    """A tool known to the local registry."""

    schema: ToolSchema
    input_model: type[ToolInputBase]
    handler: ToolHandler
    required_permissions: list[str] = field(default_factory=list)


class LocalToolRegistry(ToolRegistry):
    """Tool registry backed by async Python handlers.

    Arguments are validated into the tool's input model before the handler
    runs, and callers must hold one of the tool's required permissions.
    """

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def register(
        self,
        name: str,
        description: str,
        handler: ToolHandler,
        input_model: Optional[type[ToolInputBase]] = None,
        category: Optional[str] = None,
        required_permissions: Optional[list[str]] = None,
    ) -> RegisteredTool:
        """Register (or replace) a tool.

        Args:
            name: Tool name exposed to the model
            description: When the model should use the tool
            handler: Coroutine receiving the validated payload and execution context
            input_model: Input payload model; defaults to the known model for ``name``
            category: Optional grouping shown in tool listings
            required_permissions: Caller needs any one of these permissions
        """
        model = input_model or input_model_for(name)
        permissions = list(required_permissions or [])
        tool = RegisteredTool(
            schema=ToolSchema(
                name=name,
                description=description,
                input_schema=input_schema_for(model),
                category=category,
                required_permissions=permissions,
            ),
            input_model=model,
            handler=handler,
            required_permissions=permissions,
        )
        if name in self._tools:
            logger.warning(f"Replacing registered tool '{name}'")
        self._tools[name] = tool
        logger.debug(f"Registered tool '{name}' with input model {model.__name__}")
        return tool

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    async def list_tool_schemas(self, access_token: Optional[str] = None) -> list[ToolSchema]:
        return [tool.schema for tool in self._tools.values()]

    async def execute(self, name: str, arguments: dict[str, Any], context: ToolExecutionContext) -> Any:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolExecutionError(f"Tool '{name}' not found", tool_name=name, error_code="tool_not_found")

        if not context.caller.has_any_permission(tool.required_permissions):
            raise ToolExecutionError(
                f"Insufficient permissions for {name}. Required: {', '.join(tool.required_permissions)}",
                tool_name=name,
                error_code="permission_denied",
                details={"required_permissions": tool.required_permissions},
            )

        try:
            payload = parse_tool_input(name, arguments, tool.input_model)
        except ToolInputValidationError as e:
            raise ToolExecutionError(str(e), tool_name=name, error_code="invalid_input", details={"errors": e.errors}) from e

        try:
            return await tool.handler(payload, context)
        except ToolExecutionError:
            raise
        except Exception as e:
            raise ToolExecutionError(str(e) or type(e).__name__, tool_name=name, error_code="tool_failed") from e

    @staticmethod
    def configure(builder: ApplicationBuilderBase, registry: Optional["LocalToolRegistry"] = None) -> "LocalToolRegistry":
        """Register a LocalToolRegistry as the application's ToolRegistry."""
        registry = registry or LocalToolRegistry()
        builder.services.add_singleton(LocalToolRegistry, singleton=registry)
        builder.services.add_singleton(ToolRegistry, singleton=registry)
        logger.info(f"Configured LocalToolRegistry with tools: {registry.tool_names}")
        return registry
