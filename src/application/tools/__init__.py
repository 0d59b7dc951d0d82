"""Tool payloads and the in-process tool registry."""

from application.tools.local_tool_registry import LocalToolRegistry, RegisteredTool
from application.tools.payloads import (
    GenericToolInput,
    GetDetailsInput,
    SearchContactsInput,
    SearchDealsInput,
    SearchOrganizationsInput,
    ThinkInput,
    ToolInput,
    ToolInputValidationError,
    parse_tool_input,
)
from application.tools.think_tool import register_builtin_tools

__all__ = [
    "GenericToolInput",
    "GetDetailsInput",
    "LocalToolRegistry",
    "RegisteredTool",
    "SearchContactsInput",
    "SearchDealsInput",
    "SearchOrganizationsInput",
    "ThinkInput",
    "ToolInput",
    "ToolInputValidationError",
    "parse_tool_input",
    "register_builtin_tools",
]
