"""Tool registry contract.

A tool registry advertises the tool schemas offered to the model and
executes tool calls. Execution failures are raised as ``ToolExecutionError``;
the orchestrator's tool executor turns them into error records.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from domain.models.caller import CallerIdentity
from domain.models.tool import ToolSchema


class ToolExecutionError(Exception):
    """Raised by a tool registry when a tool call cannot be satisfied.

    Attributes:
        message: Human-readable error message, recorded on the tool execution
        tool_name: The tool that failed
        error_code: Categorized error code
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        tool_name: str,
        error_code: str = "tool_error",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.tool_name = tool_name
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "tool_name": self.tool_name,
            "error_code": self.error_code,
            "details": self.details,
        }


@dataclass(frozen=True)
class ToolExecutionContext:
    """Context handed to every tool execution.

    Attributes:
        conversation_id: Conversation the turn belongs to
        caller: Authenticated caller
        access_token: Token for delegated calls made by the tool
        turn_id: Identifier of the running turn
        call_id: Provider-assigned tool call identifier
    """

    conversation_id: str
    caller: CallerIdentity
    access_token: Optional[str] = None
    turn_id: Optional[str] = None
    call_id: Optional[str] = None

    @property
    def user_id(self) -> str:
        return self.caller.user_id


class ToolRegistry(ABC):
    """Source of tool schemas and executor of tool calls."""

    @abstractmethod
    async def list_tool_schemas(self, access_token: Optional[str] = None) -> list[ToolSchema]:
        """List the tools offered to the model.

        Args:
            access_token: Caller token, for registries that scope tools per user
        """
        pass

    @abstractmethod
    async def execute(self, name: str, arguments: dict[str, Any], context: ToolExecutionContext) -> Any:
        """Execute one tool call and return its JSON-serializable result.

        Raises:
            ToolExecutionError: When the tool is unknown, the input is invalid or the tool fails
        """
        pass
