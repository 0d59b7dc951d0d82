"""Message model representing a single message in a conversation."""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class MessageRole(str, Enum):
    """Role of the message sender."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ToolExecutionStatus(str, Enum):
    """Outcome of a single tool execution."""

    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return datetime.now(UTC)


@dataclass
class ToolExecution:
    """Record of one tool call performed while producing an assistant message.

    Exactly one of ``result`` and ``error`` is meaningful, selected by ``status``.
    The ``id`` is the call identifier assigned by the LLM provider.
    """

    id: str
    name: str
    input: dict[str, Any]
    status: ToolExecutionStatus
    result: Any = None
    error: str | None = None
    execution_time_ms: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        if self.status == ToolExecutionStatus.ERROR:
            self.result = None
            if not self.error:
                self.error = "Tool execution failed"
        else:
            self.error = None

    @classmethod
    def succeeded(
        cls,
        call_id: str,
        name: str,
        input: dict[str, Any],
        result: Any,
        execution_time_ms: float,
    ) -> "ToolExecution":
        """Create a successful tool execution record."""
        return cls(
            id=call_id,
            name=name,
            input=input,
            status=ToolExecutionStatus.SUCCESS,
            result=result,
            execution_time_ms=execution_time_ms,
        )

    @classmethod
    def failed(
        cls,
        call_id: str,
        name: str,
        input: dict[str, Any],
        error: str,
        execution_time_ms: float = 0.0,
    ) -> "ToolExecution":
        """Create a failed tool execution record."""
        return cls(
            id=call_id,
            name=name,
            input=input,
            status=ToolExecutionStatus.ERROR,
            error=error,
            execution_time_ms=execution_time_ms,
        )

    @property
    def is_error(self) -> bool:
        return self.status == ToolExecutionStatus.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "input": self.input,
            "status": self.status.value,
            "result": self.result,
            "error": self.error,
            "execution_time_ms": self.execution_time_ms,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolExecution":
        return cls(
            id=data["id"],
            name=data["name"],
            input=data.get("input") or {},
            status=ToolExecutionStatus(data.get("status", ToolExecutionStatus.SUCCESS.value)),
            result=data.get("result"),
            error=data.get("error"),
            execution_time_ms=float(data.get("execution_time_ms") or 0.0),
            timestamp=_parse_datetime(data.get("timestamp")),
        )


@dataclass
class Message:
    """
    Represents a single message in a conversation.

    Assistant messages carry the ordered list of tool executions performed
    while the reply was produced. User and system messages never do.
    """

    id: str
    role: MessageRole
    content: str
    created_at: datetime
    tool_executions: list[ToolExecution] = field(default_factory=list)

    @classmethod
    def create_user_message(cls, content: str, created_at: datetime | None = None) -> "Message":
        """Create a new user message."""
        return cls(
            id=str(uuid.uuid4()),
            role=MessageRole.USER,
            content=content,
            created_at=created_at or datetime.now(UTC),
        )

    @classmethod
    def create_assistant_message(
        cls,
        content: str,
        tool_executions: list[ToolExecution] | None = None,
    ) -> "Message":
        """Create a new assistant message."""
        return cls(
            id=str(uuid.uuid4()),
            role=MessageRole.ASSISTANT,
            content=content,
            created_at=datetime.now(UTC),
            tool_executions=list(tool_executions or []),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert message to dictionary for serialization."""
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
            "tool_executions": [te.to_dict() for te in self.tool_executions],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        """Create message from dictionary."""
        return cls(
            id=data["id"],
            role=MessageRole(data["role"]),
            content=data.get("content") or "",
            created_at=_parse_datetime(data.get("created_at")),
            tool_executions=[ToolExecution.from_dict(te) for te in data.get("tool_executions", [])],
        )
