"""Domain models for the CRM agent host.

Value objects and domain models.
"""

from domain.models.caller import AuthContext, CallerIdentity
from domain.models.message import Message, MessageRole, ToolExecution, ToolExecutionStatus
from domain.models.tool import ToolSchema

__all__ = [
    "AuthContext",
    "CallerIdentity",
    "Message",
    "MessageRole",
    "ToolExecution",
    "ToolExecutionStatus",
    "ToolSchema",
]
