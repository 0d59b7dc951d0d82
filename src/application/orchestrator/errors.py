"""Errors that terminate or degrade an orchestrated turn.

Each error carries the ``error_type`` tag written to the terminal error chunk.
Tool failures are not listed here: they are recorded on the tool execution
and never end a turn.
"""

from typing import Any, Optional


class OrchestratorError(Exception):
    """Base error for turn-level failures.

    Attributes:
        message: Human-readable error message
        error_code: Categorized error code for programmatic handling
        is_retryable: Whether the turn might succeed on retry
        details: Additional error context
    """

    error_type: str = "InternalError"

    def __init__(
        self,
        message: str,
        error_code: str = "orchestrator_error",
        is_retryable: bool = False,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.is_retryable = is_retryable
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "error_code": self.error_code,
            "is_retryable": self.is_retryable,
            "details": self.details,
        }


class AuthenticationMissingError(OrchestratorError):
    """No caller identity was supplied."""

    error_type = "AuthenticationMissing"

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message, error_code="authentication_missing")


class ConversationLookupError(OrchestratorError):
    """The requested conversation does not exist or belongs to someone else."""

    error_type = "ConversationNotFound"

    def __init__(self, conversation_id: str) -> None:
        super().__init__("Conversation not found", error_code="conversation_not_found", details={"conversation_id": conversation_id})
        self.conversation_id = conversation_id


class ConversationCreateFailedError(OrchestratorError):
    """The conversation store could not create a conversation."""

    error_type = "ConversationCreateFailed"

    def __init__(self, message: str = "Failed to create conversation") -> None:
        super().__init__(message, error_code="conversation_create_failed", is_retryable=True)


class LlmStreamError(OrchestratorError):
    """A generation stage failed; the turn is aborted without persistence."""

    error_type = "LLMStreamError"

    def __init__(self, message: str, stage: int, is_retryable: bool = False, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, error_code="llm_stream_error", is_retryable=is_retryable, details={"stage": stage, **(details or {})})
        self.stage = stage


class PersistenceError(OrchestratorError):
    """The completed turn could not be appended to the conversation."""

    error_type = "PersistenceError"

    def __init__(self, message: str, is_retryable: bool = True) -> None:
        super().__init__(message, error_code="persistence_error", is_retryable=is_retryable)
