"""Domain exceptions for the CRM agent host.

This module contains domain-specific exceptions raised by the Conversation
aggregate and by conversation repositories when invariants are violated.
"""


class DomainError(Exception):
    """Base exception for domain rule violations.

    Attributes:
        message: Human-readable description of the violation.
        code: Optional error code for programmatic handling.
    """

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class ConversationNotFoundError(DomainError):
    """Raised when a conversation does not exist or is not owned by the caller."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation not found: {conversation_id}", code="CONVERSATION_NOT_FOUND")
        self.conversation_id = conversation_id


class ConversationConcurrencyError(DomainError):
    """Raised when an append is attempted against a stale conversation revision."""

    def __init__(self, conversation_id: str, expected_revision: int, actual_revision: int | None = None) -> None:
        detail = f"expected revision {expected_revision}"
        if actual_revision is not None:
            detail += f", found {actual_revision}"
        super().__init__(f"Concurrent update of conversation {conversation_id} ({detail})", code="CONVERSATION_CONCURRENCY_CONFLICT")
        self.conversation_id = conversation_id
        self.expected_revision = expected_revision
        self.actual_revision = actual_revision


class InvalidTurnError(DomainError):
    """Raised when appended messages do not form a user/assistant turn."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Invalid conversation turn: {reason}", code="INVALID_TURN")
