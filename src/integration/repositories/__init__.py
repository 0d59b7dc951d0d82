"""Integration layer repositories package.

Contains MongoDB repository implementations.
These implement the abstract interfaces defined in domain/repositories/.
"""

from .motor_conversation_repository import MotorConversationRepository

__all__ = [
    "MotorConversationRepository",
]
