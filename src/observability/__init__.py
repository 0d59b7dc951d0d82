"""Observability utilities and metrics."""

from .metrics import (
    chat_chunks_sent,
    chat_turn_duration,
    chat_turns_completed,
    chat_turns_failed,
    chat_turns_started,
    conversation_persistence_failures,
    conversations_created,
    llm_request_count,
    llm_request_time,
    llm_tool_calls,
    tool_execution_count,
    tool_execution_errors,
    tool_execution_time,
    tools_fetched,
)

__all__ = [
    # Turn metrics
    "chat_turns_started",
    "chat_turns_completed",
    "chat_turns_failed",
    "chat_turn_duration",
    "chat_chunks_sent",
    # Conversation metrics
    "conversations_created",
    "conversation_persistence_failures",
    # LLM metrics
    "llm_request_count",
    "llm_request_time",
    "llm_tool_calls",
    # Tool metrics
    "tools_fetched",
    "tool_execution_count",
    "tool_execution_time",
    "tool_execution_errors",
]
