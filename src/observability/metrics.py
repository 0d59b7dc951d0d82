"""Business metrics for the CRM Agent Host service.

Defines OpenTelemetry metrics for:
- Turns: orchestrated chat turns and their outcome
- Conversations: lifecycle and persistence
- LLM: Request latency and tool calls
- Tools: Fetching and execution
"""

from opentelemetry import metrics

meter = metrics.get_meter("crm_agent_host")

# =============================================================================
# TURN METRICS
# =============================================================================

chat_turns_started = meter.create_counter(
    name="crm_agent_host.chat.turns_started",
    description="Total chat turns started",
    unit="1",
)

chat_turns_completed = meter.create_counter(
    name="crm_agent_host.chat.turns_completed",
    description="Total chat turns that reached a complete chunk",
    unit="1",
)

chat_turns_failed = meter.create_counter(
    name="crm_agent_host.chat.turns_failed",
    description="Total chat turns that ended with an error chunk",
    unit="1",
)

chat_turn_duration = meter.create_histogram(
    name="crm_agent_host.chat.turn_duration",
    description="Duration of a chat turn (from request to terminal chunk)",
    unit="ms",
)

chat_chunks_sent = meter.create_counter(
    name="crm_agent_host.chat.chunks_sent",
    description="Total chunks emitted to chunk sinks",
    unit="1",
)

# =============================================================================
# CONVERSATION METRICS
# =============================================================================

conversations_created = meter.create_counter(
    name="crm_agent_host.conversations.created",
    description="Total conversations created",
    unit="1",
)

conversation_persistence_failures = meter.create_counter(
    name="crm_agent_host.conversations.persistence_failures",
    description="Turns whose messages could not be appended to the conversation",
    unit="1",
)

# =============================================================================
# LLM METRICS
# =============================================================================

llm_request_count = meter.create_counter(
    name="crm_agent_host.llm.request_count",
    description="Total LLM requests made",
    unit="1",
)

llm_request_time = meter.create_histogram(
    name="crm_agent_host.llm.request_time",
    description="Time for LLM requests (request to last event)",
    unit="ms",
)

llm_tool_calls = meter.create_counter(
    name="crm_agent_host.llm.tool_calls",
    description="Total tool calls announced by the LLM",
    unit="1",
)

# =============================================================================
# TOOL METRICS
# =============================================================================

tools_fetched = meter.create_counter(
    name="crm_agent_host.tools.fetched",
    description="Total times tools were fetched from the Tools Provider",
    unit="1",
)

tool_execution_count = meter.create_counter(
    name="crm_agent_host.tools.execution_count",
    description="Total tool executions",
    unit="1",
)

tool_execution_time = meter.create_histogram(
    name="crm_agent_host.tools.execution_time",
    description="Time to execute tools",
    unit="ms",
)

tool_execution_errors = meter.create_counter(
    name="crm_agent_host.tools.execution_errors",
    description="Total tool execution errors",
    unit="1",
)
