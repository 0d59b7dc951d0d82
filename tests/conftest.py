"""Pytest configuration and shared fixtures for all tests.

This module provides:
- Test configuration and markers
- Shared fixtures for the conversation store, tool registry and LLM provider doubles
- A stream orchestrator wired to those doubles
"""

import pytest
from _pytest.config import Config

from application.orchestrator import OrchestratorConfig, StreamOrchestrator
from domain.models.caller import AuthContext, CallerIdentity
from infrastructure.repositories.in_memory_conversation_repository import InMemoryConversationRepository
from tests.fixtures.doubles import FakeToolRegistry, RecordingChunkSink, ScriptedLlmProvider
from tests.fixtures.factories import CallerFactory, ToolSchemaFactory

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config: Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (may use external services)")
    config.addinivalue_line("markers", "slow: Slow tests (may take several seconds)")
    config.addinivalue_line("markers", "auth: Authentication/authorization tests")
    config.addinivalue_line("markers", "repository: Repository layer tests")
    config.addinivalue_line("markers", "query: Query handler tests")
    config.addinivalue_line("markers", "orchestrator: Stream orchestrator tests")


# ============================================================================
# CALLER FIXTURES
# ============================================================================


@pytest.fixture
def caller() -> CallerIdentity:
    """Provide an authenticated sales user."""
    return CallerFactory.create()


@pytest.fixture
def auth_context() -> AuthContext:
    """Provide the credentials forwarded to tools."""
    return AuthContext(access_token="token-abc", request_id="req-1")


# ============================================================================
# COLLABORATOR FIXTURES
# ============================================================================


@pytest.fixture
def conversation_repository() -> InMemoryConversationRepository:
    """Provide an empty in-memory conversation store."""
    return InMemoryConversationRepository()


@pytest.fixture
def tool_registry() -> FakeToolRegistry:
    """Provide a tool registry offering the CRM search tools."""
    return FakeToolRegistry(
        schemas=ToolSchemaFactory.crm_tools(),
        results={
            "search_deals": {"deals": [{"name": "Acme renewal", "stage": "negotiation"}, {"name": "Globex upsell", "stage": "proposal"}]},
            "search_organizations": {"organizations": [{"name": "Acme Corp"}]},
        },
    )


@pytest.fixture
def llm_provider() -> ScriptedLlmProvider:
    """Provide an LLM provider without scripted stages; tests add their own."""
    return ScriptedLlmProvider()


@pytest.fixture
def sink() -> RecordingChunkSink:
    return RecordingChunkSink()


@pytest.fixture
def orchestrator_config() -> OrchestratorConfig:
    """Orchestrator tuning with no retry delay."""
    return OrchestratorConfig(persistence_retry_delay_seconds=0.0, llm_stream_idle_timeout_seconds=5.0)


@pytest.fixture
def orchestrator(
    conversation_repository: InMemoryConversationRepository,
    tool_registry: FakeToolRegistry,
    llm_provider: ScriptedLlmProvider,
    orchestrator_config: OrchestratorConfig,
) -> StreamOrchestrator:
    """Provide a StreamOrchestrator wired to the test doubles."""
    return StreamOrchestrator(
        conversation_repository=conversation_repository,
        tool_registry=tool_registry,
        llm_provider=llm_provider,
        config=orchestrator_config,
    )
