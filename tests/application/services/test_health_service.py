"""Unit tests for HealthService."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from application.services.health_service import HealthService
from application.services.tool_registry import ToolExecutionError
from tests.fixtures.doubles import FakeToolRegistry, ScriptedLlmProvider
from tests.fixtures.factories import ToolSchemaFactory


@pytest.fixture
def tool_registry() -> FakeToolRegistry:
    return FakeToolRegistry(schemas=ToolSchemaFactory.crm_tools())


class TestHealthService:
    """Test component health reporting."""

    @pytest.mark.asyncio
    async def test_all_components_healthy(self, tool_registry) -> None:
        service = HealthService(ScriptedLlmProvider(), tool_registry)

        report = await service.check_async()

        assert report["status"] == "healthy"
        assert report["components"]["llm_provider"]["status"] == "healthy"
        assert report["components"]["llm_provider"]["model"] == "scripted-model"
        assert report["components"]["tool_registry"] == {"status": "healthy", "tool_count": 2}
        assert report["uptime_seconds"] >= 0
        assert "last_check" in report

    @pytest.mark.asyncio
    async def test_unavailable_provider_degrades(self, tool_registry) -> None:
        provider = ScriptedLlmProvider()
        provider.health_check = AsyncMock(return_value=False)

        report = await HealthService(provider, tool_registry).check_async()

        assert report["status"] == "degraded"
        assert report["components"]["llm_provider"]["status"] == "error"
        assert report["components"]["tool_registry"]["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_failing_tool_registry_degrades(self, tool_registry) -> None:
        tool_registry.list_error = ToolExecutionError("Tools provider unreachable", "list_tools", "unavailable")

        report = await HealthService(ScriptedLlmProvider(), tool_registry).check_async()

        assert report["status"] == "degraded"
        assert report["components"]["tool_registry"] == {"status": "error", "detail": "Tools provider unreachable"}

    @pytest.mark.asyncio
    async def test_slow_provider_times_out(self, tool_registry) -> None:
        async def never_answers() -> bool:
            await asyncio.sleep(5)
            return True

        provider = ScriptedLlmProvider()
        provider.health_check = never_answers

        report = await HealthService(provider, tool_registry, timeout_seconds=0.01).check_async()

        assert report["components"]["llm_provider"]["status"] == "error"
        assert "No answer within" in report["components"]["llm_provider"]["detail"]
