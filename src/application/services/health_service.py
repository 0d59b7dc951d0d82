"""Component health reporting for the agent host."""

import asyncio
import logging
import time
from datetime import UTC, datetime
from typing import Any, Optional

from neuroglia.hosting.abstractions import ApplicationBuilderBase

from application.agents.llm_provider import LlmProvider
from application.services.tool_registry import ToolRegistry

log = logging.getLogger(__name__)

HEALTHY = "healthy"
DEGRADED = "degraded"
ERROR = "error"


class HealthService:
    """Checks the LLM provider and the tool registry.

    The overall status is ``healthy`` when every component is healthy and
    ``degraded`` otherwise; the service itself keeps answering.
    """

    def __init__(self, llm_provider: LlmProvider, tool_registry: ToolRegistry, timeout_seconds: float = 5.0) -> None:
        self._llm_provider = llm_provider
        self._tool_registry = tool_registry
        self._timeout_seconds = timeout_seconds
        self._started = time.monotonic()

    async def check_async(self) -> dict[str, Any]:
        llm, tools = await asyncio.gather(self._check_llm_provider(), self._check_tool_registry())
        components = {"llm_provider": llm, "tool_registry": tools}
        status = HEALTHY if all(c["status"] == HEALTHY for c in components.values()) else DEGRADED
        if status != HEALTHY:
            log.warning(f"Health check degraded: {components}")
        return {
            "status": status,
            "components": components,
            "last_check": datetime.now(UTC).isoformat(),
            "uptime_seconds": int(time.monotonic() - self._started),
        }

    async def _check_llm_provider(self) -> dict[str, Any]:
        component: dict[str, Any] = {
            "provider": self._llm_provider.provider_type.value,
            "model": self._llm_provider.model,
        }
        try:
            async with asyncio.timeout(self._timeout_seconds):
                available = await self._llm_provider.health_check()
        except TimeoutError:
            return {**component, "status": ERROR, "detail": f"No answer within {self._timeout_seconds:g}s"}
        except Exception as e:
            log.error(f"LLM provider health check raised: {e}")
            return {**component, "status": ERROR, "detail": str(e) or type(e).__name__}
        if not available:
            return {**component, "status": ERROR, "detail": "Provider unavailable"}
        return {**component, "status": HEALTHY}

    async def _check_tool_registry(self) -> dict[str, Any]:
        try:
            async with asyncio.timeout(self._timeout_seconds):
                schemas = await self._tool_registry.list_tool_schemas()
        except TimeoutError:
            return {"status": ERROR, "detail": f"No answer within {self._timeout_seconds:g}s"}
        except Exception as e:
            log.error(f"Tool registry health check raised: {e}")
            return {"status": ERROR, "detail": str(e) or type(e).__name__}
        return {"status": HEALTHY, "tool_count": len(schemas)}

    @staticmethod
    def configure(builder: ApplicationBuilderBase) -> None:
        """Register HealthService as a singleton over the configured provider and registry."""
        builder.services.add_singleton(
            HealthService,
            implementation_factory=lambda sp: HealthService(
                llm_provider=sp.get_required_service(LlmProvider),
                tool_registry=sp.get_required_service(ToolRegistry),
            ),
        )
        log.info("Configured HealthService as singleton")
