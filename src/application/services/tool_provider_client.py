"""Tools Provider client: a ToolRegistry backed by a remote tools service over HTTP."""

import logging
from typing import Any, Optional

import httpx
from neuroglia.hosting.abstractions import ApplicationBuilderBase
from opentelemetry import trace

from application.services.tool_registry import ToolExecutionContext, ToolExecutionError, ToolRegistry
from application.settings import Settings
from domain.models.tool import ToolSchema
from observability import tools_fetched

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class ToolProviderClient(ToolRegistry):
    """
    HTTP client for a remote Tools Provider API.

    Handles:
    - Fetching the tools available to the calling user
    - Executing tool calls with the user's token (delegated access)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the Tools Provider client.

        Args:
            base_url: Base URL of the Tools Provider (e.g., http://tools:8080)
            timeout: HTTP timeout in seconds
            transport: Optional custom transport (used by tests)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    @staticmethod
    def _auth_headers(access_token: Optional[str]) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"} if access_token else {}

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def list_tool_schemas(self, access_token: Optional[str] = None) -> list[ToolSchema]:
        """
        Fetch available tools from the Tools Provider.

        Args:
            access_token: User's access token for authentication

        Returns:
            Tool schemas visible to the user
        """
        client = await self._get_client()

        with tracer.start_as_current_span("tools_provider.get_tools") as span:
            try:
                response = await client.get("/api/agent/tools", headers=self._auth_headers(access_token))
                response.raise_for_status()

                data = response.json()
                tools = data.get("data", data) if isinstance(data, dict) else data
                schemas = [ToolSchema.from_provider_response(t) for t in tools if isinstance(t, dict) and t.get("name")]

                tools_fetched.add(1, {"tool_count": str(len(schemas))})
                span.set_attribute("tools.count", len(schemas))
                logger.debug(f"Fetched {len(schemas)} tools from Tools Provider")
                return schemas
            except httpx.HTTPStatusError as e:
                span.set_attribute("error", True)
                span.set_attribute("error.message", str(e))
                logger.error(f"HTTP error fetching tools: {e.response.status_code} - {e.response.text}")
                raise
            except httpx.RequestError as e:
                span.set_attribute("error", True)
                span.set_attribute("error.message", str(e))
                logger.error(f"Request error fetching tools: {e}")
                raise

    async def execute(self, name: str, arguments: dict[str, Any], context: ToolExecutionContext) -> Any:
        """
        Execute a tool via the Tools Provider API.

        Args:
            name: Name of the tool to execute
            arguments: Tool arguments
            context: Execution context carrying the user's access token

        Returns:
            The JSON body returned by the Tools Provider

        Raises:
            ToolExecutionError: On HTTP or transport failures
        """
        client = await self._get_client()

        with tracer.start_as_current_span("tools_provider.execute_tool") as span:
            span.set_attribute("tool.name", name)
            span.set_attribute("tool.argument_count", len(arguments))

            try:
                response = await client.post(
                    "/api/agent/tools/call",
                    json={"name": name, "arguments": arguments, "call_id": context.call_id, "conversation_id": context.conversation_id},
                    headers=self._auth_headers(context.access_token),
                )
                response.raise_for_status()
                return response.json()

            except httpx.HTTPStatusError as e:
                span.set_attribute("error", True)
                span.set_attribute("error.message", str(e))
                logger.error(f"HTTP error executing tool '{name}': {e.response.status_code} - {e.response.text}")
                raise ToolExecutionError(
                    f"Tool execution failed: {e.response.status_code}",
                    tool_name=name,
                    error_code="http_error",
                    details={"status_code": e.response.status_code, "body": e.response.text},
                ) from e
            except httpx.RequestError as e:
                span.set_attribute("error", True)
                span.set_attribute("error.message", str(e))
                logger.error(f"Request error executing tool '{name}': {e}")
                raise ToolExecutionError(f"Request failed: {str(e)}", tool_name=name, error_code="request_error") from e

    @staticmethod
    def configure(builder: ApplicationBuilderBase) -> None:
        """
        Configure ToolProviderClient as the application's ToolRegistry.

        Args:
            builder: The application builder
        """
        settings: Settings = next(
            (d.singleton for d in builder.services if d.service_type is Settings),
            None,
        )

        if settings is None:
            logger.warning("Settings not found in services, using defaults")
            settings = Settings()

        client = ToolProviderClient(
            base_url=settings.tools_provider_url,
            timeout=settings.tools_provider_timeout,
        )

        builder.services.add_singleton(ToolProviderClient, singleton=client)
        builder.services.add_singleton(ToolRegistry, singleton=client)
        logger.info(f"Configured ToolProviderClient with base_url={settings.tools_provider_url}")
