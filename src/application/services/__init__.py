"""Application services package.

Contains the tool registry contract, the adapter for a remote Tools Provider
and component health reporting.
"""

from .health_service import HealthService
from .tool_provider_client import ToolProviderClient
from .tool_registry import ToolExecutionContext, ToolExecutionError, ToolRegistry

__all__ = [
    "HealthService",
    "ToolExecutionContext",
    "ToolExecutionError",
    "ToolProviderClient",
    "ToolRegistry",
]
