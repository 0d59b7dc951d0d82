"""Application layer for the CRM Agent Host.

Contains:
- agents/: LLM provider contract and prompt assembly
- orchestrator/: Stream orchestrator running chat turns
- queries/: CQRS query handlers
- services/: Tool registry contract and remote tools client
- tools/: Built-in tools and tool payload models
- settings.py: Configuration
"""

from application.settings import Settings, app_settings, configure_logging

__all__ = [
    "Settings",
    "app_settings",
    "configure_logging",
]
