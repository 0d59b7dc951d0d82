"""CRM Agent Host main application entry point with Neuroglia framework."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from neuroglia.data.infrastructure.mongo import MotorRepository
from neuroglia.hosting.web import SubAppConfig, WebApplicationBuilder
from neuroglia.mapping import Mapper
from neuroglia.mediation import Mediator
from neuroglia.observability import Observability

from application.orchestrator import StreamOrchestrator
from application.services.health_service import HealthService
from application.services.tool_provider_client import ToolProviderClient
from application.settings import Settings, app_settings, configure_logging
from application.tools import LocalToolRegistry, register_builtin_tools
from domain.entities import Conversation
from domain.repositories import ConversationRepository
from infrastructure import InMemoryConversationRepository, configure_llm_provider
from integration.repositories import MotorConversationRepository

configure_logging(log_level=app_settings.log_level)
log = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure the CRM Agent Host application.

    Returns:
        Configured FastAPI application with Neuroglia framework
    """
    log.debug("🚀 Creating CRM Agent Host application...")

    builder = WebApplicationBuilder(app_settings=app_settings)
    builder.services.add_singleton(Settings, singleton=app_settings)

    # Configure core Neuroglia services
    Mediator.configure(builder, ["application.queries"])
    Mapper.configure(builder, ["application.queries"])
    Observability.configure(builder)

    # ==========================================================================
    # Conversation Store
    # ==========================================================================
    if app_settings.conversation_store == "mongo":
        MotorRepository.configure(
            builder,
            entity_type=Conversation,
            key_type=str,
            database_name=app_settings.database_name,
            collection_name=app_settings.conversations_collection,
            domain_repository_type=ConversationRepository,
            implementation_type=MotorConversationRepository,
        )
    else:
        InMemoryConversationRepository.configure(builder)

    _configure_agent_services(builder)

    builder.add_sub_app(
        SubAppConfig(
            path="/api",
            name="api",
            title=f"{app_settings.app_name} API",
            description="Streaming chat API for the CRM assistant",
            version=app_settings.app_version,
            controllers=["api.controllers"],
            docs_url="/docs",
        )
    )

    app = builder.build_app_with_lifespan(
        title=app_settings.app_name,
        description="Conversational CRM assistant with tool calling",
        version=app_settings.app_version,
        debug=app_settings.debug,
    )

    if app_settings.enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=app_settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    log.info("✅ CRM Agent Host application created successfully!")
    log.info(f"   - API Docs: http://localhost:{app_settings.app_port}/api/docs")
    return app


def _configure_agent_services(builder: WebApplicationBuilder) -> None:
    """Configure tools, the LLM provider and the stream orchestrator.

    Args:
        builder: The WebApplicationBuilder
    """
    log.info("🔧 Configuring agent services...")

    # Remote tools provider when configured, built-in tools otherwise
    if app_settings.tools_provider_url:
        ToolProviderClient.configure(builder)
    else:
        registry = LocalToolRegistry()
        register_builtin_tools(registry)
        LocalToolRegistry.configure(builder, registry)

    configure_llm_provider(builder, app_settings)
    StreamOrchestrator.configure(builder)
    HealthService.configure(builder)

    log.info("✅ Agent services configured")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:create_app",
        factory=True,
        host=app_settings.app_host,
        port=app_settings.app_port,
        reload=app_settings.debug,
    )
