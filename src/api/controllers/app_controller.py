"""Application health check controller."""

import logging

from classy_fastapi.decorators import get
from neuroglia.dependency_injection import ServiceProviderBase
from neuroglia.mapping import Mapper
from neuroglia.mediation import Mediator
from neuroglia.mvc import ControllerBase

from application.services.health_service import HealthService

log = logging.getLogger(__name__)


class AppController(ControllerBase):
    """Controller for application health checks."""

    def __init__(self, service_provider: ServiceProviderBase, mapper: Mapper, mediator: Mediator):
        super().__init__(service_provider, mapper, mediator)

    @get("/health")
    async def health(self) -> dict:
        """
        Report the health of the LLM provider and the tool registry.

        `status` is `healthy` when every component answers, `degraded`
        otherwise. Each entry of `components` carries its own `status` and,
        on failure, a `detail`.
        """
        health_service = self.service_provider.get_required_service(HealthService)
        return await health_service.check_async()
