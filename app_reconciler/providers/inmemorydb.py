"""In-memory cache provider."""

import logging

from app_reconciler.appconfig import InMemoryDBConfig
from app_reconciler.application import MODE_NONE
from app_reconciler.cache import ResourceIdentity
from app_reconciler.manifest import Deployment, Service

from .provider import (
    Provider,
    ProviderContext,
    local_deployment,
    local_service,
    service_hostname,
)

_LOGGER = logging.getLogger(__name__)

PROVIDER_NAME = "inmemorydb"
MODE_REDIS = "redis"
REDIS_PORT = 6379

DEPLOYMENT = ResourceIdentity.single(PROVIDER_NAME, "Deployment", Deployment)
SERVICE = ResourceIdentity.single(PROVIDER_NAME, "Service", Service)


class InMemoryDBProvider(Provider):
    """Provisions a redis instance for applications that request one."""

    name = PROVIDER_NAME

    async def provide(self, ctx: ProviderContext) -> None:
        config = ctx.env.providers.in_memory_db
        if config.mode == MODE_NONE or not ctx.app.in_memory_db:
            return
        if config.mode != MODE_REDIS:
            raise self.unsupported_mode(config.mode)
        ctx.app_config.claim("in_memory_db", self.name)

        name = ctx.app_resource_name("redis")
        labels = ctx.app_labels()
        ctx.cache.create(
            DEPLOYMENT, name, local_deployment(name, config.image, REDIS_PORT, labels)
        )
        ctx.cache.create(SERVICE, name, local_service(name, REDIS_PORT, labels))
        _LOGGER.info("Staged redis %s for %s", name, ctx.app.name)
        ctx.app_config.in_memory_db = InMemoryDBConfig(
            hostname=service_hostname(name), port=REDIS_PORT
        )
