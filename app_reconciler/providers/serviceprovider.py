"""Networking provider exposing deployments as Services."""

import logging

from app_reconciler.application import DeploymentSpec
from app_reconciler.cache import ResourceIdentity
from app_reconciler.manifest import Service, ServicePort

from .provider import Provider, ProviderContext

_LOGGER = logging.getLogger(__name__)

PROVIDER_NAME = "serviceprovider"
METRICS_PORT_NAME = "metrics"
WEB_PORT_NAME = "public"

SERVICES = ResourceIdentity.multi(PROVIDER_NAME, "Services", Service)


def deployment_labels(ctx: ProviderContext, deployment: DeploymentSpec) -> dict[str, str]:
    """Labels identifying the pods of a deployment."""
    return {**ctx.app_labels(), "pod": f"{ctx.app.name}-{deployment.name}"}


class ServiceProvider(Provider):
    """Stages one Service per deployment and fills the port settings."""

    name = PROVIDER_NAME

    async def provide(self, ctx: ProviderContext) -> None:
        web = ctx.env.providers.web
        metrics = ctx.env.providers.metrics
        for deployment in ctx.app.deployments:
            name = ctx.app_resource_name(deployment.name)
            labels = deployment_labels(ctx, deployment)
            ports = [
                ServicePort(
                    name=METRICS_PORT_NAME, port=metrics.port, target_port=metrics.port
                )
            ]
            if deployment.web:
                ports.append(
                    ServicePort(name=WEB_PORT_NAME, port=web.port, target_port=web.port)
                )
            ctx.cache.create(
                SERVICES,
                name,
                Service(
                    name=name.name,
                    namespace=name.namespace,
                    labels=labels,
                    selector={"pod": labels["pod"]},
                    ports=ports,
                ),
            )
            _LOGGER.debug("Staged Service %s with %d ports", name, len(ports))

        ctx.app_config.web_port = web.port
        ctx.app_config.metrics_port = metrics.port
        ctx.app_config.metrics_path = metrics.path
