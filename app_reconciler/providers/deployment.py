"""Workload provider staging the application's Deployments."""

import logging

from app_reconciler.cache import ResourceIdentity
from app_reconciler.manifest import (
    Container,
    ContainerPort,
    Deployment,
    EnvVar,
    Volume,
    VolumeMount,
)

from .provider import Provider, ProviderContext
from .serviceprovider import METRICS_PORT_NAME, WEB_PORT_NAME, deployment_labels

_LOGGER = logging.getLogger(__name__)

PROVIDER_NAME = "deployment"
CONFIG_VOLUME = "config-secret"
CONFIG_MOUNT_PATH = "/cdapp/"
CONFIG_ENV_VAR = "ACG_CONFIG"
ANTI_AFFINITY_TOPOLOGY_KEYS = ["topology.kubernetes.io/zone", "kubernetes.io/hostname"]

DEPLOYMENTS = ResourceIdentity.multi(PROVIDER_NAME, "Deployments", Deployment)


class DeploymentProvider(Provider):
    """Stages one Deployment per declared deployment.

    Every pod mounts the generated configuration secret, which is named after
    the application, and finds it through the `ACG_CONFIG` variable.
    """

    name = PROVIDER_NAME

    async def provide(self, ctx: ProviderContext) -> None:
        web = ctx.env.providers.web
        metrics = ctx.env.providers.metrics
        for spec in ctx.app.deployments:
            name = ctx.app_resource_name(spec.name)
            labels = deployment_labels(ctx, spec)
            pod = spec.pod_spec
            env = [EnvVar(CONFIG_ENV_VAR, CONFIG_MOUNT_PATH + ctx.config.config_secret_key)]
            env.extend(EnvVar(var.name, var.value) for var in pod.env)
            ports = [ContainerPort(name=METRICS_PORT_NAME, container_port=metrics.port)]
            if spec.web:
                ports.append(ContainerPort(name=WEB_PORT_NAME, container_port=web.port))
            ctx.cache.create(
                DEPLOYMENTS,
                name,
                Deployment(
                    name=name.name,
                    namespace=name.namespace,
                    labels=labels,
                    replicas=spec.min_replicas,
                    selector={"pod": labels["pod"]},
                    containers=[
                        Container(
                            name=name.name,
                            image=pod.image,
                            command=pod.command,
                            args=pod.args,
                            env=env,
                            ports=ports,
                            volume_mounts=[
                                VolumeMount(name=CONFIG_VOLUME, mount_path=CONFIG_MOUNT_PATH)
                            ],
                        )
                    ],
                    volumes=[Volume(name=CONFIG_VOLUME, secret_name=ctx.app.name)],
                    anti_affinity_topology_keys=list(ANTI_AFFINITY_TOPOLOGY_KEYS),
                ),
            )
        _LOGGER.info(
            "Staged %d deployments for %s", len(ctx.app.deployments), ctx.app.name
        )
