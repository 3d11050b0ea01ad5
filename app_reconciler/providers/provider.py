"""Base class and shared helpers for providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
from typing import ClassVar

from app_reconciler.appconfig import AppConfig
from app_reconciler.application import Application, Environment
from app_reconciler.cache import ObjectCache
from app_reconciler.client import Client
from app_reconciler.config import ReconcilerConfig
from app_reconciler.exceptions import InputException, ObjectExistsError, ObjectNotFoundError
from app_reconciler.manifest import (
    BaseManifest,
    Container,
    ContainerPort,
    Deployment,
    EnvVar,
    NamespacedName,
    Service,
    ServicePort,
)

_LOGGER = logging.getLogger(__name__)


@dataclass
class ProviderContext:
    """Everything a provider needs during one reconcile pass."""

    client: Client
    cache: ObjectCache
    app: Application
    env: Environment
    app_config: AppConfig
    config: ReconcilerConfig

    def app_labels(self) -> dict[str, str]:
        """Labels applied to every object owned by the application."""
        return {"app": self.app.name}

    def app_resource_name(self, suffix: str) -> NamespacedName:
        """Address of an application object named `<app>-<suffix>`."""
        return NamespacedName(self.app.namespace, f"{self.app.name}-{suffix}")


class Provider(ABC):
    """A domain module contributing desired state and configuration.

    Providers stage objects in the cache and fill their sections of the
    AppConfig. They run sequentially in dependency order and must not write to
    the backing store directly, except to ensure externally operated resources
    exist before awaiting them.
    """

    name: ClassVar[str]

    @abstractmethod
    async def provide(self, ctx: ProviderContext) -> None:
        """Stage the desired state of this provider for the application."""

    def unsupported_mode(self, mode: str) -> InputException:
        """Return the error raised for a mode this provider does not support."""
        return InputException(f"Provider {self.name} does not support mode '{mode}'")


async def ensure_exists(client: Client, obj: BaseManifest) -> bool:
    """Create an object unless it already exists; never update it.

    Returns True if the object was created.
    """
    try:
        await client.get(obj.namespaced_name, type(obj))
    except ObjectNotFoundError:
        pass
    else:
        return False
    _LOGGER.info("Creating %s %s", obj.kind, obj.namespaced_name)
    try:
        await client.create(obj)
    except ObjectExistsError:
        _LOGGER.debug("%s %s created concurrently", obj.kind, obj.namespaced_name)
        return False
    return True


def local_deployment(
    name: NamespacedName,
    image: str,
    port: int,
    labels: dict[str, str],
    env: dict[str, str] | None = None,
) -> Deployment:
    """Build a single replica Deployment for a locally provisioned service."""
    pod_labels = {**labels, "service": name.name}
    return Deployment(
        name=name.name,
        namespace=name.namespace,
        labels=pod_labels,
        selector={"service": name.name},
        containers=[
            Container(
                name=name.name,
                image=image,
                env=[EnvVar(key, value) for key, value in (env or {}).items()],
                ports=[ContainerPort(name="service", container_port=port)],
            )
        ],
    )


def local_service(
    name: NamespacedName, port: int, labels: dict[str, str]
) -> Service:
    """Build the Service in front of a `local_deployment`."""
    return Service(
        name=name.name,
        namespace=name.namespace,
        labels={**labels, "service": name.name},
        selector={"service": name.name},
        ports=[ServicePort(name="service", port=port, target_port=port)],
    )


def service_hostname(name: NamespacedName) -> str:
    """Cluster DNS name of a Service."""
    return f"{name.name}.{name.namespace}.svc"
