"""Representation of the cluster objects managed by the reconciler.

Objects are dataclasses that mirror the parts of the Kubernetes resources the
providers care about. They can be parsed from and rendered back to a
Kubernetes-style document (`apiVersion`, `kind`, `metadata`, `spec`, `status`)
so they can be read from YAML files and written to the backing store.
"""

import base64
from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any, ClassVar, TypeVar

import aiofiles
import yaml
from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig
from mashumaro.exceptions import InvalidFieldValue, MissingField

from .exceptions import InputException

__all__ = [
    "NamespacedName",
    "NamedResource",
    "BaseManifest",
    "Service",
    "ServicePort",
    "Deployment",
    "Container",
    "Secret",
    "ConfigMap",
    "KafkaTopic",
    "Kafka",
    "KafkaConnect",
    "SCHEME",
    "parse_raw_obj",
    "read_objects",
]

_LOGGER = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"
CORE_API_VERSION = "v1"
APPS_API_VERSION = "apps/v1"
KAFKA_API_VERSION = "kafka.strimzi.io/v1beta2"
KAFKA_CLUSTER_LABEL = "strimzi.io/cluster"

SERVICE_KIND = "Service"
DEPLOYMENT_KIND = "Deployment"
SECRET_KIND = "Secret"
CONFIG_MAP_KIND = "ConfigMap"
KAFKA_TOPIC_KIND = "KafkaTopic"
KAFKA_KIND = "Kafka"
KAFKA_CONNECT_KIND = "KafkaConnect"

# Document keys that are never part of an object body
_ENVELOPE_KEYS = ("apiVersion", "kind", "metadata", "status")

T = TypeVar("T", bound="BaseManifest")


@dataclass(frozen=True, order=True)
class NamespacedName:
    """Address of an object in the backing store."""

    namespace: str
    name: str

    def __str__(self) -> str:
        """Return the namespace and name concatenated as an id."""
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True, order=True)
class NamedResource:
    """Identifier for a kubernetes resource."""

    kind: str
    namespace: str | None
    name: str

    @classmethod
    def of(cls, obj: "BaseManifest") -> "NamedResource":
        """Return the identifier of an object."""
        return cls(obj.kind, obj.namespace, obj.name)

    @property
    def namespaced_name(self) -> str:
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    def __str__(self) -> str:
        """Return the kind and namespaced name concatenated as an id."""
        return f"{self.kind}/{self.namespaced_name}"


@dataclass
class SubResource(DataClassDictMixin):
    """Base class for structured values nested inside an object."""

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True
        allow_deserialization_not_by_alias = True


@dataclass
class BaseManifest(SubResource):
    """Base class for all cluster objects.

    Subclasses declare `name`, `namespace` and `labels` fields. All other
    fields are rendered under `spec_key`, or at the top level of the document
    when `spec_key` is None (e.g. Secret data).
    """

    kind: ClassVar[str]
    api_version: ClassVar[str]
    spec_key: ClassVar[str | None] = "spec"

    @property
    def namespaced_name(self) -> NamespacedName:
        """Return the backing store address of the object."""
        return NamespacedName(getattr(self, "namespace", None) or "", getattr(self, "name"))

    @classmethod
    def parse_doc(cls: type[T], doc: dict[str, Any]) -> T:
        """Parse an object from a kubernetes resource document."""
        if doc.get("kind") != cls.kind:
            raise InputException(f"Invalid {cls.__name__} has kind {doc.get('kind')}: {doc}")
        if not (metadata := doc.get("metadata")):
            raise InputException(f"Invalid {cls.__name__} missing metadata: {doc}")
        if not (name := metadata.get("name")):
            raise InputException(f"Invalid {cls.__name__} missing metadata.name: {doc}")
        body: dict[str, Any] = {}
        if cls.spec_key:
            body.update(doc.get(cls.spec_key) or {})
        else:
            body.update({k: v for k, v in doc.items() if k not in _ENVELOPE_KEYS})
        if (status := doc.get("status")) is not None:
            body["status"] = status
        body["name"] = name
        body["namespace"] = metadata.get("namespace")
        body["labels"] = metadata.get("labels")
        try:
            return cls.from_dict(body)
        except (MissingField, InvalidFieldValue) as err:
            raise InputException(f"Invalid {cls.__name__} {name}: {err}") from err

    def to_doc(self) -> dict[str, Any]:
        """Render the object as a kubernetes resource document."""
        data = self.to_dict()
        metadata: dict[str, Any] = {"name": data.pop("name")}
        if namespace := data.pop("namespace", None):
            metadata["namespace"] = namespace
        if labels := data.pop("labels", None):
            metadata["labels"] = labels
        status = data.pop("status", None)
        doc: dict[str, Any] = {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": metadata,
        }
        if self.spec_key is None:
            doc.update(data)
        elif data:
            doc[self.spec_key] = data
        if status is not None:
            doc["status"] = status
        return doc

    def yaml(self) -> str:
        """Return a YAML string representation of the document."""
        return yaml.dump(self.to_doc(), sort_keys=False, explicit_start=True)


@dataclass
class ServicePort(SubResource):
    """A port exposed by a Service."""

    name: str
    port: int
    target_port: int | None = field(
        metadata=field_options(alias="targetPort"), default=None
    )
    protocol: str = "TCP"


@dataclass
class Service(BaseManifest):
    """A Service exposes a set of pods on the network."""

    kind: ClassVar[str] = SERVICE_KIND
    api_version: ClassVar[str] = CORE_API_VERSION

    name: str
    namespace: str | None = None
    labels: dict[str, str] | None = None

    ports: list[ServicePort] = field(default_factory=list)
    """The ports exposed by the service."""

    selector: dict[str, str] | None = None
    """Pod labels the service routes traffic to."""


@dataclass
class EnvVar(SubResource):
    """An environment variable set in a container."""

    name: str
    value: str


@dataclass
class ContainerPort(SubResource):
    """A named port opened by a container."""

    name: str
    container_port: int = field(metadata=field_options(alias="containerPort"))


@dataclass
class VolumeMount(SubResource):
    """A volume mounted into a container."""

    name: str
    mount_path: str = field(metadata=field_options(alias="mountPath"))


@dataclass
class Volume(SubResource):
    """A volume backed by a Secret."""

    name: str
    secret_name: str = field(metadata=field_options(alias="secretName"))


@dataclass
class Container(SubResource):
    """A container running in a Deployment pod."""

    name: str
    image: str
    command: list[str] | None = None
    args: list[str] | None = None
    env: list[EnvVar] = field(default_factory=list)
    ports: list[ContainerPort] = field(default_factory=list)
    volume_mounts: list[VolumeMount] = field(
        metadata=field_options(alias="volumeMounts"), default_factory=list
    )


@dataclass
class Deployment(BaseManifest):
    """A Deployment runs a replicated set of pods."""

    kind: ClassVar[str] = DEPLOYMENT_KIND
    api_version: ClassVar[str] = APPS_API_VERSION

    name: str
    namespace: str | None = None
    labels: dict[str, str] | None = None

    replicas: int = 1
    """The number of desired pods."""

    selector: dict[str, str] | None = None
    """Labels identifying the pods owned by the deployment."""

    containers: list[Container] = field(default_factory=list)
    """The containers in the pod template."""

    volumes: list[Volume] = field(default_factory=list)
    """The volumes available to the pod template."""

    anti_affinity_topology_keys: list[str] = field(
        metadata=field_options(alias="antiAffinityTopologyKeys"),
        default_factory=list,
    )
    """Topology keys used to spread pods with preferred anti-affinity terms."""


@dataclass
class Secret(BaseManifest):
    """A Secret contains a small amount of sensitive data."""

    kind: ClassVar[str] = SECRET_KIND
    api_version: ClassVar[str] = CORE_API_VERSION
    spec_key: ClassVar[str | None] = None

    name: str
    namespace: str | None = None
    labels: dict[str, str] | None = None

    data: dict[str, str] | None = None
    """The base64 encoded data in the Secret."""

    string_data: dict[str, str] | None = field(
        metadata=field_options(alias="stringData"), default=None
    )
    """The plain string data in the Secret."""

    @classmethod
    def from_values(
        cls,
        name: str,
        namespace: str | None,
        values: dict[str, str],
        labels: dict[str, str] | None = None,
    ) -> "Secret":
        """Create a Secret with the values base64 encoded into data."""
        return cls(
            name=name,
            namespace=namespace,
            labels=labels,
            data={
                key: base64.b64encode(value.encode()).decode()
                for key, value in values.items()
            },
        )

    def values(self) -> dict[str, str]:
        """Return the decoded data merged with the string data."""
        result = {
            key: base64.b64decode(value).decode()
            for key, value in (self.data or {}).items()
        }
        result.update(self.string_data or {})
        return result


@dataclass
class ConfigMap(BaseManifest):
    """A ConfigMap is an API object used to store data in key-value pairs."""

    kind: ClassVar[str] = CONFIG_MAP_KIND
    api_version: ClassVar[str] = CORE_API_VERSION
    spec_key: ClassVar[str | None] = None

    name: str
    namespace: str | None = None
    labels: dict[str, str] | None = None

    data: dict[str, str] | None = None
    """The data in the ConfigMap."""


@dataclass
class KafkaTopic(BaseManifest):
    """A topic provisioned by the streaming cluster operator."""

    kind: ClassVar[str] = KAFKA_TOPIC_KIND
    api_version: ClassVar[str] = KAFKA_API_VERSION

    name: str
    namespace: str | None = None
    labels: dict[str, str] | None = None

    partitions: int | None = None
    replicas: int | None = None
    config: dict[str, str] | None = None


@dataclass
class Condition(SubResource):
    """A named condition reported in a status subresource."""

    type: str
    status: str
    reason: str | None = None
    message: str | None = None


@dataclass
class ListenerAddress(SubResource):
    """An address a listener is reachable on."""

    host: str
    port: int


@dataclass
class ListenerStatus(SubResource):
    """A listener exposed by the streaming cluster."""

    type: str | None = None
    addresses: list[ListenerAddress] = field(default_factory=list)


@dataclass
class KafkaStatus(SubResource):
    """Status subresource written by the streaming cluster operator."""

    conditions: list[Condition] = field(default_factory=list)
    listeners: list[ListenerStatus] = field(default_factory=list)


@dataclass
class Kafka(BaseManifest):
    """A streaming cluster reconciled by an external operator."""

    kind: ClassVar[str] = KAFKA_KIND
    api_version: ClassVar[str] = KAFKA_API_VERSION

    name: str
    namespace: str | None = None
    labels: dict[str, str] | None = None

    replicas: int = 1
    """The number of brokers."""

    version: str | None = None

    status: KafkaStatus | None = None


@dataclass
class KafkaConnectStatus(SubResource):
    """Status subresource written by the connect cluster operator."""

    conditions: list[Condition] = field(default_factory=list)


@dataclass
class KafkaConnect(BaseManifest):
    """A connect cluster reconciled by an external operator."""

    kind: ClassVar[str] = KAFKA_CONNECT_KIND
    api_version: ClassVar[str] = KAFKA_API_VERSION

    name: str
    namespace: str | None = None
    labels: dict[str, str] | None = None

    replicas: int = 1

    bootstrap_servers: str | None = field(
        metadata=field_options(alias="bootstrapServers"), default=None
    )

    status: KafkaConnectStatus | None = None


SCHEME: dict[str, type[BaseManifest]] = {
    cls.kind: cls
    for cls in (
        Service,
        Deployment,
        Secret,
        ConfigMap,
        KafkaTopic,
        Kafka,
        KafkaConnect,
    )
}
"""Registry of the object types known to the cache and the backing store."""


def parse_raw_obj(
    doc: dict[str, Any], scheme: dict[str, type[BaseManifest]] = SCHEME
) -> BaseManifest:
    """Parse a raw kubernetes object into a registered object type."""
    if not (kind := doc.get("kind")):
        raise InputException(f"Invalid object missing kind: {doc}")
    if not doc.get("apiVersion"):
        raise InputException(f"Invalid object missing apiVersion: {doc}")
    if (cls := scheme.get(kind)) is None:
        raise InputException(f"Unsupported object kind {kind}: {doc}")
    return cls.parse_doc(doc)


async def read_objects(path: Path) -> list[BaseManifest]:
    """Read a multi-document YAML file of cluster objects."""
    async with aiofiles.open(str(path)) as objects_file:
        content = await objects_file.read()
    try:
        docs = [doc for doc in yaml.safe_load_all(content) if doc]
    except yaml.YAMLError as err:
        raise InputException(f"Unable to parse objects file {path}: {err}") from err
    _LOGGER.debug("Read %d objects from %s", len(docs), path)
    return [parse_raw_obj(doc) for doc in docs]
