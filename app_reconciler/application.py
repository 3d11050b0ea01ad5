"""Declared input of a reconcile: the application and its environment.

An `Application` describes what a team wants to run (deployments, topics,
database, buckets). An `Environment` describes how the cluster provides those
things (provider modes, cluster coordinates, default sizing). Both are read
from Kubernetes-style YAML documents.
"""

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
    "Application",
    "Environment",
    "read_application",
    "read_environment",
]

_LOGGER = logging.getLogger(__name__)

APPLICATION_KIND = "Application"
ENVIRONMENT_KIND = "Environment"

MODE_NONE = "none"

T = TypeVar("T", bound="DeclaredResource")


@dataclass
class DeclaredSpec(DataClassDictMixin):
    """Base class for the fields of a declared resource."""

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True
        allow_deserialization_not_by_alias = True


@dataclass
class DeclaredResource(DeclaredSpec):
    """Base class for declared resources parsed from a document."""

    kind: ClassVar[str]

    @classmethod
    def parse_doc(cls: type[T], doc: dict[str, Any]) -> T:
        """Parse the declared resource from a kubernetes-style document."""
        if doc.get("kind") != cls.kind:
            raise InputException(f"Invalid {cls.__name__} has kind {doc.get('kind')}: {doc}")
        if not (metadata := doc.get("metadata")):
            raise InputException(f"Invalid {cls.__name__} missing metadata: {doc}")
        if not (name := metadata.get("name")):
            raise InputException(f"Invalid {cls.__name__} missing metadata.name: {doc}")
        body = dict(doc.get("spec") or {})
        body["name"] = name
        if "namespace" in cls.__dataclass_fields__:
            body["namespace"] = metadata.get("namespace", "default")
        try:
            return cls.from_dict(body)
        except (MissingField, InvalidFieldValue) as err:
            raise InputException(f"Invalid {cls.__name__} {name}: {err}") from err


# Environment


@dataclass
class TopicDefaults(DeclaredSpec):
    """Sizing applied to topics that do not declare their own."""

    partitions: int = 3
    replicas: int = 3


@dataclass
class KafkaClusterConfig(DeclaredSpec):
    """Coordinates of the externally operated streaming cluster."""

    name: str = "kafka"
    namespace: str = "kafka"
    replicas: int = 1
    version: str | None = None
    topic_defaults: TopicDefaults = field(
        metadata=field_options(alias="topicDefaults"), default_factory=TopicDefaults
    )


@dataclass
class KafkaConnectConfig(DeclaredSpec):
    """The connect cluster paired with the streaming cluster."""

    enabled: bool = False
    name: str | None = None
    replicas: int = 1


@dataclass
class BrokerAddress(DeclaredSpec):
    """A statically configured broker."""

    hostname: str
    port: int = 9092


@dataclass
class KafkaProviderConfig(DeclaredSpec):
    """Streaming topic provider settings.

    Modes: `operator` provisions topics on an operator-managed cluster,
    `app-interface` uses the configured brokers, `none` disables streaming.
    """

    mode: str = MODE_NONE
    cluster: KafkaClusterConfig = field(default_factory=KafkaClusterConfig)
    connect: KafkaConnectConfig = field(default_factory=KafkaConnectConfig)
    brokers: list[BrokerAddress] = field(default_factory=list)
    listener_type: str = field(
        metadata=field_options(alias="listenerType"), default="plain"
    )


@dataclass
class DatabaseProviderConfig(DeclaredSpec):
    """Database provider settings. Modes: `local`, `none`."""

    mode: str = MODE_NONE
    image: str = "quay.io/cloudservices/postgresql-rds"
    default_version: int = field(
        metadata=field_options(alias="defaultVersion"), default=12
    )


@dataclass
class LoggingProviderConfig(DeclaredSpec):
    """Logging provider settings. Modes: `app-interface`, `none`."""

    mode: str = MODE_NONE
    secret_name: str = field(
        metadata=field_options(alias="secretName"), default="cloudwatch"
    )


@dataclass
class ObjectStoreProviderConfig(DeclaredSpec):
    """Object store provider settings. Modes: `app-interface`, `none`."""

    mode: str = MODE_NONE
    tls: bool = True


@dataclass
class InMemoryDBProviderConfig(DeclaredSpec):
    """In-memory cache provider settings. Modes: `redis`, `none`."""

    mode: str = MODE_NONE
    image: str = "quay.io/cloudservices/redis:6"


@dataclass
class FeatureFlagsProviderConfig(DeclaredSpec):
    """Feature flag provider settings. Modes: `app-interface`, `none`."""

    mode: str = MODE_NONE
    hostname: str | None = None
    port: int = 443
    scheme: str = "https"


@dataclass
class WebConfig(DeclaredSpec):
    """Web port settings."""

    port: int = 8000
    mode: str = MODE_NONE


@dataclass
class MetricsConfig(DeclaredSpec):
    """Metrics endpoint settings."""

    port: int = 9000
    path: str = "/metrics"
    mode: str = MODE_NONE


@dataclass
class ProvidersConfig(DeclaredSpec):
    """Per-provider settings of an environment."""

    kafka: KafkaProviderConfig = field(default_factory=KafkaProviderConfig)
    database: DatabaseProviderConfig = field(default_factory=DatabaseProviderConfig)
    logging: LoggingProviderConfig = field(default_factory=LoggingProviderConfig)
    object_store: ObjectStoreProviderConfig = field(
        metadata=field_options(alias="objectStore"),
        default_factory=ObjectStoreProviderConfig,
    )
    in_memory_db: InMemoryDBProviderConfig = field(
        metadata=field_options(alias="inMemoryDb"),
        default_factory=InMemoryDBProviderConfig,
    )
    feature_flags: FeatureFlagsProviderConfig = field(
        metadata=field_options(alias="featureFlags"),
        default_factory=FeatureFlagsProviderConfig,
    )
    web: WebConfig = field(default_factory=WebConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)


@dataclass
class Environment(DeclaredResource):
    """How the cluster provides services to the applications it runs."""

    kind: ClassVar[str] = ENVIRONMENT_KIND

    name: str
    target_namespace: str = field(
        metadata=field_options(alias="targetNamespace"), default="default"
    )
    providers: ProvidersConfig = field(default_factory=ProvidersConfig)


# Application


@dataclass
class EnvVarSpec(DeclaredSpec):
    """An environment variable for a deployment."""

    name: str
    value: str


@dataclass
class PodSpec(DeclaredSpec):
    """The container a deployment runs."""

    image: str
    command: list[str] | None = None
    args: list[str] | None = None
    env: list[EnvVarSpec] = field(default_factory=list)


@dataclass
class DeploymentSpec(DeclaredSpec):
    """A workload of the application."""

    name: str
    pod_spec: PodSpec = field(metadata=field_options(alias="podSpec"))
    min_replicas: int = field(metadata=field_options(alias="minReplicas"), default=1)
    web: bool = False


@dataclass
class KafkaTopicSpec(DeclaredSpec):
    """A topic the application needs, with optional sizing overrides."""

    topic_name: str = field(metadata=field_options(alias="topicName"))
    partitions: int | None = None
    replicas: int | None = None
    config: dict[str, str] | None = None


@dataclass
class DatabaseSpec(DeclaredSpec):
    """The database the application needs, if any."""

    name: str | None = None
    version: int | None = None


@dataclass
class Application(DeclaredResource):
    """What an application team wants to run."""

    kind: ClassVar[str] = APPLICATION_KIND

    name: str
    namespace: str
    env_name: str = field(metadata=field_options(alias="envName"))
    deployments: list[DeploymentSpec] = field(default_factory=list)
    kafka_topics: list[KafkaTopicSpec] = field(
        metadata=field_options(alias="kafkaTopics"), default_factory=list
    )
    database: DatabaseSpec = field(default_factory=DatabaseSpec)
    object_store: list[str] = field(
        metadata=field_options(alias="objectStore"), default_factory=list
    )
    in_memory_db: bool = field(metadata=field_options(alias="inMemoryDb"), default=False)
    feature_flags: bool = field(
        metadata=field_options(alias="featureFlags"), default=False
    )


async def _read_doc(path: Path) -> dict[str, Any]:
    async with aiofiles.open(str(path)) as declared_file:
        content = await declared_file.read()
    try:
        doc = yaml.safe_load(content)
    except yaml.YAMLError as err:
        raise InputException(f"Unable to parse {path}: {err}") from err
    if not isinstance(doc, dict):
        raise InputException(f"Expected a single object in {path}")
    return doc


async def read_application(path: Path) -> Application:
    """Read an Application from a YAML file."""
    app = Application.parse_doc(await _read_doc(path))
    _LOGGER.debug("Read application %s from %s", app.name, path)
    return app


async def read_environment(path: Path) -> Environment:
    """Read an Environment from a YAML file."""
    env = Environment.parse_doc(await _read_doc(path))
    _LOGGER.debug("Read environment %s from %s", env.name, path)
    return env
