"""The aggregated runtime configuration delivered to an application.

Providers fill the sections of one AppConfig during a reconcile pass. A
provider claims a section before filling it so the reconciler can refuse to
serialize a document where a claimed section is still empty, which would hand
the workload an inconsistent configuration.
"""

from dataclasses import dataclass, field
import json
import logging
from typing import Any

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig

from .exceptions import ConfigOwnershipError, IncompleteConfigError

__all__ = [
    "AppConfig",
    "BrokerConfig",
    "TopicConfig",
    "KafkaConfig",
    "CloudWatchConfig",
    "LoggingConfig",
    "DatabaseConfig",
    "ObjectStoreBucket",
    "ObjectStoreConfig",
    "FeatureFlagsConfig",
    "InMemoryDBConfig",
]

_LOGGER = logging.getLogger(__name__)


@dataclass
class ConfigSection(DataClassDictMixin):
    """Base class for the sections of the configuration document."""

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True


@dataclass
class BrokerConfig(ConfigSection):
    """A streaming broker address."""

    hostname: str
    port: int | None = None


@dataclass
class TopicConfig(ConfigSection):
    """A topic as requested by the application and as provisioned."""

    requested_name: str = field(metadata=field_options(alias="requestedName"))
    name: str


@dataclass
class KafkaConfig(ConfigSection):
    """Streaming brokers and topics."""

    brokers: list[BrokerConfig] = field(default_factory=list)
    topics: list[TopicConfig] = field(default_factory=list)


@dataclass
class CloudWatchConfig(ConfigSection):
    """Credentials for shipping logs to CloudWatch."""

    access_key_id: str = field(metadata=field_options(alias="accessKeyId"))
    secret_access_key: str = field(metadata=field_options(alias="secretAccessKey"))
    region: str
    log_group: str = field(metadata=field_options(alias="logGroup"))


@dataclass
class LoggingConfig(ConfigSection):
    """Where the application ships its logs."""

    type: str
    cloudwatch: CloudWatchConfig | None = None


@dataclass
class DatabaseConfig(ConfigSection):
    """Connection parameters for the application database."""

    name: str
    username: str
    password: str
    hostname: str
    port: int
    admin_username: str = field(metadata=field_options(alias="adminUsername"))
    admin_password: str = field(metadata=field_options(alias="adminPassword"))
    ssl_mode: str = field(metadata=field_options(alias="sslMode"), default="disable")


@dataclass
class ObjectStoreBucket(ConfigSection):
    """Credentials for one object store bucket."""

    requested_name: str = field(metadata=field_options(alias="requestedName"))
    name: str
    access_key: str | None = field(
        metadata=field_options(alias="accessKey"), default=None
    )
    secret_key: str | None = field(
        metadata=field_options(alias="secretKey"), default=None
    )
    region: str | None = None
    endpoint: str | None = None


@dataclass
class ObjectStoreConfig(ConfigSection):
    """Object store buckets."""

    buckets: list[ObjectStoreBucket] = field(default_factory=list)
    tls: bool = True


@dataclass
class FeatureFlagsConfig(ConfigSection):
    """Feature flag service endpoint."""

    hostname: str
    port: int
    scheme: str = "https"


@dataclass
class InMemoryDBConfig(ConfigSection):
    """In-memory cache endpoint."""

    hostname: str
    port: int


@dataclass
class AppConfig(ConfigSection):
    """The configuration document consumed by an application at startup."""

    web_port: int | None = field(metadata=field_options(alias="webPort"), default=None)
    metrics_port: int | None = field(
        metadata=field_options(alias="metricsPort"), default=None
    )
    metrics_path: str | None = field(
        metadata=field_options(alias="metricsPath"), default=None
    )
    kafka: KafkaConfig | None = None
    logging: LoggingConfig | None = None
    database: DatabaseConfig | None = None
    object_store: ObjectStoreConfig | None = field(
        metadata=field_options(alias="objectStore"), default=None
    )
    feature_flags: FeatureFlagsConfig | None = field(
        metadata=field_options(alias="featureFlags"), default=None
    )
    in_memory_db: InMemoryDBConfig | None = field(
        metadata=field_options(alias="inMemoryDb"), default=None
    )

    claims: dict[str, str] = field(
        metadata={"serialize": "omit"}, default_factory=dict
    )
    """Section name to the provider that owns it; not serialized."""

    def claim(self, section: str, provider: str) -> None:
        """Record that a provider owns and will populate a section."""
        if section == "claims" or section not in self.__dataclass_fields__:
            raise ConfigOwnershipError(f"Unknown configuration section {section}")
        if (owner := self.claims.get(section)) is not None and owner != provider:
            raise ConfigOwnershipError(
                f"Configuration section {section} is owned by {owner}, not {provider}"
            )
        _LOGGER.debug("Provider %s claims configuration section %s", provider, section)
        self.claims[section] = provider

    def validate(self) -> None:
        """Check that every claimed section has been populated."""
        missing = [
            f"{section} ({owner})"
            for section, owner in self.claims.items()
            if getattr(self, section) is None
        ]
        if missing:
            raise IncompleteConfigError(
                f"Configuration sections claimed but not populated: {', '.join(missing)}"
            )

    def to_json(self) -> str:
        """Serialize the document after validating it."""
        self.validate()
        content: dict[str, Any] = self.to_dict()
        return json.dumps(content, indent=2, sort_keys=True)
