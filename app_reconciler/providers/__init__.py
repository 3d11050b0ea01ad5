"""Providers contributing the desired state of an application.

Each provider owns one domain. `PROVIDERS` lists them in the order they run:
a provider may rely on the objects and configuration of those before it.
"""

from .cloudwatch import CloudWatchProvider
from .database import DatabaseProvider
from .deployment import DeploymentProvider
from .featureflags import FeatureFlagsProvider
from .inmemorydb import InMemoryDBProvider
from .kafka import KafkaProvider
from .objectstore import ObjectStoreProvider
from .provider import Provider, ProviderContext
from .serviceprovider import ServiceProvider

__all__ = [
    "Provider",
    "ProviderContext",
    "PROVIDERS",
]


PROVIDERS: list[type[Provider]] = [
    CloudWatchProvider,
    KafkaProvider,
    DatabaseProvider,
    ObjectStoreProvider,
    InMemoryDBProvider,
    FeatureFlagsProvider,
    ServiceProvider,
    DeploymentProvider,
]
