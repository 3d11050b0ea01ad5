"""Fixtures for provider tests."""

import pytest

from app_reconciler.appconfig import AppConfig
from app_reconciler.application import Application, Environment
from app_reconciler.cache import ObjectCache
from app_reconciler.client import InMemoryClient
from app_reconciler.config import ReconcilerConfig
from app_reconciler.providers import ProviderContext


@pytest.fixture
def ctx(
    client: InMemoryClient,
    app: Application,
    env: Environment,
    config: ReconcilerConfig,
) -> ProviderContext:
    """Fixture for the context of a single reconcile pass."""
    return ProviderContext(
        client=client,
        cache=ObjectCache(client),
        app=app,
        env=env,
        app_config=AppConfig(),
        config=config,
    )
