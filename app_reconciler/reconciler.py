"""Reconciler driving providers for an application in an environment.

A pass runs every provider in order against a fresh `ObjectCache` and
`AppConfig`, stages the generated configuration secret, commits the cache
to the backing store and waits until the written objects are readable.
`Reconciler.run` repeats passes that fail with a retryable error, as when a
streaming cluster is not ready yet.
"""

import asyncio
from dataclasses import dataclass, field
import logging

from .appconfig import AppConfig
from .application import Application, Environment
from .cache import ApplyResult, ObjectCache, ResourceIdentity
from .client import Client
from .config import ReconcilerConfig
from .context import trace_context
from .exceptions import ApplyError, ReconcilerException
from .manifest import NamespacedName, Secret
from .providers import PROVIDERS, Provider, ProviderContext
from .retry import fetch_with_retry

_LOGGER = logging.getLogger(__name__)

CONFIG_SECRET = ResourceIdentity.single("config", "AppConfigSecret", Secret)


@dataclass
class ReconcileResult:
    """Outcome of a successful reconcile."""

    app_config: AppConfig
    """The configuration delivered to the application."""

    results: list[ApplyResult] = field(default_factory=list)
    """What happened to each staged object."""

    passes: int = 1
    """Number of passes it took to converge."""


class Reconciler:
    """Converges the backing store towards an application's desired state."""

    def __init__(
        self,
        client: Client,
        config: ReconcilerConfig | None = None,
        providers: list[type[Provider]] | None = None,
    ) -> None:
        """Initialize the Reconciler."""
        self._client = client
        self._config = config or ReconcilerConfig()
        self._providers = providers if providers is not None else PROVIDERS

    async def reconcile(self, app: Application, env: Environment) -> ReconcileResult:
        """Run a single pass.

        When a provider fails the remaining providers are skipped and the
        configuration secret is not generated, but what was staged so far is
        still applied before the provider error is raised.
        """
        if app.env_name != env.name:
            _LOGGER.warning(
                "Application %s declares environment %s, reconciling in %s",
                app.name,
                app.env_name,
                env.name,
            )
        cache = ObjectCache(self._client)
        ctx = ProviderContext(
            client=self._client,
            cache=cache,
            app=app,
            env=env,
            app_config=AppConfig(),
            config=self._config,
        )
        with trace_context(f"reconcile {app.namespace}/{app.name}"):
            try:
                for provider_cls in self._providers:
                    provider = provider_cls()
                    with trace_context(provider.name):
                        await provider.provide(ctx)
            except ReconcilerException as err:
                _LOGGER.info(
                    "Provider %s failed for %s, applying staged objects: %s",
                    provider.name,
                    app.name,
                    err,
                )
                with trace_context("apply"):
                    try:
                        await cache.apply_all()
                    except ApplyError as apply_err:
                        _LOGGER.error(
                            "Failed to apply %d staged objects: %s",
                            len(apply_err.failures),
                            apply_err,
                        )
                raise

            self._stage_config_secret(ctx)
            with trace_context("apply"):
                results = await cache.apply_all()
            with trace_context("observe"):
                await self._observe(results)
        return ReconcileResult(app_config=ctx.app_config, results=results)

    async def run(self, app: Application, env: Environment) -> ReconcileResult:
        """Reconcile until a pass succeeds.

        Passes failing with a retryable error are requeued after
        `requeue_delay`, up to `max_passes`. Any other error is raised at once.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                result = await self.reconcile(app, env)
            except ReconcilerException as err:
                if not err.retryable or attempt >= self._config.max_passes:
                    _LOGGER.error(
                        "Reconcile of %s failed after %d passes: %s", app.name, attempt, err
                    )
                    raise
                _LOGGER.warning(
                    "Requeueing %s after pass %d: %s", app.name, attempt, err
                )
                await asyncio.sleep(self._config.requeue_delay)
                continue
            result.passes = attempt
            _LOGGER.info("Reconciled %s in %d passes", app.name, attempt)
            return result

    async def _observe(self, results: list[ApplyResult]) -> None:
        """Wait until every applied object is visible in the backing store."""
        for result in results:
            await fetch_with_retry(
                self._client, result.name, result.identity.type, self._config.fetch
            )
        _LOGGER.debug("Observed %d applied objects", len(results))

    def _stage_config_secret(self, ctx: ProviderContext) -> None:
        content = ctx.app_config.to_json()
        name = NamespacedName(ctx.app.namespace, ctx.app.name)
        ctx.cache.create(
            CONFIG_SECRET,
            name,
            Secret.from_values(
                name.name,
                name.namespace,
                {self._config.config_secret_key: content},
                labels=ctx.app_labels(),
            ),
        )
