"""Feature flags provider."""

from app_reconciler.appconfig import FeatureFlagsConfig
from app_reconciler.application import MODE_NONE
from app_reconciler.exceptions import InputException

from .provider import Provider, ProviderContext

PROVIDER_NAME = "featureflags"
MODE_APP_INTERFACE = "app-interface"


class FeatureFlagsProvider(Provider):
    """Points applications at the environment's feature flag service."""

    name = PROVIDER_NAME

    async def provide(self, ctx: ProviderContext) -> None:
        config = ctx.env.providers.feature_flags
        if config.mode == MODE_NONE or not ctx.app.feature_flags:
            return
        if config.mode != MODE_APP_INTERFACE:
            raise self.unsupported_mode(config.mode)
        if not config.hostname:
            raise InputException(
                f"Environment {ctx.env.name} feature flags mode {config.mode} requires a hostname"
            )
        ctx.app_config.claim("feature_flags", self.name)
        ctx.app_config.feature_flags = FeatureFlagsConfig(
            hostname=config.hostname, port=config.port, scheme=config.scheme
        )
