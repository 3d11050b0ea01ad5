"""Logging provider delivering CloudWatch credentials."""

import logging

from app_reconciler.appconfig import CloudWatchConfig, LoggingConfig
from app_reconciler.application import MODE_NONE
from app_reconciler.exceptions import ObjectNotFoundError, ProviderException
from app_reconciler.manifest import NamespacedName, Secret

from .provider import Provider, ProviderContext

_LOGGER = logging.getLogger(__name__)

PROVIDER_NAME = "cloudwatch"
MODE_APP_INTERFACE = "app-interface"

# Secret key to AppConfig field
SECRET_KEYS = {
    "aws_access_key_id": "access_key_id",
    "aws_secret_access_key": "secret_access_key",
    "aws_region": "region",
    "log_group_name": "log_group",
}


class CloudWatchProvider(Provider):
    """Fills the logging section from a credentials secret."""

    name = PROVIDER_NAME

    async def provide(self, ctx: ProviderContext) -> None:
        config = ctx.env.providers.logging
        ctx.app_config.claim("logging", self.name)
        if config.mode == MODE_NONE:
            ctx.app_config.logging = LoggingConfig(type="null")
            return
        if config.mode != MODE_APP_INTERFACE:
            raise self.unsupported_mode(config.mode)

        secret_name = NamespacedName(ctx.env.target_namespace, config.secret_name)
        try:
            secret = await ctx.client.get(secret_name, Secret)
        except ObjectNotFoundError as err:
            raise ProviderException(f"Logging secret {secret_name} not found") from err
        values = secret.values()
        if missing := [key for key in SECRET_KEYS if key not in values]:
            raise ProviderException(
                f"Logging secret {secret_name} is missing keys: {', '.join(missing)}"
            )
        _LOGGER.debug("Using CloudWatch credentials from %s", secret_name)
        ctx.app_config.logging = LoggingConfig(
            type="cloudwatch",
            cloudwatch=CloudWatchConfig(
                **{field: values[key] for key, field in SECRET_KEYS.items()}
            ),
        )
