"""Object store provider delivering bucket credentials."""

import logging

from app_reconciler.appconfig import ObjectStoreBucket, ObjectStoreConfig
from app_reconciler.application import MODE_NONE
from app_reconciler.exceptions import ObjectNotFoundError, ProviderException
from app_reconciler.manifest import NamespacedName, Secret

from .provider import Provider, ProviderContext

_LOGGER = logging.getLogger(__name__)

PROVIDER_NAME = "objectstore"
MODE_APP_INTERFACE = "app-interface"


class ObjectStoreProvider(Provider):
    """Fills the object store section from one secret per bucket."""

    name = PROVIDER_NAME

    async def provide(self, ctx: ProviderContext) -> None:
        config = ctx.env.providers.object_store
        if config.mode == MODE_NONE or not ctx.app.object_store:
            return
        if config.mode != MODE_APP_INTERFACE:
            raise self.unsupported_mode(config.mode)
        ctx.app_config.claim("object_store", self.name)

        buckets: list[ObjectStoreBucket] = []
        for bucket in ctx.app.object_store:
            secret_name = NamespacedName(ctx.env.target_namespace, bucket)
            try:
                secret = await ctx.client.get(secret_name, Secret)
            except ObjectNotFoundError as err:
                raise ProviderException(
                    f"Secret {secret_name} for bucket {bucket} not found"
                ) from err
            values = secret.values()
            buckets.append(
                ObjectStoreBucket(
                    requested_name=bucket,
                    name=values.get("bucket", bucket),
                    access_key=values.get("aws_access_key_id"),
                    secret_key=values.get("aws_secret_access_key"),
                    region=values.get("aws_region"),
                    endpoint=values.get("endpoint"),
                )
            )
        _LOGGER.debug("Found credentials for %d buckets", len(buckets))
        ctx.app_config.object_store = ObjectStoreConfig(buckets=buckets, tls=config.tls)
