"""Database provider."""

import logging
import secrets

from app_reconciler.appconfig import DatabaseConfig
from app_reconciler.application import MODE_NONE
from app_reconciler.cache import ResourceIdentity
from app_reconciler.exceptions import ObjectNotFoundError
from app_reconciler.manifest import Deployment, NamespacedName, Secret, Service

from .provider import (
    Provider,
    ProviderContext,
    local_deployment,
    local_service,
    service_hostname,
)

_LOGGER = logging.getLogger(__name__)

PROVIDER_NAME = "database"
MODE_LOCAL = "local"
DATABASE_PORT = 5432
ADMIN_USERNAME = "postgres"
CREDENTIAL_KEYS = ("username", "password", "adminPassword")

DEPLOYMENT = ResourceIdentity.single(PROVIDER_NAME, "Deployment", Deployment)
SERVICE = ResourceIdentity.single(PROVIDER_NAME, "Service", Service)
CREDENTIALS = ResourceIdentity.single(PROVIDER_NAME, "Credentials", Secret)


async def _credentials(ctx: ProviderContext, name: NamespacedName) -> dict[str, str]:
    """Return the credentials stored in the live secret, or new ones.

    Reusing the live credentials keeps the password stable across passes,
    which the running database depends on. Keys missing from the live secret
    are generated.
    """
    generated = {
        "username": f"user{secrets.token_hex(4)}",
        "password": secrets.token_urlsafe(16),
        "adminPassword": secrets.token_urlsafe(16),
    }
    try:
        secret = await ctx.client.get(name, Secret)
    except ObjectNotFoundError:
        _LOGGER.debug("Generating credentials for database %s", name)
        return generated
    values = secret.values()
    if missing := [key for key in CREDENTIAL_KEYS if not values.get(key)]:
        _LOGGER.warning(
            "Database secret %s is missing keys, generating: %s",
            name,
            ", ".join(missing),
        )
    return {**values, **{key: generated[key] for key in missing}}


class DatabaseProvider(Provider):
    """Provisions a local postgres database and fills the database section."""

    name = PROVIDER_NAME

    async def provide(self, ctx: ProviderContext) -> None:
        config = ctx.env.providers.database
        if config.mode == MODE_NONE or not ctx.app.database.name:
            return
        if config.mode != MODE_LOCAL:
            raise self.unsupported_mode(config.mode)
        ctx.app_config.claim("database", self.name)

        db_name = ctx.app.database.name
        name = ctx.app_resource_name("db")
        creds = await _credentials(ctx, name)
        version = ctx.app.database.version or config.default_version
        labels = ctx.app_labels()

        ctx.cache.create(
            CREDENTIALS,
            name,
            Secret.from_values(name.name, name.namespace, creds, labels=labels),
        )
        ctx.cache.create(
            DEPLOYMENT,
            name,
            local_deployment(
                name,
                f"{config.image}:{version}",
                DATABASE_PORT,
                labels,
                env={
                    "POSTGRESQL_DATABASE": db_name,
                    "POSTGRESQL_USER": creds["username"],
                    "POSTGRESQL_PASSWORD": creds["password"],
                    "POSTGRESQL_ADMIN_PASSWORD": creds["adminPassword"],
                },
            ),
        )
        ctx.cache.create(SERVICE, name, local_service(name, DATABASE_PORT, labels))
        _LOGGER.info("Staged postgres %s database %s for %s", version, db_name, ctx.app.name)

        ctx.app_config.database = DatabaseConfig(
            name=db_name,
            username=creds["username"],
            password=creds["password"],
            hostname=service_hostname(name),
            port=DATABASE_PORT,
            admin_username=ADMIN_USERNAME,
            admin_password=creds["adminPassword"],
        )
