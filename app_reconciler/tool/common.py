"""Shared flags and input loading for app-reconciler actions."""

from argparse import ArgumentParser
import logging
import pathlib

from app_reconciler.application import read_application, read_environment
from app_reconciler.client import InMemoryClient
from app_reconciler.config import ReconcilerConfig, load_config
from app_reconciler.manifest import read_objects
from app_reconciler.reconciler import Reconciler, ReconcileResult

_LOGGER = logging.getLogger(__name__)


def add_input_flags(args: ArgumentParser) -> None:
    """Add the flags naming the inputs of a reconcile."""
    args.add_argument(
        "--app",
        type=pathlib.Path,
        required=True,
        help="Path to the Application resource",
    )
    args.add_argument(
        "--env",
        type=pathlib.Path,
        required=True,
        help="Path to the Environment resource",
    )
    args.add_argument(
        "--objects",
        type=pathlib.Path,
        default=None,
        help="Optional path to objects that already exist in the cluster",
    )
    args.add_argument(
        "--config",
        type=pathlib.Path,
        default=None,
        help="Optional path to the reconciler configuration",
    )


async def reconcile(
    app: pathlib.Path,
    env: pathlib.Path,
    objects: pathlib.Path | None = None,
    config: pathlib.Path | None = None,
) -> tuple[InMemoryClient, ReconcileResult]:
    """Reconcile the application into a client seeded with existing objects."""
    application = await read_application(app)
    environment = await read_environment(env)
    reconciler_config = await load_config(config) if config else ReconcilerConfig()

    client = InMemoryClient()
    if objects:
        existing = await read_objects(objects)
        _LOGGER.debug("Seeding %d existing objects from %s", len(existing), objects)
        for obj in existing:
            await client.create(obj)

    result = await Reconciler(client, reconciler_config).run(application, environment)
    return client, result
