"""App-reconciler build action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
from typing import cast

from .common import add_input_flags, reconcile

_LOGGER = logging.getLogger(__name__)


class BuildAction:
    """App-reconciler build action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "build",
                help="Build the objects reconciled for an application",
                description="""Reconciles an application in an environment
                    against an empty cluster, optionally seeded with existing
                    objects, and prints the resulting objects.""",
            ),
        )
        add_input_flags(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        app,
        env,
        objects=None,
        config=None,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        client, result = await reconcile(app, env, objects, config)
        _LOGGER.debug("Applied %d objects", len(result.results))
        print("".join(obj.yaml() for obj in client.objects()), end="")
