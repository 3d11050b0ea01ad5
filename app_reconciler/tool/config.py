"""App-reconciler config action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
from typing import cast

from .common import add_input_flags, reconcile


class ConfigAction:
    """App-reconciler config action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "config",
                help="Print the configuration generated for an application",
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
        _, result = await reconcile(app, env, objects, config)
        print(result.app_config.to_json())
