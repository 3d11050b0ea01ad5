"""Configuration objects for app-reconciler."""

from dataclasses import dataclass, field
from pathlib import Path

import aiofiles
import yaml
from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig
from mashumaro.exceptions import InvalidFieldValue, MissingField

from .exceptions import InputException
from .retry import RetryPolicy

CONFIG_SECRET_KEY = "cdappconfig.json"


@dataclass
class ReconcilerConfig(DataClassDictMixin):
    """Configuration for the Reconciler."""

    fetch: RetryPolicy = field(default_factory=RetryPolicy)
    """Policy for observing objects written by this or another pass."""

    readiness: RetryPolicy = field(default_factory=RetryPolicy)
    """Policy for awaiting externally operated resources."""

    max_passes: int = field(metadata=field_options(alias="maxPasses"), default=5)
    """Reconcile passes attempted by `Reconciler.run` before giving up."""

    requeue_delay: float = field(
        metadata=field_options(alias="requeueDelay"), default=1.0
    )
    """Seconds to wait before retrying a pass that failed with a retryable error."""

    config_secret_key: str = field(
        metadata=field_options(alias="configSecretKey"), default=CONFIG_SECRET_KEY
    )
    """Key of the generated secret holding the serialized configuration."""

    class Config(BaseConfig):
        serialize_by_alias = True
        allow_deserialization_not_by_alias = True


async def load_config(path: Path) -> ReconcilerConfig:
    """Load a ReconcilerConfig from a YAML file."""
    async with aiofiles.open(str(path)) as config_file:
        content = await config_file.read()
    try:
        return ReconcilerConfig.from_dict(yaml.safe_load(content) or {})
    except (yaml.YAMLError, MissingField, InvalidFieldValue, ValueError) as err:
        raise InputException(f"Invalid configuration file {path}: {err}") from err
