"""Bounded polling helpers for eventually consistent state.

Writes to the backing store are not guaranteed to be visible to the next read,
and externally operated resources become ready on their own schedule. Both
cases are observed by polling with an explicit RetryPolicy: a maximum number
of attempts, a fixed interval, and an overall deadline. Cancellation is
observed at every sleep between attempts.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging
from typing import TypeVar

from mashumaro import DataClassDictMixin

from .client import Client
from .exceptions import (
    ObjectNotFoundError,
    ReadinessTimeoutError,
    ReconcilerException,
    RetryTimeoutError,
)
from .manifest import BaseManifest, NamespacedName

__all__ = [
    "RetryPolicy",
    "fetch_with_retry",
    "poll_until",
]

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseManifest)
V = TypeVar("V")


@dataclass
class RetryPolicy(DataClassDictMixin):
    """How long to keep polling for a result."""

    attempts: int = 20
    """Maximum number of attempts."""

    interval: float = 0.5
    """Seconds to sleep between attempts."""

    timeout: float = 10.0
    """Overall deadline in seconds across all attempts."""

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError(f"RetryPolicy attempts must be at least 1: {self.attempts}")
        if self.interval < 0:
            raise ValueError(f"RetryPolicy interval must not be negative: {self.interval}")
        if self.timeout <= 0:
            raise ValueError(f"RetryPolicy timeout must be positive: {self.timeout}")


async def fetch_with_retry(
    client: Client, name: NamespacedName, cls: type[T], policy: RetryPolicy
) -> T:
    """Fetch an object, retrying while it is not found.

    Any error other than not found is raised immediately. When all attempts
    are exhausted the last not found error is raised.

    Raises:
        ObjectNotFoundError: the object never became visible.
        RetryTimeoutError: the deadline expired before the attempts ran out.
    """
    last_error = ObjectNotFoundError(f"{cls.kind} {name} not found")
    try:
        async with asyncio.timeout(policy.timeout):
            for attempt in range(1, policy.attempts + 1):
                try:
                    return await client.get(name, cls)
                except ObjectNotFoundError as err:
                    last_error = err
                    _LOGGER.debug(
                        "%s %s not found (attempt %d/%d)",
                        cls.kind,
                        name,
                        attempt,
                        policy.attempts,
                    )
                if attempt < policy.attempts:
                    await asyncio.sleep(policy.interval)
    except TimeoutError as err:
        raise RetryTimeoutError(
            f"Timed out after {policy.timeout}s fetching {cls.kind} {name}"
        ) from err
    raise last_error


async def poll_until(
    probe: Callable[[], Awaitable[V | None]],
    policy: RetryPolicy,
    description: str,
) -> V:
    """Call `probe` until it returns a value other than None.

    Retryable library errors raised by the probe are treated as transient,
    since the state being awaited is owned by an independent control loop.
    Any other error is raised at once.

    Raises:
        ReadinessTimeoutError: the attempts or the deadline ran out.
    """
    attempt = 0
    try:
        async with asyncio.timeout(policy.timeout):
            for attempt in range(1, policy.attempts + 1):
                try:
                    if (result := await probe()) is not None:
                        _LOGGER.debug("%s ready after %d attempt(s)", description, attempt)
                        return result
                except ReconcilerException as err:
                    if not err.retryable:
                        raise
                    _LOGGER.debug("Polling %s failed: %s", description, err)
                if attempt < policy.attempts:
                    await asyncio.sleep(policy.interval)
    except TimeoutError as err:
        raise ReadinessTimeoutError(description, attempt) from err
    raise ReadinessTimeoutError(description, attempt)
