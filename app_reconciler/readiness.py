"""Waiting on externally operated resources.

An externally operated resource (e.g. a streaming cluster) is reconciled by an
independent control loop that reports progress through the conditions of its
status subresource. The resource may not exist yet, may exist without a
status, or may report that it is not ready. None of these are errors: the
waiter keeps polling until the readiness condition holds or the RetryPolicy
runs out.
"""

from collections.abc import Callable, Iterable
from enum import StrEnum
import logging
from typing import Any, Generic, TypeVar

from .client import Client
from .exceptions import ObjectNotFoundError, ReadinessTimeoutError
from .manifest import BaseManifest, Condition, KafkaStatus, NamespacedName
from .retry import RetryPolicy, poll_until

__all__ = [
    "ReadinessState",
    "ReadinessWaiter",
    "condition_is_true",
    "listener_addresses",
]

_LOGGER = logging.getLogger(__name__)

READY_CONDITION = "Ready"
CONDITION_TRUE = "True"
PLAIN_LISTENER = "plain"

T = TypeVar("T", bound=BaseManifest)


class ReadinessState(StrEnum):
    """Observed state of an externally operated resource."""

    UNOBSERVED = "Unobserved"
    NOT_READY = "NotReady"
    READY = "Ready"
    TIMED_OUT = "TimedOut"


def condition_is_true(
    conditions: Iterable[Condition], condition_type: str = READY_CONDITION
) -> bool:
    """Return True if the named condition is present with a true status."""
    return any(
        condition.type == condition_type and condition.status == CONDITION_TRUE
        for condition in conditions
    )


def listener_addresses(
    status: KafkaStatus, listener_type: str = PLAIN_LISTENER
) -> list[tuple[str, int]]:
    """Return the (host, port) pairs a streaming cluster is reachable on.

    Addresses of the requested listener type are preferred; otherwise the
    addresses of the first listener reporting any are used.
    """
    listeners = [listener for listener in status.listeners if listener.addresses]
    for listener in listeners:
        if listener.type == listener_type:
            return [(address.host, address.port) for address in listener.addresses]
    if listeners:
        return [(address.host, address.port) for address in listeners[0].addresses]
    return []


class ReadinessWaiter(Generic[T]):
    """Polls an externally operated resource until it reports ready.

    When `extract` is given it is called with the ready object and must
    return the value dependents need (e.g. an address); polling continues
    while it returns None.
    """

    def __init__(
        self,
        client: Client,
        name: NamespacedName,
        cls: type[T],
        policy: RetryPolicy,
        extract: Callable[[T], Any] | None = None,
        condition_type: str = READY_CONDITION,
    ) -> None:
        """Initialize the ReadinessWaiter."""
        self._client = client
        self._name = name
        self._cls = cls
        self._policy = policy
        self._extract = extract
        self._condition_type = condition_type
        self.state = ReadinessState.UNOBSERVED
        self.attempts = 0

    @property
    def description(self) -> str:
        return f"{self._cls.kind} {self._name}"

    async def wait(self) -> tuple[T, Any]:
        """Wait for the resource to become ready.

        Returns:
            The ready object and the extracted value (None without `extract`).

        Raises:
            ReadinessTimeoutError: the resource never became ready in time.
        """
        try:
            return await poll_until(self._probe, self._policy, self.description)
        except ReadinessTimeoutError:
            self.state = ReadinessState.TIMED_OUT
            _LOGGER.warning(
                "%s not ready after %d attempt(s)", self.description, self.attempts
            )
            raise

    async def _probe(self) -> tuple[T, Any] | None:
        self.attempts += 1
        try:
            obj = await self._client.get(self._name, self._cls)
        except ObjectNotFoundError:
            _LOGGER.debug("%s does not exist yet", self.description)
            self.state = ReadinessState.NOT_READY
            return None
        if (status := getattr(obj, "status", None)) is None:
            _LOGGER.debug("%s has no status yet", self.description)
            self.state = ReadinessState.NOT_READY
            return None
        if not condition_is_true(status.conditions, self._condition_type):
            _LOGGER.debug(
                "%s condition %s is not true", self.description, self._condition_type
            )
            self.state = ReadinessState.NOT_READY
            return None
        value = None
        if self._extract is not None and (value := self._extract(obj)) is None:
            _LOGGER.debug("%s is ready but not yet addressable", self.description)
            self.state = ReadinessState.NOT_READY
            return None
        _LOGGER.info("%s is ready", self.description)
        self.state = ReadinessState.READY
        return obj, value
