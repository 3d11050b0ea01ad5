"""Exceptions related to app-reconciler.

Every exception carries a `retryable` flag. The reconcile loop requeues a pass
that failed with a retryable error and fails loudly on anything else, since a
non-retryable error indicates a provider bug or malformed input.
"""

from typing import ClassVar, TYPE_CHECKING

if TYPE_CHECKING:
    from .cache.object_cache import ApplyResult

__all__ = [
    "ReconcilerException",
    "InputException",
    "ObjectNotFoundError",
    "ClientException",
    "ObjectExistsError",
    "CacheMisuseError",
    "TypeMismatchError",
    "CardinalityError",
    "ResourceConflictError",
    "ApplyError",
    "RetryTimeoutError",
    "ReadinessTimeoutError",
    "ProviderException",
    "ConfigOwnershipError",
    "IncompleteConfigError",
]


class ReconcilerException(Exception):
    """Generic base exception used for this library."""

    retryable: ClassVar[bool] = False


class InputException(ReconcilerException):
    """Raised when the input files or values are not formatted as expected."""


class ObjectNotFoundError(ReconcilerException):
    """Raised when an object is not found in the cache or backing store."""

    retryable = True


class ClientException(ReconcilerException):
    """Raised when the backing store rejects an operation."""

    retryable = True


class ObjectExistsError(ClientException):
    """Raised when creating an object that already exists."""


class CacheMisuseError(ReconcilerException):
    """Raised when a provider uses the object cache incorrectly."""


class TypeMismatchError(CacheMisuseError):
    """Raised when an object type disagrees with the identity's registered type."""

    def __init__(self, identity: str, expected: type, actual: type) -> None:
        super().__init__(
            f"Identity {identity} is registered for type {expected.__name__} (was {actual.__name__})"
        )
        self.identity = identity
        self.expected = expected
        self.actual = actual


class CardinalityError(CacheMisuseError):
    """Raised when an operation does not fit the identity's cardinality."""


class ResourceConflictError(CacheMisuseError):
    """Raised when two identities stage the same object."""


class ApplyError(ReconcilerException):
    """Raised when one or more staged objects failed to apply."""

    retryable = True

    def __init__(
        self,
        failures: list["ApplyResult"],
        results: list["ApplyResult"] | None = None,
    ) -> None:
        details = "; ".join(
            f"{result.identity}/{result.name}: {result.error}" for result in failures
        )
        super().__init__(f"Failed to apply {len(failures)} object(s): {details}")
        self.failures = failures
        self.results = results if results is not None else failures


class RetryTimeoutError(ReconcilerException):
    """Raised when a bounded fetch or poll runs past its deadline."""

    retryable = True


class ReadinessTimeoutError(RetryTimeoutError):
    """Raised when an external dependency never reports ready."""

    def __init__(self, description: str, attempts: int) -> None:
        super().__init__(
            f"Timed out waiting for {description} to become ready after {attempts} attempt(s)"
        )
        self.description = description
        self.attempts = attempts


class ProviderException(ReconcilerException):
    """Raised when a provider cannot build its desired state."""

    retryable = True


class ConfigOwnershipError(ReconcilerException):
    """Raised when two providers claim the same configuration section."""


class IncompleteConfigError(ReconcilerException):
    """Raised when a claimed configuration section was never populated."""

    retryable = True
