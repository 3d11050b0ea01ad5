"""Backing store client interface."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import TypeVar

from app_reconciler.manifest import BaseManifest, NamespacedName

T = TypeVar("T", bound=BaseManifest)


class ClientEvent(str, Enum):
    """Enum for backing store events."""

    OBJECT_CREATED = "object_created"
    OBJECT_UPDATED = "object_updated"
    STATUS_UPDATED = "status_updated"


class Client(ABC):
    """Abstract base class for the backing store holding cluster objects.

    Implementations must raise `ObjectNotFoundError` when an object does not
    exist and `ClientException` for every other failure. Callers rely on that
    distinction to tell eventual consistency apart from real errors.
    """

    @abstractmethod
    async def get(self, name: NamespacedName, cls: type[T]) -> T:
        """Fetch an object of the given type by name."""

    @abstractmethod
    async def create(self, obj: BaseManifest) -> None:
        """Create a new object."""

    @abstractmethod
    async def update(self, obj: BaseManifest) -> None:
        """Replace an existing object, leaving its status untouched."""

    @abstractmethod
    async def update_status(self, obj: BaseManifest) -> None:
        """Replace the status subresource of an existing object."""

    @abstractmethod
    async def list(
        self,
        cls: type[T],
        namespace: str | None = None,
        labels: dict[str, str] | None = None,
    ) -> list[T]:
        """List objects of a type, optionally filtered by namespace and labels."""
