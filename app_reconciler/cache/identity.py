"""Logical identities of the slots of desired state in the object cache."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

from app_reconciler.manifest import BaseManifest

T = TypeVar("T", bound=BaseManifest)


class Cardinality(StrEnum):
    """Number of objects a cache slot holds."""

    SINGLE = "Single"
    MULTI = "Multi"


@dataclass(frozen=True)
class ResourceIdentity(Generic[T]):
    """Identifies one slot of desired state owned by a provider for a purpose.

    The identity is independent of the physical object name. Two identities
    with the same provider and purpose address the same slot, so they must
    also agree on the object type and cardinality.
    """

    provider: str
    purpose: str
    type: type[T]
    cardinality: Cardinality = Cardinality.SINGLE

    @classmethod
    def single(cls, provider: str, purpose: str, kind: type[T]) -> "ResourceIdentity[T]":
        """Identity for a purpose that yields exactly one object."""
        return cls(provider, purpose, kind, Cardinality.SINGLE)

    @classmethod
    def multi(cls, provider: str, purpose: str, kind: type[T]) -> "ResourceIdentity[T]":
        """Identity for a purpose that yields an open set of objects."""
        return cls(provider, purpose, kind, Cardinality.MULTI)

    @property
    def key(self) -> tuple[str, str]:
        """Return the slot key of the identity."""
        return (self.provider, self.purpose)

    def __str__(self) -> str:
        """Return the provider and purpose concatenated as an id."""
        return f"{self.provider}/{self.purpose}"
