"""Module for the identity-keyed object cache.

Providers stage the objects of one reconcile pass in an ObjectCache rather
than writing them to the backing store directly. Each slot is addressed by a
ResourceIdentity whose type is registered on first use and enforced on every
later call, so independently written providers cannot collide on names or
confuse each other's object types. `apply_all` then commits the pass.
"""

import copy
import dataclasses
from dataclasses import dataclass, field
from enum import StrEnum
import logging
from typing import Any, TypeVar

from app_reconciler.client import Client
from app_reconciler.exceptions import (
    ApplyError,
    CacheMisuseError,
    CardinalityError,
    ObjectNotFoundError,
    ResourceConflictError,
    TypeMismatchError,
)
from app_reconciler.manifest import BaseManifest, NamedResource, NamespacedName, SCHEME

from .identity import Cardinality, ResourceIdentity

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseManifest)


class ApplyOperation(StrEnum):
    """Effective change made to the backing store for one object."""

    CREATED = "Created"
    UPDATED = "Updated"
    UNCHANGED = "Unchanged"


@dataclass
class ApplyResult:
    """Outcome of applying one staged object."""

    identity: ResourceIdentity[Any]
    name: NamespacedName
    operation: ApplyOperation | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        """Return True if the object could not be applied."""
        return self.error is not None


@dataclass
class _CacheEntry:
    """Objects staged for one identity, in insertion order."""

    identity: ResourceIdentity[Any]
    objects: dict[NamespacedName, BaseManifest] = field(default_factory=dict)


def merge_owned_fields(live: BaseManifest, desired: BaseManifest) -> BaseManifest:
    """Return the object to write over `live` to reach `desired`.

    Every spec field of a staged object is owned by the reconciler and
    overwritten. The status subresource belongs to whoever reconciles the
    object and is kept, and labels added by others survive unless a staged
    label with the same key replaces them.
    """
    changes: dict[str, Any] = {}
    if hasattr(live, "status"):
        changes["status"] = getattr(live, "status")
    if live_labels := getattr(live, "labels", None):
        changes["labels"] = {**live_labels, **(getattr(desired, "labels", None) or {})}
    if not changes:
        return desired
    return dataclasses.replace(desired, **changes)


class ObjectCache:
    """Typed staging store for the desired state of one reconcile pass."""

    def __init__(
        self, client: Client, scheme: dict[str, type[BaseManifest]] | None = None
    ) -> None:
        """Initialize the ObjectCache."""
        self._client = client
        self._scheme = scheme if scheme is not None else SCHEME
        self._entries: dict[tuple[str, str], _CacheEntry] = {}
        self._owners: dict[NamedResource, ResourceIdentity[Any]] = {}

    def __len__(self) -> int:
        """Return the number of staged objects."""
        return sum(len(entry.objects) for entry in self._entries.values())

    def __contains__(self, identity: ResourceIdentity[Any]) -> bool:
        """Return True if anything is staged for the identity."""
        entry = self._entries.get(identity.key)
        return entry is not None and bool(entry.objects)

    def identities(self) -> list[ResourceIdentity[Any]]:
        """Return the registered identities in registration order."""
        return [entry.identity for entry in self._entries.values()]

    def create(
        self, identity: ResourceIdentity[T], name: NamespacedName, obj: T
    ) -> None:
        """Stage an object for an identity under the given name.

        The first call for an identity registers its type. A single identity
        accepts one create; use `update` to replace its object. A multi
        identity accumulates objects, replacing one staged under the same name.
        An object of the same kind and name may only be staged by one identity.
        """
        entry = self._check(identity, type(obj))
        if (
            identity.cardinality == Cardinality.SINGLE
            and entry is not None
            and entry.objects
        ):
            raise CardinalityError(
                f"Identity {identity} already holds {next(iter(entry.objects))}, use update"
            )
        resource_id = NamedResource(obj.kind, name.namespace, name.name)
        if (owner := self._owners.get(resource_id)) is not None and owner.key != identity.key:
            raise ResourceConflictError(
                f"Identity {identity} cannot stage {resource_id}, already staged by {owner}"
            )
        staged = self._stage(name, obj)
        if entry is None:
            _LOGGER.debug("Registering identity %s for %s", identity, identity.type.__name__)
            entry = _CacheEntry(identity)
            self._entries[identity.key] = entry
        _LOGGER.debug("Staging %s %s for %s", obj.kind, name, identity)
        entry.objects[name] = staged
        self._owners[resource_id] = identity

    def get(self, identity: ResourceIdentity[T], cls: type[T]) -> T:
        """Return a copy of the object staged for a single identity."""
        self._require(identity, Cardinality.SINGLE, "get")
        entry = self._check(identity, cls)
        if entry is None or not entry.objects:
            raise ObjectNotFoundError(f"Nothing staged for identity {identity}")
        return copy.deepcopy(next(iter(entry.objects.values())))  # type: ignore[return-value]

    def update(self, identity: ResourceIdentity[T], obj: T) -> None:
        """Replace the object staged for a single identity."""
        self._require(identity, Cardinality.SINGLE, "update")
        entry = self._check(identity, type(obj))
        if entry is None or not entry.objects:
            raise ObjectNotFoundError(
                f"Nothing staged for identity {identity}, use create"
            )
        name = next(iter(entry.objects))
        _LOGGER.debug("Replacing %s %s for %s", obj.kind, name, identity)
        entry.objects[name] = self._stage(name, obj)

    async def apply_all(self) -> list[ApplyResult]:
        """Upsert every staged object into the backing store.

        Every object is attempted even when others fail. Objects that no longer
        appear in the cache are left alone.

        Raises:
            ApplyError: listing every object that failed to apply.
        """
        results: list[ApplyResult] = []
        for entry in self._entries.values():
            for name, obj in entry.objects.items():
                result = ApplyResult(entry.identity, name)
                try:
                    result.operation = await self._upsert(obj)
                except Exception as err:
                    _LOGGER.exception(
                        "Failed to apply %s %s for %s: %s",
                        obj.kind,
                        name,
                        entry.identity,
                        err,
                    )
                    result.error = f"{type(err).__name__}: {err}"
                results.append(result)
        if failures := [result for result in results if result.failed]:
            raise ApplyError(failures, results)
        _LOGGER.info("Applied %d objects", len(results))
        return results

    async def _upsert(self, obj: BaseManifest) -> ApplyOperation:
        try:
            live = await self._client.get(obj.namespaced_name, type(obj))
        except ObjectNotFoundError:
            await self._client.create(obj)
            return ApplyOperation.CREATED
        desired = merge_owned_fields(live, obj)
        if desired == live:
            return ApplyOperation.UNCHANGED
        await self._client.update(desired)
        return ApplyOperation.UPDATED

    def _require(
        self, identity: ResourceIdentity[Any], cardinality: Cardinality, op: str
    ) -> None:
        if identity.cardinality != cardinality:
            raise CardinalityError(
                f"Operation {op} requires a {cardinality} identity, {identity} is {identity.cardinality}"
            )

    def _check(
        self, identity: ResourceIdentity[Any], cls: type[BaseManifest]
    ) -> _CacheEntry | None:
        """Validate an identity and the caller's type against the registered type."""
        kind = getattr(identity.type, "kind", None)
        if kind is None or self._scheme.get(kind) is not identity.type:
            raise CacheMisuseError(
                f"Type {identity.type.__name__} of identity {identity} is not registered in the scheme"
            )
        entry = self._entries.get(identity.key)
        if entry is not None:
            if entry.identity.type is not identity.type:
                raise TypeMismatchError(str(identity), entry.identity.type, identity.type)
            if entry.identity.cardinality != identity.cardinality:
                raise CardinalityError(
                    f"Identity {identity} is registered as {entry.identity.cardinality}"
                )
        if cls is not identity.type:
            raise TypeMismatchError(str(identity), identity.type, cls)
        return entry

    def _stage(self, name: NamespacedName, obj: BaseManifest) -> BaseManifest:
        return copy.deepcopy(
            dataclasses.replace(obj, name=name.name, namespace=name.namespace)  # type: ignore[call-arg]
        )

    def list(self, identity: ResourceIdentity[T], cls: type[T]) -> list[T]:
        """Return copies of the objects staged for a multi identity, in order."""
        self._require(identity, Cardinality.MULTI, "list")
        entry = self._check(identity, cls)
        if entry is None:
            return []
        return [copy.deepcopy(obj) for obj in entry.objects.values()]  # type: ignore[misc]
