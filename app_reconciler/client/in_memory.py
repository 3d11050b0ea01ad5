"""Module for in memory backing store client."""

import copy
import dataclasses
from collections import defaultdict
from collections.abc import Callable
import logging
from typing import Any, DefaultDict, TypeVar

from app_reconciler.exceptions import (
    ClientException,
    ObjectExistsError,
    ObjectNotFoundError,
)
from app_reconciler.manifest import (
    BaseManifest,
    NamedResource,
    NamespacedName,
    SCHEME,
)

from .client import Client, ClientEvent

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseManifest)


class InMemoryClient(Client):
    """In-memory implementation of the Client interface.

    Stores cluster objects keyed by NamedResource. Objects are copied on the
    way in and out so callers never share state with the store. Supports event
    listeners so tests can simulate external controllers reacting to writes.
    """

    def __init__(self, scheme: dict[str, type[BaseManifest]] | None = None) -> None:
        """Initialize the InMemoryClient."""
        self._scheme = scheme if scheme is not None else SCHEME
        self._objects: dict[NamedResource, BaseManifest] = {}
        self._generation: dict[NamedResource, int] = {}
        self._listeners: DefaultDict[ClientEvent, list[Callable[..., None]]] = (
            defaultdict(list)
        )
        self.writes = 0

    def _key(self, cls: type[BaseManifest], name: NamespacedName) -> NamedResource:
        if cls.kind not in self._scheme:
            raise ClientException(f"Kind {cls.kind} is not registered in the scheme")
        return NamedResource(cls.kind, name.namespace, name.name)

    async def get(self, name: NamespacedName, cls: type[T]) -> T:
        """Fetch an object of the given type by name."""
        resource_id = self._key(cls, name)
        if (obj := self._objects.get(resource_id)) is None:
            raise ObjectNotFoundError(f"Object {resource_id} not found")
        if not isinstance(obj, cls):
            raise ClientException(
                f"Object {resource_id} is not of type {cls.__name__} (was {obj.__class__.__name__})"
            )
        return copy.deepcopy(obj)

    async def create(self, obj: BaseManifest) -> None:
        """Create a new object."""
        resource_id = self._key(type(obj), obj.namespaced_name)
        if resource_id in self._objects:
            raise ObjectExistsError(f"Object {resource_id} already exists")
        _LOGGER.debug("Creating object %s", resource_id)
        self._store(resource_id, obj)
        self._fire_event(ClientEvent.OBJECT_CREATED, resource_id, obj)

    async def update(self, obj: BaseManifest) -> None:
        """Replace an existing object, leaving its status untouched."""
        resource_id = self._key(type(obj), obj.namespaced_name)
        if (existing := self._objects.get(resource_id)) is None:
            raise ObjectNotFoundError(f"Object {resource_id} not found")
        if hasattr(existing, "status"):
            obj = dataclasses.replace(obj, status=copy.deepcopy(existing.status))
        if obj == existing:
            _LOGGER.debug("Object %s unchanged, skipping", resource_id)
            return
        _LOGGER.debug("Updating object %s", resource_id)
        self._store(resource_id, obj)
        self._fire_event(ClientEvent.OBJECT_UPDATED, resource_id, obj)

    async def update_status(self, obj: BaseManifest) -> None:
        """Replace the status subresource of an existing object."""
        resource_id = self._key(type(obj), obj.namespaced_name)
        if (existing := self._objects.get(resource_id)) is None:
            raise ObjectNotFoundError(f"Object {resource_id} not found")
        if not hasattr(obj, "status"):
            raise ClientException(f"Kind {resource_id.kind} has no status subresource")
        _LOGGER.debug("Updating status of object %s", resource_id)
        updated = dataclasses.replace(existing, status=copy.deepcopy(obj.status))
        self._store(resource_id, updated)
        self._fire_event(ClientEvent.STATUS_UPDATED, resource_id, updated)

    def generation(self, cls: type[BaseManifest], name: NamespacedName) -> int:
        """Return the number of effective writes to an object (0 if absent)."""
        return self._generation.get(self._key(cls, name), 0)

    def objects(self) -> list[BaseManifest]:
        """Return a copy of every stored object, ordered by identifier."""
        return [
            copy.deepcopy(obj)
            for _, obj in sorted(self._objects.items(), key=lambda item: item[0])
        ]

    def add_listener(
        self,
        event: ClientEvent,
        callback: Callable[[NamedResource, BaseManifest], None],
    ) -> Callable[[], None]:
        """Register a callback for a specific event.

        Returns a callable that can be called to remove the listener.
        """

        def remove() -> None:
            if callback in self._listeners[event]:
                self._listeners[event].remove(callback)

        self._listeners[event].append(callback)
        return remove

    async def list(
        self,
        cls: type[T],
        namespace: str | None = None,
        labels: dict[str, str] | None = None,
    ) -> list[T]:
        """List objects of a type, optionally filtered by namespace and labels."""
        results: list[T] = []
        for resource_id, obj in sorted(
            self._objects.items(), key=lambda item: item[0]
        ):
            if resource_id.kind != cls.kind or not isinstance(obj, cls):
                continue
            if namespace is not None and resource_id.namespace != namespace:
                continue
            obj_labels = getattr(obj, "labels", None) or {}
            if labels and not labels.items() <= obj_labels.items():
                continue
            results.append(copy.deepcopy(obj))
        return results

    def _store(self, resource_id: NamedResource, obj: BaseManifest) -> None:
        self._objects[resource_id] = copy.deepcopy(obj)
        self._generation[resource_id] = self._generation.get(resource_id, 0) + 1
        self.writes += 1

    def _fire_event(self, event: ClientEvent, *args: Any) -> None:
        for cb in list(self._listeners[event]):  # Iterate over a copy for safe removal
            try:
                cb(*args)
            except Exception:
                _LOGGER.exception("Client listener callback failed for event %s", event)
