"""Tests for the object cache."""

from typing import Any

import pytest

from app_reconciler.cache import (
    ApplyOperation,
    ObjectCache,
    ResourceIdentity,
)
from app_reconciler.client import InMemoryClient
from app_reconciler.exceptions import (
    ApplyError,
    CacheMisuseError,
    CardinalityError,
    ClientException,
    ObjectNotFoundError,
    ResourceConflictError,
    TypeMismatchError,
)
from app_reconciler.manifest import (
    BaseManifest,
    ConfigMap,
    Deployment,
    Kafka,
    KafkaStatus,
    Condition,
    NamespacedName,
    Secret,
    Service,
    ServicePort,
)

WEB_SERVICE = ResourceIdentity.single("test", "WebService", Service)
TOPIC_SERVICES = ResourceIdentity.multi("test", "Services", Service)
NAME = NamespacedName("ns", "web")


class FailingClient(InMemoryClient):
    """Client that refuses to write objects with a given name."""

    def __init__(self, fail_name: str) -> None:
        super().__init__()
        self._fail_name = fail_name

    async def create(self, obj: BaseManifest) -> None:
        if obj.namespaced_name.name == self._fail_name:
            raise ClientException(f"Refusing to create {obj.namespaced_name}")
        await super().create(obj)


@pytest.fixture
def cache(client: InMemoryClient) -> ObjectCache:
    """Fixture for an object cache backed by the in-memory client."""
    return ObjectCache(client)


def service(port: int = 8000, **kwargs: Any) -> Service:
    return Service(
        name="ignored", ports=[ServicePort(name="public", port=port)], **kwargs
    )


def test_create_get(cache: ObjectCache) -> None:
    """Test a staged object is returned with the name it was staged under."""
    cache.create(WEB_SERVICE, NAME, service())
    result = cache.get(WEB_SERVICE, Service)
    assert result.name == "web"
    assert result.namespace == "ns"
    assert result.ports == [ServicePort(name="public", port=8000)]
    assert WEB_SERVICE in cache
    assert len(cache) == 1


def test_get_returns_copy(cache: ObjectCache) -> None:
    """Test mutating a returned object does not change the staged one."""
    cache.create(WEB_SERVICE, NAME, service())
    result = cache.get(WEB_SERVICE, Service)
    result.ports.append(ServicePort(name="metrics", port=9000))
    assert len(cache.get(WEB_SERVICE, Service).ports) == 1


def test_update_replaces(cache: ObjectCache) -> None:
    """Test update replaces the staged object wholesale."""
    cache.create(WEB_SERVICE, NAME, service(selector={"pod": "a"}))
    cache.update(WEB_SERVICE, service(port=9000))
    result = cache.get(WEB_SERVICE, Service)
    assert result.ports == [ServicePort(name="public", port=9000)]
    assert result.selector is None
    assert result.namespaced_name == NAME


def test_update_missing(cache: ObjectCache) -> None:
    """Test update requires a prior create."""
    with pytest.raises(ObjectNotFoundError, match="use create"):
        cache.update(WEB_SERVICE, service())


def test_get_missing(cache: ObjectCache) -> None:
    """Test getting an identity with nothing staged."""
    with pytest.raises(ObjectNotFoundError):
        cache.get(WEB_SERVICE, Service)


def test_single_create_twice(cache: ObjectCache) -> None:
    """Test a single identity accepts only one create."""
    cache.create(WEB_SERVICE, NAME, service())
    with pytest.raises(CardinalityError, match="use update"):
        cache.create(WEB_SERVICE, NamespacedName("ns", "other"), service())


def test_type_mismatch(cache: ObjectCache) -> None:
    """Test an identity registered for one type rejects another."""
    cache.create(WEB_SERVICE, NAME, service())
    with pytest.raises(
        TypeMismatchError,
        match=r"Identity test/WebService is registered for type Service \(was Deployment\)",
    ):
        cache.get(WEB_SERVICE, Deployment)  # type: ignore[arg-type]

    conflicting = ResourceIdentity.single("test", "WebService", Deployment)
    with pytest.raises(TypeMismatchError):
        cache.create(conflicting, NAME, Deployment(name="web"))


def test_create_wrong_object_type(cache: ObjectCache) -> None:
    """Test staging an object that is not of the identity's type."""
    with pytest.raises(TypeMismatchError):
        cache.create(WEB_SERVICE, NAME, Deployment(name="web"))  # type: ignore[arg-type]
    assert WEB_SERVICE not in cache


def test_unregistered_type(client: InMemoryClient) -> None:
    """Test identities for types outside the scheme are rejected."""
    cache = ObjectCache(client, scheme={"Service": Service})
    identity = ResourceIdentity.single("test", "Config", ConfigMap)
    with pytest.raises(CacheMisuseError, match="not registered in the scheme"):
        cache.create(identity, NAME, ConfigMap(name="web"))


def test_cardinality(cache: ObjectCache) -> None:
    """Test single and multi operations are not interchangeable."""
    with pytest.raises(CardinalityError, match="requires a Multi identity"):
        cache.list(WEB_SERVICE, Service)
    with pytest.raises(CardinalityError, match="requires a Single identity"):
        cache.get(TOPIC_SERVICES, Service)
    with pytest.raises(CardinalityError):
        cache.update(TOPIC_SERVICES, service())

    cache.create(TOPIC_SERVICES, NAME, service())
    as_single = ResourceIdentity.single("test", "Services", Service)
    with pytest.raises(CardinalityError, match="is registered as Multi"):
        cache.create(as_single, NAME, service())


def test_multi_list(cache: ObjectCache) -> None:
    """Test a multi identity accumulates objects in staging order."""
    assert cache.list(TOPIC_SERVICES, Service) == []
    cache.create(TOPIC_SERVICES, NamespacedName("ns", "b"), service(port=1))
    cache.create(TOPIC_SERVICES, NamespacedName("ns", "a"), service(port=2))
    cache.create(TOPIC_SERVICES, NamespacedName("ns", "b"), service(port=3))
    assert [(obj.name, obj.ports[0].port) for obj in cache.list(TOPIC_SERVICES, Service)] == [
        ("b", 3),
        ("a", 2),
    ]
    assert len(cache) == 2
    assert cache.identities() == [TOPIC_SERVICES]


def test_same_object_two_identities(cache: ObjectCache) -> None:
    """Test an object staged by one identity cannot be staged by another."""
    cache.create(WEB_SERVICE, NAME, service(port=1))
    with pytest.raises(
        ResourceConflictError,
        match="Identity test/Services cannot stage Service/ns/web, already staged by test/WebService",
    ):
        cache.create(TOPIC_SERVICES, NAME, service(port=2))
    assert TOPIC_SERVICES not in cache
    assert cache.get(WEB_SERVICE, Service).ports[0].port == 1

    # Same name under another kind is a different object
    cache.create(
        ResourceIdentity.single("test", "WebDeployment", Deployment),
        NAME,
        Deployment(name="web"),
    )
    assert len(cache) == 2


async def test_apply_all(cache: ObjectCache, client: InMemoryClient) -> None:
    """Test applying creates every staged object once."""
    cache.create(WEB_SERVICE, NAME, service())
    cache.create(TOPIC_SERVICES, NamespacedName("ns", "a"), service())
    results = await cache.apply_all()
    assert [(str(result.name), result.operation) for result in results] == [
        ("ns/web", ApplyOperation.CREATED),
        ("ns/a", ApplyOperation.CREATED),
    ]
    assert (await client.get(NAME, Service)).ports[0].port == 8000


async def test_apply_idempotent(client: InMemoryClient) -> None:
    """Test applying the same desired state twice writes nothing new."""

    def stage() -> ObjectCache:
        cache = ObjectCache(client)
        cache.create(WEB_SERVICE, NAME, service(labels={"app": "demo"}))
        return cache

    await stage().apply_all()
    writes = client.writes
    results = await stage().apply_all()
    assert [result.operation for result in results] == [ApplyOperation.UNCHANGED]
    assert client.writes == writes
    assert client.generation(Service, NAME) == 1


async def test_apply_updates_changed(client: InMemoryClient) -> None:
    """Test a changed spec is written over the live object."""
    first = ObjectCache(client)
    first.create(WEB_SERVICE, NAME, service())
    await first.apply_all()

    second = ObjectCache(client)
    second.create(WEB_SERVICE, NAME, service(port=9000))
    results = await second.apply_all()
    assert results[0].operation == ApplyOperation.UPDATED
    assert (await client.get(NAME, Service)).ports[0].port == 9000
    assert client.generation(Service, NAME) == 2


async def test_apply_preserves_status_and_labels(client: InMemoryClient) -> None:
    """Test upsert keeps the live status and labels added by others."""
    name = NamespacedName("kafka", "kafka")
    status = KafkaStatus(conditions=[Condition(type="Ready", status="True")])
    await client.create(
        Kafka(
            name="kafka",
            namespace="kafka",
            labels={"team": "platform", "app": "old"},
            status=status,
        )
    )
    identity = ResourceIdentity.single("test", "Cluster", Kafka)
    cache = ObjectCache(client)
    cache.create(identity, name, Kafka(name="kafka", replicas=3, labels={"app": "demo"}))
    await cache.apply_all()

    live = await client.get(name, Kafka)
    assert live.replicas == 3
    assert live.status == status
    assert live.labels == {"team": "platform", "app": "demo"}


async def test_apply_best_effort() -> None:
    """Test every object is attempted and the failures are aggregated."""
    client = FailingClient(fail_name="bad")
    cache = ObjectCache(client)
    cache.create(TOPIC_SERVICES, NamespacedName("ns", "a"), service())
    cache.create(TOPIC_SERVICES, NamespacedName("ns", "bad"), service())
    cache.create(TOPIC_SERVICES, NamespacedName("ns", "c"), service())

    with pytest.raises(ApplyError, match="Failed to apply 1 object") as exc_info:
        await cache.apply_all()

    err = exc_info.value
    assert err.retryable
    assert [str(result.name) for result in err.failures] == ["ns/bad"]
    assert "ClientException" in (err.failures[0].error or "")
    assert [result.operation for result in err.results] == [
        ApplyOperation.CREATED,
        None,
        ApplyOperation.CREATED,
    ]
    assert [obj.name for obj in await client.list(Service)] == ["a", "c"]


async def test_apply_does_not_prune(client: InMemoryClient) -> None:
    """Test objects no longer staged are left in the backing store."""
    first = ObjectCache(client)
    first.create(TOPIC_SERVICES, NamespacedName("ns", "a"), service())
    first.create(TOPIC_SERVICES, NamespacedName("ns", "b"), service())
    await first.apply_all()

    second = ObjectCache(client)
    second.create(TOPIC_SERVICES, NamespacedName("ns", "a"), service())
    await second.apply_all()
    assert [obj.name for obj in await client.list(Service, namespace="ns")] == ["a", "b"]


async def test_secret_round_trip(cache: ObjectCache, client: InMemoryClient) -> None:
    """Test a staged secret reaches the backing store intact."""
    identity = ResourceIdentity.single("test", "Credentials", Secret)
    cache.create(identity, NAME, Secret.from_values("x", None, {"password": "p"}))
    await cache.apply_all()
    assert (await client.get(NAME, Secret)).values() == {"password": "p"}


async def test_single_then_multi(cache: ObjectCache, client: InMemoryClient) -> None:
    """Test single and multi identities of one provider apply side by side."""
    main = ResourceIdentity.single("TEST", "MAIN", Service)
    multi = ResourceIdentity.multi("TEST", "MULTI", Service)
    single_name = NamespacedName("default", "test-service")
    multi_name = NamespacedName("default", "test-service-multi")

    cache.create(main, single_name, service(port=1234))
    assert cache.get(main, Service).ports[0].port == 1234
    updated = cache.get(main, Service)
    updated.ports[0].port = 2345
    cache.update(main, updated)
    assert cache.get(main, Service).ports[0].port == 2345

    cache.create(multi, multi_name, service(port=5432))
    listed = cache.list(multi, Service)
    assert [obj.ports[0].port for obj in listed] == [5432]

    await cache.apply_all()
    assert (await client.get(single_name, Service)).ports[0].port == 2345
    assert (await client.get(multi_name, Service)).ports[0].port == 5432
