"""Tests for the in-memory client."""

import pytest

from app_reconciler.client import ClientEvent, InMemoryClient
from app_reconciler.exceptions import (
    ClientException,
    ObjectExistsError,
    ObjectNotFoundError,
)
from app_reconciler.manifest import (
    Condition,
    Kafka,
    KafkaStatus,
    NamedResource,
    NamespacedName,
    Secret,
    Service,
    ServicePort,
)

NAME = NamespacedName("kafka", "kafka")


async def test_create_get(client: InMemoryClient) -> None:
    """Test storing and fetching an object."""
    obj = Kafka(name="kafka", namespace="kafka", replicas=3)
    await client.create(obj)
    assert await client.get(NAME, Kafka) == obj
    assert client.generation(Kafka, NAME) == 1
    assert client.writes == 1

    with pytest.raises(ObjectExistsError, match="already exists"):
        await client.create(obj)


async def test_get_missing(client: InMemoryClient) -> None:
    """Test fetching an object that does not exist."""
    with pytest.raises(ObjectNotFoundError, match="Kafka/kafka/kafka not found"):
        await client.get(NAME, Kafka)
    with pytest.raises(ObjectNotFoundError):
        await client.update(Kafka(name="kafka", namespace="kafka"))
    assert client.generation(Kafka, NAME) == 0


async def test_copies(client: InMemoryClient) -> None:
    """Test callers never share state with the store."""
    obj = Service(name="web", namespace="ns", ports=[ServicePort(name="a", port=1)])
    await client.create(obj)
    obj.ports.append(ServicePort(name="b", port=2))
    fetched = await client.get(NamespacedName("ns", "web"), Service)
    assert len(fetched.ports) == 1
    fetched.ports.clear()
    assert len((await client.get(NamespacedName("ns", "web"), Service)).ports) == 1


async def test_update_preserves_status(client: InMemoryClient) -> None:
    """Test updating the spec never touches the status."""
    status = KafkaStatus(conditions=[Condition(type="Ready", status="True")])
    await client.create(Kafka(name="kafka", namespace="kafka", status=status))
    await client.update(Kafka(name="kafka", namespace="kafka", replicas=5))
    live = await client.get(NAME, Kafka)
    assert live.replicas == 5
    assert live.status == status
    assert client.generation(Kafka, NAME) == 2


async def test_update_unchanged(client: InMemoryClient) -> None:
    """Test an update without effective change is not counted."""
    await client.create(Kafka(name="kafka", namespace="kafka"))
    await client.update(Kafka(name="kafka", namespace="kafka"))
    assert client.generation(Kafka, NAME) == 1
    assert client.writes == 1


async def test_update_status(client: InMemoryClient) -> None:
    """Test updating the status leaves the spec alone."""
    await client.create(Kafka(name="kafka", namespace="kafka", replicas=3))
    status = KafkaStatus(conditions=[Condition(type="Ready", status="True")])
    await client.update_status(Kafka(name="kafka", namespace="kafka", status=status))
    live = await client.get(NAME, Kafka)
    assert live.replicas == 3
    assert live.status == status

    await client.create(Secret(name="s", namespace="ns"))
    with pytest.raises(ClientException, match="has no status"):
        await client.update_status(Secret(name="s", namespace="ns"))


async def test_wrong_type(client: InMemoryClient) -> None:
    """Test kinds outside the scheme are rejected."""
    client = InMemoryClient(scheme={"Service": Service})
    with pytest.raises(ClientException, match="not registered"):
        await client.get(NAME, Kafka)


async def test_list(client: InMemoryClient) -> None:
    """Test listing objects by kind, namespace and labels."""
    await client.create(Service(name="b", namespace="ns1", labels={"app": "x"}))
    await client.create(Service(name="a", namespace="ns1", labels={"app": "y"}))
    await client.create(Service(name="c", namespace="ns2", labels={"app": "x"}))
    await client.create(Secret(name="d", namespace="ns1"))

    assert [obj.name for obj in await client.list(Service)] == ["a", "b", "c"]
    assert [obj.name for obj in await client.list(Service, namespace="ns1")] == [
        "a",
        "b",
    ]
    assert [obj.name for obj in await client.list(Service, labels={"app": "x"})] == [
        "b",
        "c",
    ]
    assert [NamedResource.of(obj) for obj in client.objects()] == [
        NamedResource("Secret", "ns1", "d"),
        NamedResource("Service", "ns1", "a"),
        NamedResource("Service", "ns1", "b"),
        NamedResource("Service", "ns2", "c"),
    ]


async def test_listeners(client: InMemoryClient) -> None:
    """Test listeners are notified of writes and can be removed."""
    events: list[tuple[ClientEvent, NamedResource]] = []

    def on_created(resource_id: NamedResource, obj: Kafka) -> None:
        events.append((ClientEvent.OBJECT_CREATED, resource_id))

    def on_status(resource_id: NamedResource, obj: Kafka) -> None:
        events.append((ClientEvent.STATUS_UPDATED, resource_id))

    def broken(resource_id: NamedResource, obj: Kafka) -> None:
        raise ValueError("listener bug")

    remove = client.add_listener(ClientEvent.OBJECT_CREATED, on_created)
    client.add_listener(ClientEvent.OBJECT_CREATED, broken)
    client.add_listener(ClientEvent.STATUS_UPDATED, on_status)

    await client.create(Kafka(name="kafka", namespace="kafka"))
    await client.update_status(Kafka(name="kafka", namespace="kafka", status=KafkaStatus()))
    remove()
    await client.create(Kafka(name="other", namespace="kafka"))

    resource_id = NamedResource("Kafka", "kafka", "kafka")
    assert events == [
        (ClientEvent.OBJECT_CREATED, resource_id),
        (ClientEvent.STATUS_UPDATED, resource_id),
    ]
