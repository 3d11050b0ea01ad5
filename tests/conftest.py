"""Fixtures shared by the app-reconciler tests."""

import asyncio
from typing import Any

import pytest

from app_reconciler.application import (
    Application,
    DatabaseSpec,
    DeploymentSpec,
    EnvVarSpec,
    Environment,
    KafkaClusterConfig,
    KafkaProviderConfig,
    KafkaTopicSpec,
    PodSpec,
    ProvidersConfig,
)
from app_reconciler.client import ClientEvent, InMemoryClient
from app_reconciler.config import ReconcilerConfig
from app_reconciler.manifest import (
    Condition,
    Kafka,
    KafkaStatus,
    ListenerAddress,
    ListenerStatus,
    NamedResource,
    NamespacedName,
)
from app_reconciler.retry import RetryPolicy

KAFKA_HOST = "kafka-kafka-bootstrap.kafka.svc"
KAFKA_PORT = 9092


def ready_status(host: str = KAFKA_HOST, port: int = KAFKA_PORT) -> KafkaStatus:
    """Status an operator reports for a ready streaming cluster."""
    return KafkaStatus(
        conditions=[Condition(type="Ready", status="True")],
        listeners=[
            ListenerStatus(
                type="plain", addresses=[ListenerAddress(host=host, port=port)]
            )
        ],
    )


def ready_kafka(name: str = "kafka", namespace: str = "kafka") -> Kafka:
    """A streaming cluster the operator has already reported ready."""
    return Kafka(name=name, namespace=namespace, status=ready_status())


class FakeKafkaOperator:
    """Marks streaming clusters ready shortly after they are created."""

    def __init__(self, client: InMemoryClient, delay: float = 0.005) -> None:
        self._client = client
        self._delay = delay
        self._tasks: set[asyncio.Task[None]] = set()
        self.remove = client.add_listener(ClientEvent.OBJECT_CREATED, self._on_created)

    def _on_created(self, resource_id: NamedResource, obj: Any) -> None:
        if resource_id.kind != Kafka.kind:
            return
        task = asyncio.get_running_loop().create_task(self._mark_ready(obj))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _mark_ready(self, obj: Kafka) -> None:
        await asyncio.sleep(self._delay)
        await self._client.update_status(
            Kafka(name=obj.name, namespace=obj.namespace, status=ready_status())
        )


@pytest.fixture
def client() -> InMemoryClient:
    """Fixture for an empty backing store."""
    return InMemoryClient()


@pytest.fixture
def fast_policy() -> RetryPolicy:
    """A retry policy that gives up quickly."""
    return RetryPolicy(attempts=5, interval=0.01, timeout=1.0)


@pytest.fixture
def config(fast_policy: RetryPolicy) -> ReconcilerConfig:
    """Reconciler configuration with short waits."""
    return ReconcilerConfig(
        fetch=fast_policy, readiness=fast_policy, max_passes=3, requeue_delay=0.01
    )


@pytest.fixture
def app() -> Application:
    """An application with one web deployment and one topic."""
    return Application(
        name="demo",
        namespace="demo-ns",
        env_name="test",
        deployments=[
            DeploymentSpec(
                name="api",
                pod_spec=PodSpec(
                    image="quay.io/demo/api:1.0",
                    env=[EnvVarSpec(name="LOG_LEVEL", value="debug")],
                ),
                min_replicas=2,
                web=True,
            ),
        ],
        kafka_topics=[KafkaTopicSpec(topic_name="events")],
        database=DatabaseSpec(),
    )


@pytest.fixture
def env() -> Environment:
    """An environment with an operator-managed streaming cluster."""
    return Environment(
        name="test",
        target_namespace="test-ns",
        providers=ProvidersConfig(
            kafka=KafkaProviderConfig(
                mode="operator", cluster=KafkaClusterConfig(replicas=3)
            ),
        ),
    )


@pytest.fixture
def kafka_name() -> NamespacedName:
    """Address of the streaming cluster in the default environment."""
    return NamespacedName("kafka", "kafka")


@pytest.fixture
def kafka_operator(client: InMemoryClient) -> FakeKafkaOperator:
    """Fixture for an operator that marks streaming clusters ready."""
    return FakeKafkaOperator(client)


@pytest.fixture
async def ready_cluster(client: InMemoryClient) -> Kafka:
    """Fixture seeding the backing store with a ready streaming cluster."""
    cluster = ready_kafka()
    await client.create(cluster)
    return cluster
