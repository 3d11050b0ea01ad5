"""Streaming topics provider.

In `operator` mode the streaming cluster is reconciled by an external
operator. This provider makes sure the cluster object exists, waits for the
operator to report it ready, and only then stages the topics and fills the
broker addresses: the configuration must never point an application at a
cluster that is not serving yet.
"""

import logging

from app_reconciler.appconfig import BrokerConfig, KafkaConfig, TopicConfig
from app_reconciler.application import (
    MODE_NONE,
    KafkaClusterConfig,
    KafkaProviderConfig,
    KafkaTopicSpec,
)
from app_reconciler.cache import ResourceIdentity
from app_reconciler.manifest import (
    KAFKA_CLUSTER_LABEL,
    Kafka,
    KafkaConnect,
    KafkaTopic,
    NamespacedName,
)
from app_reconciler.readiness import ReadinessWaiter, listener_addresses

from .provider import Provider, ProviderContext, ensure_exists

_LOGGER = logging.getLogger(__name__)

PROVIDER_NAME = "kafka"
MODE_OPERATOR = "operator"
MODE_APP_INTERFACE = "app-interface"
BOOTSTRAP_PORT = 9092

TOPICS = ResourceIdentity.multi(PROVIDER_NAME, "KafkaTopics", KafkaTopic)


def topic_sizing(
    topic: KafkaTopicSpec, cluster: KafkaClusterConfig
) -> tuple[int, int]:
    """Return the (partitions, replicas) to provision a topic with.

    Explicit values are used verbatim. Omitted values fall back to the
    cluster's topic defaults, with replicas capped at the number of brokers.
    """
    partitions = topic.partitions
    if partitions is None:
        partitions = cluster.topic_defaults.partitions
    replicas = topic.replicas
    if replicas is None:
        replicas = cluster.topic_defaults.replicas
        if cluster.replicas > 0:
            replicas = min(replicas, cluster.replicas)
    return partitions, replicas


def broker_addresses(cluster: Kafka, listener_type: str) -> list[tuple[str, int]] | None:
    """Return the broker addresses of a ready cluster, or None if it has none yet."""
    if cluster.status is None:
        return None
    return listener_addresses(cluster.status, listener_type) or None


class KafkaProvider(Provider):
    """Provisions topics and fills the streaming section."""

    name = PROVIDER_NAME

    async def provide(self, ctx: ProviderContext) -> None:
        config = ctx.env.providers.kafka
        if config.mode == MODE_NONE:
            return
        if config.mode not in (MODE_OPERATOR, MODE_APP_INTERFACE):
            raise self.unsupported_mode(config.mode)
        ctx.app_config.claim("kafka", self.name)
        if config.mode == MODE_OPERATOR:
            await self._provide_operator(ctx, config)
        else:
            self._provide_app_interface(ctx, config)

    def _provide_app_interface(
        self, ctx: ProviderContext, config: KafkaProviderConfig
    ) -> None:
        ctx.app_config.kafka = KafkaConfig(
            brokers=[
                BrokerConfig(hostname=broker.hostname, port=broker.port)
                for broker in config.brokers
            ],
            topics=[
                TopicConfig(requested_name=topic.topic_name, name=topic.topic_name)
                for topic in ctx.app.kafka_topics
            ],
        )

    async def _provide_operator(
        self, ctx: ProviderContext, config: KafkaProviderConfig
    ) -> None:
        cluster = config.cluster
        cluster_name = NamespacedName(cluster.namespace, cluster.name)
        await ensure_exists(
            ctx.client,
            Kafka(
                name=cluster.name,
                namespace=cluster.namespace,
                replicas=cluster.replicas,
                version=cluster.version,
            ),
        )
        connect_name: NamespacedName | None = None
        if config.connect.enabled:
            connect_name = NamespacedName(
                cluster.namespace, config.connect.name or cluster.name
            )
            await ensure_exists(
                ctx.client,
                KafkaConnect(
                    name=connect_name.name,
                    namespace=connect_name.namespace,
                    labels={KAFKA_CLUSTER_LABEL: cluster.name},
                    replicas=config.connect.replicas,
                    bootstrap_servers=(
                        f"{cluster.name}-kafka-bootstrap.{cluster.namespace}.svc:{BOOTSTRAP_PORT}"
                    ),
                ),
            )

        _, addresses = await ReadinessWaiter(
            ctx.client,
            cluster_name,
            Kafka,
            ctx.config.readiness,
            extract=lambda obj: broker_addresses(obj, config.listener_type),
        ).wait()
        if connect_name is not None:
            await ReadinessWaiter(
                ctx.client, connect_name, KafkaConnect, ctx.config.readiness
            ).wait()

        topics: list[TopicConfig] = []
        for topic in ctx.app.kafka_topics:
            partitions, replicas = topic_sizing(topic, cluster)
            name = NamespacedName(cluster.namespace, topic.topic_name)
            ctx.cache.create(
                TOPICS,
                name,
                KafkaTopic(
                    name=name.name,
                    namespace=name.namespace,
                    labels={KAFKA_CLUSTER_LABEL: cluster.name, **ctx.app_labels()},
                    partitions=partitions,
                    replicas=replicas,
                    config=topic.config,
                ),
            )
            topics.append(TopicConfig(requested_name=topic.topic_name, name=name.name))
        _LOGGER.info(
            "Staged %d topics on cluster %s for %s",
            len(topics),
            cluster_name,
            ctx.app.name,
        )
        ctx.app_config.kafka = KafkaConfig(
            brokers=[BrokerConfig(hostname=host, port=port) for host, port in addresses],
            topics=topics,
        )
