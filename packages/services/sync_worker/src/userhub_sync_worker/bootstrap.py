"""Composition root: wires settings, transports and the CDC engine together."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from userhub_cdc import (
    EnvelopeDecoder,
    ErrorClassifier,
    ProjectorRegistry,
    SourceDatabaseFilter,
    SyncConsumer,
    UserProjector,
)
from userhub_core.instrumentation import get_hook_registry
from userhub_health import (
    HealthRegistry,
    HealthReporter,
    MessageBrokerHealthCheck,
    MongoHealthCheck,
)
from userhub_messaging import (
    KAFKA_TRANSIENT_ERRORS,
    BackoffPolicy,
    KafkaConnectionManager,
    KafkaStreamClient,
    LoggingRebalanceListener,
    is_fatal_kafka_error,
)
from userhub_observability import (
    install_cdc_hooks,
    install_metrics_hook,
    serve_metrics,
)
from userhub_persistence_mongo import (
    MongoConnectionManager,
    MongoPersistenceError,
    MongoUserProjectionSink,
    ensure_user_indexes,
)

if TYPE_CHECKING:
    from userhub_cdc import CdcSettings, ConsumerStats
    from userhub_core.instrumentation import HookRegistry

logger = logging.getLogger(__name__)

USERS_TABLE = "users"


@dataclass
class SyncWorker:
    """A built pipeline and the resources it owns."""

    consumer: SyncConsumer
    mongo: MongoConnectionManager
    kafka: KafkaConnectionManager
    health: HealthRegistry

    def close(self) -> None:
        self.health.forget(self.consumer.name)
        self.mongo.close()


def _heartbeat_timeout(settings: CdcSettings) -> float:
    # A worker in its longest backoff must not be reported down.
    return settings.backoff.max_delay + 2 * settings.poll_timeout + 30


async def build_worker(
    settings: CdcSettings,
    *,
    health: HealthRegistry | None = None,
    hook_registry: HookRegistry | None = None,
) -> SyncWorker:
    """Connect to MongoDB, prepare the read store and build the consumer."""
    mongo = MongoConnectionManager(settings.mongo.url, database=settings.mongo.database)
    await mongo.connect()
    if settings.mongo.ensure_indexes:
        try:
            await ensure_user_indexes(
                mongo, settings.mongo.database, settings.mongo.collection
            )
        except MongoPersistenceError:
            logger.warning(
                "Could not ensure read-store indexes; continuing without them",
                exc_info=True,
            )

    kafka = KafkaConnectionManager(settings.kafka.bootstrap_servers)
    topics = settings.resolved_topics
    if settings.create_missing_topics:
        created = await kafka.ensure_topics(topics)
        if created:
            logger.info("Created missing topics %s", created)

    projector = UserProjector(
        MongoUserProjectionSink(connection=mongo),
        collection=settings.mongo.collection,
    )
    group_id = settings.kafka.effective_group_id()

    def client_factory() -> KafkaStreamClient:
        return KafkaStreamClient(
            kafka,
            group_id=group_id,
            client_id=settings.kafka.client_id,
            auto_offset_reset=settings.kafka.auto_offset_reset,
            session_timeout_ms=settings.kafka.session_timeout_ms,
            heartbeat_interval_ms=settings.kafka.heartbeat_interval_ms,
            listener=LoggingRebalanceListener(),
        )

    health = health or HealthRegistry(
        heartbeat_timeout_seconds=_heartbeat_timeout(settings)
    )
    health.register("mongo", MongoHealthCheck(mongo))
    health.register("kafka", MessageBrokerHealthCheck(kafka))

    backoff = settings.backoff
    consumer = SyncConsumer(
        client_factory,
        topics,
        decoder=EnvelopeDecoder(),
        projectors=ProjectorRegistry({USERS_TABLE: projector}),
        backoff=BackoffPolicy(
            base_delay=backoff.base_delay,
            fatal_base_delay=backoff.fatal_base_delay,
            max_delay=backoff.max_delay,
            jitter=backoff.jitter,
        ),
        classifier=ErrorClassifier(transient=KAFKA_TRANSIENT_ERRORS),
        is_fatal=is_fatal_kafka_error,
        source_filter=SourceDatabaseFilter(
            settings.target_database,
            process_only_target_database=settings.process_only_target_database,
        ),
        heartbeat=health.heartbeat,
        hook_registry=hook_registry,
        name=settings.worker_name,
        poll_timeout=settings.poll_timeout,
        setup_timeout=settings.setup_timeout,
        drain_timeout=settings.drain_timeout,
    )
    logger.info(
        "Built sync worker %s: group=%s topics=%s read store=%s.%s",
        settings.worker_name,
        group_id,
        topics,
        settings.mongo.database,
        settings.mongo.collection,
    )
    return SyncWorker(consumer=consumer, mongo=mongo, kafka=kafka, health=health)


async def _stop_when_set(
    stop_event: asyncio.Event,
    consumer: SyncConsumer,
    run_task: asyncio.Task[None],
    drain_timeout: float,
) -> None:
    await stop_event.wait()
    logger.info("Stop requested; draining %s", consumer.name)
    consumer.request_stop()
    done, _ = await asyncio.wait({run_task}, timeout=drain_timeout)
    if not done:
        logger.warning(
            "Consumer %s did not drain within %.1fs; cancelling",
            consumer.name,
            drain_timeout,
        )
        run_task.cancel()


async def run_sync_worker(
    settings: CdcSettings,
    stop_event: asyncio.Event | None = None,
    *,
    health: HealthRegistry | None = None,
    hook_registry: HookRegistry | None = None,
) -> ConsumerStats:
    """Run the pipeline until *stop_event* is set.

    Raises:
        FatalSetupError: The consumer could not connect or subscribe.
    """
    registry = hook_registry or get_hook_registry()
    install_cdc_hooks(registry=registry)
    install_metrics_hook(registry=registry)
    if settings.metrics_port:
        serve_metrics(settings.metrics_port)
    worker = await build_worker(settings, health=health, hook_registry=registry)
    stop_event = stop_event or asyncio.Event()
    reporter: HealthReporter | None = None
    if settings.health_report_interval > 0:
        reporter = HealthReporter(worker.health, settings.health_report_interval)
        await reporter.start()

    run_task = asyncio.create_task(
        worker.consumer.run(), name=f"sync-consumer-{worker.consumer.name}"
    )
    watcher = asyncio.create_task(
        _stop_when_set(stop_event, worker.consumer, run_task, settings.drain_timeout)
    )
    try:
        await asyncio.wait({run_task})
    finally:
        watcher.cancel()
        if not run_task.done():
            run_task.cancel()
        await asyncio.gather(watcher, run_task, return_exceptions=True)
        if reporter is not None:
            await reporter.stop()
        worker.close()

    if run_task.cancelled():
        logger.warning("Sync worker %s was cancelled while draining", worker.consumer.name)
    else:
        run_task.result()
    return worker.consumer.stats
