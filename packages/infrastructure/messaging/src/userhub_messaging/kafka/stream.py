"""KafkaStreamClient: IStreamClient over aiokafka with manual, per-message commits."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from aiokafka import AIOKafkaConsumer, TopicPartition

from userhub_core.ports.stream import IStreamClient, StreamMessage

from ..exceptions import MessagingConnectionError
from .rebalance import LoggingRebalanceListener

if TYPE_CHECKING:
    from collections.abc import Sequence

    from aiokafka import ConsumerRebalanceListener

    from .connection import KafkaConnectionManager

logger = logging.getLogger(__name__)


def _to_message(record: Any) -> StreamMessage:
    key = record.key
    if isinstance(key, bytes):
        key = key.decode("utf-8", errors="replace")
    return StreamMessage(
        topic=record.topic,
        partition=record.partition,
        offset=record.offset,
        key=key,
        value=record.value,
        timestamp_ms=record.timestamp,
    )


class KafkaStreamClient(IStreamClient):
    """Kafka adapter implementing IStreamClient.

    Auto commit is always disabled: an offset only moves when the owner
    calls ``commit`` for a processed message. Records are fetched one at a
    time so that ``rewind`` never discards more than the failed message.
    """

    def __init__(
        self,
        connection: KafkaConnectionManager,
        *,
        group_id: str,
        client_id: str = "userhub-cdc",
        auto_offset_reset: str = "earliest",
        session_timeout_ms: int = 10000,
        heartbeat_interval_ms: int = 3000,
        listener: ConsumerRebalanceListener | None = None,
    ) -> None:
        self._connection = connection
        self._group_id = group_id
        self._client_id = client_id
        self._auto_offset_reset = auto_offset_reset
        self._session_timeout_ms = session_timeout_ms
        self._heartbeat_interval_ms = heartbeat_interval_ms
        self._listener = listener or LoggingRebalanceListener()
        self._consumer: AIOKafkaConsumer | None = None

    def _require(self) -> AIOKafkaConsumer:
        if self._consumer is None:
            raise MessagingConnectionError("Not started; call start() first")
        return self._consumer

    async def start(self) -> None:
        if self._consumer is not None:
            return
        self._consumer = AIOKafkaConsumer(
            group_id=self._group_id,
            client_id=self._client_id,
            enable_auto_commit=False,
            auto_offset_reset=self._auto_offset_reset,
            session_timeout_ms=self._session_timeout_ms,
            heartbeat_interval_ms=self._heartbeat_interval_ms,
            **self._connection.consumer_config(),
        )
        await self._consumer.start()
        logger.info(
            "Kafka consumer started (group=%s, client=%s)",
            self._group_id,
            self._client_id,
        )

    def subscribe(self, topics: Sequence[str]) -> None:
        self._require().subscribe(topics=list(topics), listener=self._listener)

    async def poll(self, timeout: float) -> StreamMessage | None:
        batch = await self._require().getmany(
            timeout_ms=int(timeout * 1000), max_records=1
        )
        for records in batch.values():
            for record in records:
                return _to_message(record)
        return None

    async def commit(self, message: StreamMessage) -> None:
        tp = TopicPartition(message.topic, message.partition)
        await self._require().commit({tp: message.offset + 1})

    def rewind(self, message: StreamMessage) -> None:
        tp = TopicPartition(message.topic, message.partition)
        self._require().seek(tp, message.offset)

    async def stop(self) -> None:
        consumer, self._consumer = self._consumer, None
        if consumer is not None:
            await consumer.stop()

    async def health_check(self) -> bool:
        """Return True if the cluster is reachable."""
        return await self._connection.health_check()
