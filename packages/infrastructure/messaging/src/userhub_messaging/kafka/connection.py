"""Kafka bootstrap config, health check and topic provisioning."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from aiokafka.admin import AIOKafkaAdminClient, NewTopic

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


class KafkaConnectionManager:
    """Holds Kafka bootstrap config and creates short-lived admin clients.

    Does not hold a long-lived consumer; each ``KafkaStreamClient`` creates
    its own with the same bootstrap servers.
    """

    def __init__(
        self,
        bootstrap_servers: str | list[str] = "localhost:9092",
        **config: Any,
    ) -> None:
        """Configure bootstrap servers and optional aiokafka client kwargs."""
        self._bootstrap_servers = bootstrap_servers
        self._config = config

    @property
    def bootstrap_servers(self) -> str | list[str]:
        return self._bootstrap_servers

    def consumer_config(self) -> dict[str, Any]:
        """Config dict for AIOKafkaConsumer."""
        return {"bootstrap_servers": self._bootstrap_servers, **self._config}

    def _admin(self) -> AIOKafkaAdminClient:
        return AIOKafkaAdminClient(
            bootstrap_servers=self._bootstrap_servers,
            **{k: v for k, v in self._config.items() if k != "group_id"},
        )

    async def health_check(self) -> bool:
        """Return True if the cluster is reachable."""
        try:
            admin = self._admin()
            await admin.start()
            try:
                await admin.list_topics()
                return True
            finally:
                await admin.close()
        except Exception:  # noqa: BLE001
            return False

    async def ensure_topics(
        self,
        topics: Sequence[str],
        *,
        num_partitions: int = 1,
        replication_factor: int = 1,
    ) -> list[str]:
        """Create any of *topics* that do not exist yet; return the created names.

        Meant for local and test environments, where the capture connector
        may not have created its topics before the consumer subscribes.
        """
        admin = self._admin()
        await admin.start()
        try:
            existing = set(await admin.list_topics())
            missing = [t for t in topics if t not in existing]
            if not missing:
                logger.debug("All topics already exist: %s", ", ".join(topics))
                return []
            logger.info("Creating missing topics: %s", ", ".join(missing))
            await admin.create_topics(
                [
                    NewTopic(
                        name=topic,
                        num_partitions=num_partitions,
                        replication_factor=replication_factor,
                    )
                    for topic in missing
                ]
            )
            return missing
        finally:
            await admin.close()
