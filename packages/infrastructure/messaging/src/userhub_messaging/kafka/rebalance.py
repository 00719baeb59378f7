"""Rebalance listener that reports partition assignment changes."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from aiokafka import ConsumerRebalanceListener

if TYPE_CHECKING:
    from aiokafka import TopicPartition

logger = logging.getLogger(__name__)


def _describe(partitions: set[TopicPartition] | list[TopicPartition]) -> str:
    return ", ".join(sorted(f"{tp.topic}[{tp.partition}]" for tp in partitions)) or "-"


class LoggingRebalanceListener(ConsumerRebalanceListener):
    """Logs assigned and revoked partitions; processing is unaffected."""

    async def on_partitions_revoked(self, revoked: set[TopicPartition]) -> None:
        logger.info("Revoked partitions: %s", _describe(revoked))

    async def on_partitions_assigned(self, assigned: set[TopicPartition]) -> None:
        logger.info("Assigned partitions: %s", _describe(assigned))
