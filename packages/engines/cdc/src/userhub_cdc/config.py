"""Settings for the CDC sync worker, read from ``CDC_*`` environment variables."""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from userhub_core.primitives.exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

ENV_PREFIX = "CDC_"
_OFFSET_RESETS = frozenset({"earliest", "latest"})
_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def topic_name(server_name: str, schema: str, table: str) -> str:
    """Topic the connector writes a table's changes to: ``<server>.<schema>.<table>``."""
    return f"{server_name}.{schema}.{table}"


def table_from_topic(topic: str) -> str:
    """Last dotted segment of a change topic name."""
    return topic.rsplit(".", 1)[-1]


class _Env:
    def __init__(self, environ: Mapping[str, str]) -> None:
        self._environ = environ

    def raw(self, name: str) -> str | None:
        value = self._environ.get(ENV_PREFIX + name)
        if value is None or not value.strip():
            return None
        return value.strip()

    def get_str(self, name: str, default: str) -> str:
        return self.raw(name) or default

    def get_optional_str(self, name: str) -> str | None:
        return self.raw(name)

    def get_bool(self, name: str, default: bool) -> bool:
        value = self.raw(name)
        if value is None:
            return default
        if value.lower() in _TRUE:
            return True
        if value.lower() in _FALSE:
            return False
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be a boolean, got {value!r}")

    def get_float(self, name: str, default: float) -> float:
        value = self.raw(name)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            raise ConfigurationError(
                f"{ENV_PREFIX}{name} must be a number, got {value!r}"
            ) from None

    def get_int(self, name: str, default: int) -> int:
        value = self.raw(name)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            raise ConfigurationError(
                f"{ENV_PREFIX}{name} must be an integer, got {value!r}"
            ) from None

    def get_list(self, name: str, default: tuple[str, ...]) -> tuple[str, ...]:
        value = self.raw(name)
        if value is None:
            return default
        return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class KafkaSettings:
    """Broker connection and consumer-group settings.

    Offsets are always committed manually; ``enable_auto_commit=True`` is
    rejected.
    """

    bootstrap_servers: str = "localhost:9092"
    group_id: str = "hexagonal-cdc-consumer-group"
    client_id: str = "hexagonal-consumer"
    generate_unique_group_id: bool = False
    auto_offset_reset: str = "earliest"
    enable_auto_commit: bool = False
    session_timeout_ms: int = 10000
    heartbeat_interval_ms: int = 3000

    def __post_init__(self) -> None:
        if not self.bootstrap_servers:
            raise ConfigurationError("bootstrap_servers must not be empty")
        if not self.group_id:
            raise ConfigurationError("group_id must not be empty")
        if self.auto_offset_reset not in _OFFSET_RESETS:
            raise ConfigurationError(
                f"auto_offset_reset must be one of {sorted(_OFFSET_RESETS)}, "
                f"got {self.auto_offset_reset!r}"
            )
        if self.enable_auto_commit:
            raise ConfigurationError(
                "enable_auto_commit is not supported; offsets are committed "
                "after each message is applied"
            )
        if self.heartbeat_interval_ms >= self.session_timeout_ms:
            raise ConfigurationError(
                "heartbeat_interval_ms must be lower than session_timeout_ms"
            )

    def effective_group_id(self) -> str:
        """Group id, suffixed with a random uuid when unique groups are requested."""
        if self.generate_unique_group_id:
            return f"{self.group_id}-{uuid.uuid4()}"
        return self.group_id


@dataclass(frozen=True)
class MongoSettings:
    url: str = "mongodb://localhost:27017"
    database: str = "HexagonalSkeletonRead"
    collection: str = "users"
    ensure_indexes: bool = True

    def __post_init__(self) -> None:
        if not self.database or not self.collection:
            raise ConfigurationError("Mongo database and collection must be set")


@dataclass(frozen=True)
class BackoffSettings:
    base_delay: float = 2.0
    fatal_base_delay: float = 15.0
    max_delay: float = 60.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if min(self.base_delay, self.fatal_base_delay, self.max_delay) < 0:
            raise ConfigurationError("Backoff delays must be >= 0")
        if max(self.base_delay, self.fatal_base_delay) > self.max_delay:
            raise ConfigurationError("Backoff base delays must be <= max_delay")


@dataclass(frozen=True)
class CdcSettings:
    """Everything the sync worker needs to build its pipeline."""

    kafka: KafkaSettings = field(default_factory=KafkaSettings)
    mongo: MongoSettings = field(default_factory=MongoSettings)
    backoff: BackoffSettings = field(default_factory=BackoffSettings)
    server_name: str = "hexagonal-postgres"
    schema: str = "public"
    tables: tuple[str, ...] = ("users",)
    topics: tuple[str, ...] = ()
    target_database: str | None = None
    process_only_target_database: bool = False
    poll_timeout: float = 5.0
    setup_timeout: float = 30.0
    drain_timeout: float = 10.0
    create_missing_topics: bool = False
    worker_name: str = "cdc-sync"
    log_level: str = "INFO"
    # Seconds between health status log lines; 0 disables the report.
    health_report_interval: float = 60.0
    # Port of the Prometheus metrics endpoint; 0 disables it.
    metrics_port: int = 0

    def __post_init__(self) -> None:
        if not self.tables and not self.topics:
            raise ConfigurationError("At least one table or topic must be configured")
        for name in ("poll_timeout", "setup_timeout", "drain_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be > 0")
        if self.setup_timeout < self.poll_timeout:
            raise ConfigurationError("setup_timeout must be >= poll_timeout")
        if self.process_only_target_database and not self.target_database:
            raise ConfigurationError(
                "process_only_target_database requires target_database"
            )
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigurationError(f"Unknown log level {self.log_level!r}")
        if self.health_report_interval < 0:
            raise ConfigurationError("health_report_interval must be >= 0")
        if not 0 <= self.metrics_port <= 65535:
            raise ConfigurationError(f"metrics_port out of range: {self.metrics_port}")

    @property
    def resolved_topics(self) -> list[str]:
        """Explicit topics, or one topic per table derived from server and schema."""
        if self.topics:
            return list(self.topics)
        return [topic_name(self.server_name, self.schema, t) for t in self.tables]

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> CdcSettings:
        """Build settings from ``CDC_*`` variables; unset ones keep their defaults."""
        env = _Env(os.environ if environ is None else environ)
        kafka_defaults = KafkaSettings()
        mongo_defaults = MongoSettings()
        backoff_defaults = BackoffSettings()
        defaults = cls()
        return cls(
            kafka=KafkaSettings(
                bootstrap_servers=env.get_str(
                    "KAFKA_BOOTSTRAP_SERVERS", kafka_defaults.bootstrap_servers
                ),
                group_id=env.get_str("KAFKA_GROUP_ID", kafka_defaults.group_id),
                client_id=env.get_str("KAFKA_CLIENT_ID", kafka_defaults.client_id),
                generate_unique_group_id=env.get_bool(
                    "KAFKA_GENERATE_UNIQUE_GROUP_ID",
                    kafka_defaults.generate_unique_group_id,
                ),
                auto_offset_reset=env.get_str(
                    "KAFKA_AUTO_OFFSET_RESET", kafka_defaults.auto_offset_reset
                ).lower(),
                enable_auto_commit=env.get_bool(
                    "KAFKA_ENABLE_AUTO_COMMIT", kafka_defaults.enable_auto_commit
                ),
                session_timeout_ms=env.get_int(
                    "KAFKA_SESSION_TIMEOUT_MS", kafka_defaults.session_timeout_ms
                ),
                heartbeat_interval_ms=env.get_int(
                    "KAFKA_HEARTBEAT_INTERVAL_MS", kafka_defaults.heartbeat_interval_ms
                ),
            ),
            mongo=MongoSettings(
                url=env.get_str("MONGO_URL", mongo_defaults.url),
                database=env.get_str("MONGO_DATABASE", mongo_defaults.database),
                collection=env.get_str("MONGO_COLLECTION", mongo_defaults.collection),
                ensure_indexes=env.get_bool(
                    "MONGO_ENSURE_INDEXES", mongo_defaults.ensure_indexes
                ),
            ),
            backoff=BackoffSettings(
                base_delay=env.get_float("BACKOFF_BASE_DELAY", backoff_defaults.base_delay),
                fatal_base_delay=env.get_float(
                    "BACKOFF_FATAL_BASE_DELAY", backoff_defaults.fatal_base_delay
                ),
                max_delay=env.get_float("BACKOFF_MAX_DELAY", backoff_defaults.max_delay),
                jitter=env.get_bool("BACKOFF_JITTER", backoff_defaults.jitter),
            ),
            server_name=env.get_str("SERVER_NAME", defaults.server_name),
            schema=env.get_str("SCHEMA", defaults.schema),
            tables=env.get_list("TABLES", defaults.tables),
            topics=env.get_list("TOPICS", defaults.topics),
            target_database=env.get_optional_str("TARGET_DATABASE"),
            process_only_target_database=env.get_bool(
                "PROCESS_ONLY_TARGET_DATABASE", defaults.process_only_target_database
            ),
            poll_timeout=env.get_float("POLL_TIMEOUT", defaults.poll_timeout),
            setup_timeout=env.get_float("SETUP_TIMEOUT", defaults.setup_timeout),
            drain_timeout=env.get_float("DRAIN_TIMEOUT", defaults.drain_timeout),
            create_missing_topics=env.get_bool(
                "CREATE_MISSING_TOPICS", defaults.create_missing_topics
            ),
            worker_name=env.get_str("WORKER_NAME", defaults.worker_name),
            log_level=env.get_str("LOG_LEVEL", defaults.log_level).upper(),
            health_report_interval=env.get_float(
                "HEALTH_REPORT_INTERVAL", defaults.health_report_interval
            ),
            metrics_port=env.get_int("METRICS_PORT", defaults.metrics_port),
        )
