"""SyncConsumer: polls change topics, projects each event, commits offsets."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from userhub_core.correlation import correlation_id_for, correlation_scope
from userhub_core.instrumentation import get_hook_registry
from userhub_core.ports.background_worker import IBackgroundWorker

from .classifier import ErrorClassifier, ErrorKind
from .exceptions import EmptyMessageError, FatalSetupError
from .projector import ApplyOutcome

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from userhub_core.instrumentation import HookRegistry
    from userhub_core.ports.stream import IStreamClient, StreamMessage

    from .decoder import EnvelopeDecoder
    from .filters import SourceDatabaseFilter
    from .registry import ProjectorRegistry

logger = logging.getLogger(__name__)


class ConsumerState(str, Enum):
    IDLE = "idle"
    SUBSCRIBING = "subscribing"
    POLLING = "polling"
    PROCESSING = "processing"
    COMMITTING = "committing"
    SKIPPING = "skipping"
    DRAINING = "draining"
    STOPPED = "stopped"
    FAULTED = "faulted"


class Skip(str, Enum):
    """Messages committed without touching the read store."""

    TOMBSTONE = "skipped_tombstone"
    FILTERED = "skipped_filtered"
    UNROUTED = "skipped_unrouted"


class IRetryDelays(Protocol):
    def delay_for_attempt(self, attempt: int, *, fatal: bool = False) -> float: ...


@dataclass
class ConsumerStats:
    polled: int = 0
    applied: int = 0
    skipped: int = 0
    failed: int = 0
    retried: int = 0
    commits: int = 0
    commit_failures: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class SyncConsumer(IBackgroundWorker):
    """
    Keeps the read store in sync with the write store's change stream.

    Messages are processed one at a time. An offset is committed only after
    the event was applied or deliberately skipped: tombstones, filtered or
    unrouted events, stale events, and events that failed with a format or
    unknown error. Transient failures are never committed; the stream is
    rewound to the failed message and retried after a backoff, indefinitely.
    If the rewind itself fails, the message is retried in place instead of
    polling past it. ``is_fatal`` flags transport errors that should back off
    from the longer fatal base delay.

    ``run()`` drives the loop in the calling task. ``start()``/``stop()``
    run it as a background task; ``stop()`` lets the in-flight message finish,
    retries a failed commit once, and cancels the task if draining takes
    longer than ``drain_timeout``.
    """

    def __init__(
        self,
        client_factory: Callable[[], IStreamClient],
        topics: Sequence[str],
        *,
        decoder: EnvelopeDecoder,
        projectors: ProjectorRegistry,
        backoff: IRetryDelays,
        classifier: ErrorClassifier | None = None,
        is_fatal: Callable[[BaseException], bool] | None = None,
        source_filter: SourceDatabaseFilter | None = None,
        heartbeat: Callable[[str], None] | None = None,
        hook_registry: HookRegistry | None = None,
        name: str = "cdc-sync",
        poll_timeout: float = 5.0,
        setup_timeout: float = 30.0,
        drain_timeout: float = 10.0,
    ) -> None:
        if not topics:
            raise ValueError("SyncConsumer needs at least one topic")
        self._client_factory = client_factory
        self._topics = list(topics)
        self._decoder = decoder
        self._projectors = projectors
        self._backoff = backoff
        self._classifier = classifier or ErrorClassifier()
        self._is_fatal = is_fatal or _never_fatal
        self._source_filter = source_filter
        self._heartbeat = heartbeat
        self._hook_registry = hook_registry or get_hook_registry()
        self._name = name
        self._poll_timeout = poll_timeout
        self._setup_timeout = setup_timeout
        self._drain_timeout = drain_timeout

        self._state = ConsumerState.IDLE
        self._stats = ConsumerStats()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._poll_failures = 0
        self._retry_position: tuple[str, int, int] | None = None
        self._retry_attempt = 0
        self._pending_commits: dict[tuple[str, int], StreamMessage] = {}
        self._held: StreamMessage | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> ConsumerState:
        return self._state

    @property
    def stats(self) -> ConsumerStats:
        return self._stats

    @property
    def topics(self) -> list[str]:
        return list(self._topics)

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self.run(), name=f"sync-consumer-{self._name}")

    def request_stop(self) -> None:
        """Ask the loop to drain and stop; safe to call from signal handlers."""
        self._stop_event.set()

    async def stop(self, timeout: float | None = None) -> None:
        self.request_stop()
        task, self._task = self._task, None
        if task is None:
            return
        wait_for = self._drain_timeout if timeout is None else timeout
        done, _ = await asyncio.wait({task}, timeout=wait_for)
        if not done:
            logger.warning(
                "Consumer %s did not drain within %.1fs; cancelling",
                self._name,
                wait_for,
            )
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            return
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Consumer %s ended with an error",
                self._name,
                exc_info=task.exception(),
            )

    async def run(self) -> None:
        """Subscribe and process messages until a stop is requested.

        Raises:
            FatalSetupError: The client could not be started or subscribed.
        """
        client = await self._setup()
        try:
            await self._consume(client)
            self._state = ConsumerState.DRAINING
            await self._retry_pending_commits(client)
        finally:
            await self._release(client)
            self._state = ConsumerState.STOPPED
            logger.info("Consumer %s stopped; stats=%s", self._name, self._stats.as_dict())

    async def _setup(self) -> IStreamClient:
        self._state = ConsumerState.SUBSCRIBING
        client: IStreamClient | None = None
        try:
            client = self._client_factory()
            await asyncio.wait_for(client.start(), timeout=self._setup_timeout)
            client.subscribe(self._topics)
        except asyncio.CancelledError:
            if client is not None:
                await self._release(client)
            self._state = ConsumerState.STOPPED
            raise
        except Exception as e:
            self._state = ConsumerState.FAULTED
            logger.error(
                "Consumer %s failed to subscribe to %s: %s",
                self._name,
                self._topics,
                e,
                exc_info=True,
            )
            if client is not None:
                await self._release(client)
            raise FatalSetupError(
                f"Consumer {self._name} could not subscribe to {self._topics}: {e}"
            ) from e
        logger.info("Consumer %s subscribed to %s", self._name, self._topics)
        return client

    async def _release(self, client: IStreamClient) -> None:
        try:
            await client.stop()
        except Exception:  # noqa: BLE001
            logger.warning("Consumer %s: error while closing client", self._name, exc_info=True)

    # -- main loop -----------------------------------------------------------

    async def _consume(self, client: IStreamClient) -> None:
        while not self._stop_event.is_set():
            self._state = ConsumerState.POLLING
            self._beat()
            message, self._held = self._held, None
            if message is None:
                try:
                    message = await self._poll(client)
                except Exception as e:
                    await self._on_poll_error(e)
                    continue
                self._poll_failures = 0
                if message is None:
                    continue
                self._stats.polled += 1
            await self._handle(client, message)

    async def _poll(self, client: IStreamClient) -> StreamMessage | None:
        poll_task = asyncio.ensure_future(client.poll(self._poll_timeout))
        stop_task = asyncio.ensure_future(self._stop_event.wait())
        try:
            await asyncio.wait({poll_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (poll_task, stop_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(poll_task, stop_task, return_exceptions=True)
        if poll_task.cancelled():
            return None
        return poll_task.result()

    async def _on_poll_error(self, exc: Exception) -> None:
        self._poll_failures += 1
        fatal = self._is_fatal(exc)
        delay = self._backoff.delay_for_attempt(self._poll_failures, fatal=fatal)
        logger.error(
            "Consumer %s poll failed (attempt %d, fatal=%s); retrying in %.1fs: %s",
            self._name,
            self._poll_failures,
            fatal,
            delay,
            exc,
            exc_info=True,
        )
        await self._sleep(delay)

    async def _handle(self, client: IStreamClient, message: StreamMessage) -> None:
        correlation_id = correlation_id_for(
            message.topic, message.partition, message.offset
        )
        with correlation_scope(correlation_id):
            await self._handle_in_scope(client, message, correlation_id)

    async def _handle_in_scope(
        self, client: IStreamClient, message: StreamMessage, correlation_id: str
    ) -> None:
        self._state = ConsumerState.PROCESSING
        attributes: dict[str, Any] = {
            "consumer": self._name,
            "topic": message.topic,
            "partition": message.partition,
            "offset": message.offset,
            "key": message.key,
            "correlation_id": correlation_id,
        }
        try:
            result = await self._hook_registry.execute_all(
                f"cdc.process.{message.topic}",
                attributes,
                lambda: self._process(message),
            )
        except Exception as e:
            await self._on_failure(client, message, e)
            return

        self._clear_retry(message)
        if result is ApplyOutcome.STALE or isinstance(result, Skip):
            self._stats.skipped += 1
        else:
            self._stats.applied += 1
        await self._commit(client, message)

    async def _process(self, message: StreamMessage) -> ApplyOutcome | Skip:
        where = _describe(message)
        try:
            event = self._decoder.decode(message.value, message_key=message.key)
        except EmptyMessageError:
            logger.debug("Skipping tombstone at %s", where)
            return Skip.TOMBSTONE

        if self._source_filter is not None and not self._source_filter.accepts(event):
            logger.debug(
                "Skipping %s from database %r at %s", event.key, event.source.db, where
            )
            return Skip.FILTERED

        projector = self._projectors.resolve(event, message.topic)
        if projector is None:
            logger.warning(
                "No projector for table %r at %s; skipping",
                event.source.table,
                where,
            )
            return Skip.UNROUTED

        outcome = await projector.apply(event)
        logger.debug(
            "Applied '%s' for key %s at %s: %s",
            event.operation.value,
            event.key,
            where,
            outcome.value,
        )
        return outcome

    async def _on_failure(
        self, client: IStreamClient, message: StreamMessage, exc: Exception
    ) -> None:
        kind = self._classifier.classify(exc)
        where = _describe(message)
        if kind is ErrorKind.TRANSIENT:
            self._state = ConsumerState.SKIPPING
            self._stats.retried += 1
            attempt = self._next_retry_attempt(message)
            delay = self._backoff.delay_for_attempt(
                attempt, fatal=self._is_fatal(exc)
            )
            logger.warning(
                "Transient failure at %s (attempt %d); retrying in %.1fs: %s",
                where,
                attempt,
                delay,
                exc,
            )
            try:
                client.rewind(message)
            except Exception:  # noqa: BLE001
                # The fetch position is already past this message: keep it in
                # hand so nothing after it is applied or committed first.
                logger.warning(
                    "Could not rewind to %s; retrying it in place", where, exc_info=True
                )
                self._held = message
            await self._sleep(delay)
            return

        self._clear_retry(message)
        self._stats.failed += 1
        self._stats.skipped += 1
        logger.error(
            "%s error at %s; committing and moving on: %s",
            "Format" if kind is ErrorKind.FORMAT else "Unexpected",
            where,
            exc,
            exc_info=exc,
        )
        await self._commit(client, message)

    async def _commit(self, client: IStreamClient, message: StreamMessage) -> None:
        self._state = ConsumerState.COMMITTING
        partition = (message.topic, message.partition)
        try:
            await client.commit(message)
        except Exception as e:
            self._stats.commit_failures += 1
            self._pending_commits[partition] = message
            logger.warning(
                "Commit failed at %s; will retry: %s", _describe(message), e, exc_info=True
            )
            return
        self._stats.commits += 1
        self._pending_commits.pop(partition, None)

    async def _retry_pending_commits(self, client: IStreamClient) -> None:
        for partition, message in list(self._pending_commits.items()):
            try:
                await client.commit(message)
            except Exception:  # noqa: BLE001
                logger.error(
                    "Giving up on commit at %s; it will be redelivered",
                    _describe(message),
                    exc_info=True,
                )
                continue
            self._stats.commits += 1
            del self._pending_commits[partition]

    # -- helpers -------------------------------------------------------------

    def _next_retry_attempt(self, message: StreamMessage) -> int:
        position = (message.topic, message.partition, message.offset)
        if self._retry_position != position:
            self._retry_position = position
            self._retry_attempt = 0
        self._retry_attempt += 1
        return self._retry_attempt

    def _clear_retry(self, message: StreamMessage) -> None:
        if self._retry_position == (message.topic, message.partition, message.offset):
            self._retry_position = None
            self._retry_attempt = 0

    async def _sleep(self, delay: float) -> None:
        """Wait *delay* seconds or until a stop is requested."""
        if delay <= 0:
            return
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)

    def _beat(self) -> None:
        if self._heartbeat is None:
            return
        try:
            self._heartbeat(self._name)
        except Exception:  # noqa: BLE001
            logger.warning("Heartbeat callback failed for %s", self._name, exc_info=True)


def _never_fatal(exc: BaseException) -> bool:
    return False


def _describe(message: StreamMessage) -> str:
    return (
        f"{message.topic}[{message.partition}]@{message.offset} (key={message.key})"
    )
