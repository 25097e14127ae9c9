"""
Interval publisher for push queries.

Each push descriptor gets one asyncio task that runs a tick, sleeps
``interval_ms`` and repeats until cancelled. A tick is skipped, without
touching the database, while the transport is disconnected; missed ticks are
not queued. Query and publish failures are logged and only end that tick.
Any other exception stops the task and is logged as a defect.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from querygate.core.errors import ConfigurationError, QueryGateError
from querygate.core.serialization import dumps_rows
from querygate.core.transport import PublishError, PublishTransport
from querygate.engines.pipeline import QueryPipeline
from querygate.models import ExposureEnum, QueryDescriptor

_log = logging.getLogger(__name__)


class IntervalPublisher:
    def __init__(
        self,
        descriptor: QueryDescriptor,
        pipeline: QueryPipeline,
        transport: PublishTransport,
        *,
        topic_prefix: str = "",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if descriptor.exposure != ExposureEnum.PUSH:
            raise ConfigurationError(f"{descriptor.label} is not a push query")
        if not descriptor.interval_ms:
            raise ConfigurationError(f"{descriptor.label}: interval_ms is required")
        if descriptor.output_params:
            raise ConfigurationError(f"{descriptor.label}: push queries cannot declare output binds")
        self.descriptor = descriptor
        self.pipeline = pipeline
        self.transport = transport
        self.topic = f"{topic_prefix}{descriptor.topic or ''}"
        self._sleep = sleep

    @property
    def interval_seconds(self) -> float:
        return (self.descriptor.interval_ms or 0) / 1000

    async def tick(self) -> bool:
        """Run one query + publish. Returns True if a message was published."""
        if not await asyncio.to_thread(getattr, self.transport, "connected"):
            _log.debug("%s: transport disconnected, tick skipped", self.topic)
            return False
        try:
            rows = await asyncio.to_thread(self.pipeline.run, self.descriptor, {})
            payload = dumps_rows(rows)
            await asyncio.to_thread(self.transport.publish, self.topic, payload)
        except (QueryGateError, PublishError):
            _log.error("%s: tick failed", self.topic, exc_info=True)
            return False
        _log.info("topic: %s, %d row(s), %d byte(s)", self.topic, len(rows), len(payload))
        return True

    async def run(self) -> None:
        """Tick, then wait ``interval_ms`` regardless of the outcome, forever."""
        _log.info("Push query started: %s every %sms", self.topic, self.descriptor.interval_ms)
        while True:
            await self.tick()
            await self._sleep(self.interval_seconds)


class PublisherGroup:
    """Owns the asyncio tasks of all publishers for the application lifetime."""

    def __init__(self, publishers: list[IntervalPublisher]) -> None:
        self.publishers = publishers
        self._tasks: list[asyncio.Task] = []

    def start(self) -> None:
        for publisher in self.publishers:
            task = asyncio.create_task(publisher.run(), name=f"publish:{publisher.topic}")
            task.add_done_callback(self._on_done)
            self._tasks.append(task)

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    @staticmethod
    def _on_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _log.error("Publisher task %s died", task.get_name(), exc_info=exc)
