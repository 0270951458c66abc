"""Live runner: feed client -> queue -> aggregator.

The feed task only decodes and enqueues. A single consumer task owns the
Aggregator and applies events one at a time, so the registry and ledger are
never touched concurrently and need no locks.
"""
from __future__ import annotations
import asyncio
from typing import Optional

from loguru import logger

from telemetry_observer.data.telemetry_ws import TelemetryWSClient
from .aggregator import Aggregator


class ObserverRunner:
    def __init__(self, settings, aggregator: Optional[Aggregator] = None,
                 client: Optional[TelemetryWSClient] = None):
        self.settings = settings
        self.aggregator = aggregator or Aggregator.from_settings(settings)
        self.client = client or TelemetryWSClient(settings.feed)
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=int(settings.feed.queue_size))
        self.events_processed = 0
        self.rows_emitted = 0
        self._feed_task: Optional[asyncio.Task] = None
        self._consumer_task: Optional[asyncio.Task] = None

    async def _produce(self):
        async for event in self.client.start():
            await self.queue.put(event)
        logger.info("Feed producer ended.")

    async def _consume(self):
        while True:
            event = await self.queue.get()
            try:
                rows = self.aggregator.process_event(event)
                self.rows_emitted += len(rows)
            except Exception as e:
                logger.exception(f"Failed to process event {event!r}: {e}")
            finally:
                self.events_processed += 1
                self.queue.task_done()

    async def start(self):
        logger.info("Starting telemetry monitoring...")
        self._consumer_task = asyncio.create_task(self._consume(), name="aggregator")
        self._feed_task = asyncio.create_task(self._produce(), name="feed")

    async def run(self):
        """Run until the feed ends (only after `stop()` in practice), then apply what is queued."""
        await self.start()
        try:
            await self._feed_task
            await self.drain()
        finally:
            await self.stop()

    async def drain(self):
        """Wait until every queued event has been applied."""
        await self.queue.join()

    async def stop(self):
        await self.client.stop()
        tasks = [t for t in (self._feed_task, self._consumer_task) if t is not None]
        for t in tasks:
            if not t.done():
                t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._feed_task = self._consumer_task = None
        logger.info(f"Observer stopped. events={self.events_processed} rows={self.rows_emitted}")


__all__ = ["ObserverRunner"]
