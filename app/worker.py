# app/worker.py
import asyncio
from contextlib import suppress
from typing import Optional

from errors import PersistenceError
from location import SubscriptionOptions
from schemas import PositionSample
from tracker import TrackerController

from logging_config import get_logger

# ------------ Variable Declaration -----------
logger = get_logger("worker", "worker.log")


class SampleChannel:
    """
    The location source pushes into this queue; exactly one consumer task
    drains it, so samples are handled one at a time and in arrival order.
    """

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()

    def push(self, sample: PositionSample) -> None:
        self.queue.put_nowait(sample)

    async def get(self) -> PositionSample:
        return await self.queue.get()

    def done(self) -> None:
        self.queue.task_done()

    async def join(self) -> None:
        await self.queue.join()



class AutoDetector:
    """
    Turns location-driven arrival detection on and off.

    enable() opens one subscription and one consumer; disable() closes both
    and forgets any in-flight motion. Calling either twice is a no-op.
    """

    def __init__(self, tracker: TrackerController, source=None,
                 options: Optional[SubscriptionOptions] = None):
        self.tracker = tracker
        self.source = source
        self.options = options
        self.enabled = False
        self.status = ""
        self.channel = SampleChannel()
        self._handle = None
        self._consumer: Optional[asyncio.Task] = None
        # enable/disable never interleave
        self._toggle = asyncio.Lock()

    async def enable(self) -> str:
        async with self._toggle:
            return self._enable()

    def _enable(self) -> str:
        if self.enabled:
            return self.status
        self.enabled = True

        if self.source is None:
            self.status = "Geolocation not supported"
            logger.warning("Auto-detect enabled but no location source is configured")
            return self.status

        self.status = "Requesting location access..."
        self.channel = SampleChannel()
        self._consumer = asyncio.create_task(self._consume())
        self._handle = self.source.subscribe(self.channel.push, self._on_error, self.options)
        logger.info("Auto-detect enabled")
        return self.status

    async def disable(self) -> None:
        async with self._toggle:
            if not self.enabled:
                return
            self.enabled = False

            handle, self._handle = self._handle, None
            consumer, self._consumer = self._consumer, None

            if handle is not None:
                self.source.unsubscribe(handle)

            if consumer is not None:
                consumer.cancel()
                with suppress(asyncio.CancelledError):
                    await consumer

            self.tracker.reset_motion()
            self.status = ""

        logger.info("Auto-detect disabled; motion state cleared")

    def _on_error(self, message: str) -> None:
        self.status = f"Location error: {message}"
        logger.warning(self.status)

    async def _consume(self) -> None:
        while True:
            sample = await self.channel.get()
            self.status = "Tracking location"
            try:
                result = await self.tracker.process_sample(sample)
            except PersistenceError as e:
                # the tracker kept its previous state; keep consuming
                self.status = f"Auto-arrival not saved: {e}"
                logger.error(self.status)
                continue
            finally:
                self.channel.done()

            if result is not None:
                self.status = result.status
