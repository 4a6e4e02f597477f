# app/location.py
import asyncio
import json
import time
from dataclasses import dataclass
from typing import Callable, Optional

import redis
from pydantic import ValidationError

from config import (
    LOCATION_HIGH_ACCURACY,
    LOCATION_MAX_AGE_MS,
    LOCATION_STREAM,
    LOCATION_TIMEOUT_MS,
)
from schemas import PositionSample
from variables import LOW_ACCURACY_METERS

from logging_config import get_logger

logger = get_logger("location", "location.log")


@dataclass
class SubscriptionOptions:
    high_accuracy: bool = LOCATION_HIGH_ACCURACY
    maximum_age_ms: int = LOCATION_MAX_AGE_MS
    timeout_ms: int = LOCATION_TIMEOUT_MS


def now_ms() -> int:
    return int(time.time() * 1000)


def accept_sample(sample: PositionSample, options: SubscriptionOptions, now: Optional[int] = None) -> bool:
    """
    Stale samples, and imprecise ones in high-accuracy mode, are not passed on.
    """
    now = now_ms() if now is None else now
    age = now - sample.timestamp
    if age > options.maximum_age_ms:
        logger.debug(f"Dropping stale sample ({age} ms old)")
        return False
    if options.high_accuracy and sample.accuracy is not None and sample.accuracy > LOW_ACCURACY_METERS:
        logger.debug(f"Dropping low-accuracy sample ({sample.accuracy} m)")
        return False
    return True


class RedisStreamLocationSource:
    """
    Device samples arrive on a Redis stream (see publish_sample). Each
    subscription is one reader task that hands every fresh sample to its
    callback; unsubscribe cancels that task.
    """

    def __init__(self, client: redis.Redis, stream: str = LOCATION_STREAM):
        self.r = client
        self.stream = stream
        self._tasks = {}
        self._next_handle = 0

    def subscribe(self, callback: Callable[[PositionSample], None],
                  on_error: Callable[[str], None],
                  options: Optional[SubscriptionOptions] = None) -> int:
        options = options or SubscriptionOptions()
        self._next_handle += 1
        handle = self._next_handle
        self._tasks[handle] = asyncio.create_task(self._watch(callback, on_error, options))
        logger.info(f"Subscribed handle={handle} to stream {self.stream}")
        return handle

    def unsubscribe(self, handle: int) -> None:
        task = self._tasks.pop(handle, None)
        if task is None:
            return
        task.cancel()
        logger.info(f"Unsubscribed handle={handle}")

    def _latest_id(self):
        newest = self.r.xrevrange(self.stream, count=1)
        return newest[0][0] if newest else "0-0"

    async def _watch(self, callback, on_error, options: SubscriptionOptions) -> None:
        # resume from the newest id the server holds, never a local clock:
        # entries added after subscribe are read even across clock skew
        try:
            last_id = await asyncio.get_event_loop().run_in_executor(None, self._latest_id)
        except redis.exceptions.RedisError as e:
            logger.exception(f"Location stream read failed: {e}")
            on_error(str(e))
            return

        while True:
            try:
                msgs = await asyncio.get_event_loop().run_in_executor(
                    None,
                    lambda: self.r.xread({self.stream: last_id}, count=100, block=options.timeout_ms),
                )
            except redis.exceptions.RedisError as e:
                logger.exception(f"Location stream read failed: {e}")
                on_error(str(e))
                return

            if not msgs:
                on_error("Timeout expired")
                continue

            for _, records in msgs:
                for _id, fields in records:
                    last_id = _id
                    try:
                        sample = PositionSample.model_validate_json(fields[b"data"])
                    except (KeyError, ValidationError) as e:
                        logger.warning(f"Skipping malformed sample {_id}: {e}")
                        continue
                    if accept_sample(sample, options):
                        callback(sample)


async def publish_sample(client: redis.Redis, sample: PositionSample, stream: str = LOCATION_STREAM) -> None:
    json_str = json.dumps(sample.model_dump(), ensure_ascii=False)

    # Push to Redis inside executor (non-blocking)
    await asyncio.get_event_loop().run_in_executor(
        None,
        client.xadd,
        stream,
        {"ts": time.time(), "data": json_str},
    )
