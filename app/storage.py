# app/storage.py
import asyncio
from typing import Optional

import redis
from sqlalchemy.exc import DBAPIError, OperationalError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from config import DATABASE_URL, REDIS_URL, STORAGE_BACKEND, WRITE_RETRY_ATTEMPTS
from errors import StorageUnavailable

from logging_config import get_logger

logger = get_logger("storage", "storage.log")

RETRYABLE = (
    redis.exceptions.ConnectionError,
    redis.exceptions.TimeoutError,
    DBAPIError,
    OperationalError,
    OSError,
)

write_retry = retry(
    wait=wait_exponential_jitter(initial=0.2, max=5),
    stop=stop_after_attempt(WRITE_RETRY_ATTEMPTS),
    retry=retry_if_exception_type(RETRYABLE),
    reraise=True,
)


class KeyValueStore:
    """
    Opaque string blobs by key. Both calls may raise; callers decide what a
    failure means.
    """

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def set(self, key: str, value: str) -> None:
        raise NotImplementedError


class RedisStore(KeyValueStore):
    def __init__(self, client: redis.Redis):
        self.r = client

    async def get(self, key: str) -> Optional[str]:
        raw = await asyncio.get_event_loop().run_in_executor(None, self.r.get, key)
        if raw is None:
            return None
        return raw.decode("utf-8") if isinstance(raw, bytes) else raw

    @write_retry
    async def set(self, key: str, value: str) -> None:
        await asyncio.get_event_loop().run_in_executor(None, self.r.set, key, value)
        logger.debug(f"[redis] SET {key} ({len(value)} bytes)")


class SqlStore(KeyValueStore):
    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def get(self, key: str) -> Optional[str]:
        from models import KeyValue

        async with self.session_factory() as db:
            row = await db.get(KeyValue, key)
            return row.value if row else None

    @write_retry
    async def set(self, key: str, value: str) -> None:
        from models import KeyValue

        async with self.session_factory() as db:
            row = await db.get(KeyValue, key)
            if row:
                row.value = value
            else:
                db.add(KeyValue(key=key, value=value))
            await db.commit()
        logger.debug(f"[sql] upserted {key} ({len(value)} bytes)")


async def build_store() -> KeyValueStore:
    """
    Pick the backend from configuration. The SQL backend creates its table on
    first use.
    """
    if STORAGE_BACKEND == "redis":
        if not REDIS_URL:
            raise StorageUnavailable("STORAGE_BACKEND=redis but REDIS_URL is not set")
        logger.info("Using Redis key/value store")
        return RedisStore(redis.from_url(REDIS_URL, decode_responses=False))

    if STORAGE_BACKEND == "sql":
        if not DATABASE_URL:
            raise StorageUnavailable("STORAGE_BACKEND=sql but DATABASE_URL is not set")
        from database import init_models, make_sessionmaker

        engine, session_factory = make_sessionmaker(DATABASE_URL)
        await init_models(engine)
        logger.info("Using SQL key/value store")
        return SqlStore(session_factory)

    raise StorageUnavailable(f"Unknown STORAGE_BACKEND {STORAGE_BACKEND!r}")
