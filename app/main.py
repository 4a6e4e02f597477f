from contextlib import asynccontextmanager

import redis
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config import REDIS_URL
from errors import PersistenceError
from location import RedisStreamLocationSource
from logging_config import get_logger
from storage import build_store
from tracker import TrackerController, utcnow
from webhook import router
from worker import AutoDetector

logger = get_logger("main", "main.log")


def create_app(store=None, source=None, redis_client=None, clock=None) -> FastAPI:
    """
    Without arguments the store, stream client and location source come from
    configuration; tests pass their own.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = redis_client
        if client is None and REDIS_URL:
            client = redis.from_url(REDIS_URL, decode_responses=False)

        kv = store if store is not None else await build_store()
        loc = source
        if loc is None and client is not None:
            loc = RedisStreamLocationSource(client)

        tracker = TrackerController(kv, clock=clock or utcnow)
        await tracker.load()

        app.state.redis = client
        app.state.tracker = tracker
        app.state.detector = AutoDetector(tracker, loc)
        logger.info("Field tracker started")
        yield
        await app.state.detector.disable()
        logger.info("Field tracker stopped")

    app = FastAPI(title="Field-Tracker", lifespan=lifespan)
    app.include_router(router)

    @app.exception_handler(PersistenceError)
    async def persistence_failed(request: Request, exc: PersistenceError):
        return JSONResponse(status_code=503, content={"detail": f"could not save: {exc}"})

    return app


app = create_app()

if __name__=="__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)
