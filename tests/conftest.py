from __future__ import annotations

import datetime as dt
import math

import pytest

from schemas import JobDetails, PositionSample
from storage import KeyValueStore
from tracker import TrackerController
from variables import EARTH_RADIUS_MILES

UTC = dt.timezone.utc

START = dt.datetime(2026, 10, 19, 8, 0, tzinfo=UTC)  # a Monday
BASE_MS = int(START.timestamp() * 1000)


class MemoryStore(KeyValueStore):
    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.fail_writes = False
        self.fail_reads = False
        self.writes = 0

    async def get(self, key: str) -> str | None:
        if self.fail_reads:
            raise ConnectionError("store offline")
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.writes += 1
        self.data[key] = value


class FakeClock:
    def __init__(self, start: dt.datetime = START) -> None:
        self.now = start

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += dt.timedelta(**kwargs)


class FakeLocationSource:
    def __init__(self) -> None:
        self.subscriptions: dict[int, tuple] = {}
        self.subscribe_calls = 0
        self.unsubscribed: list[int] = []

    def subscribe(self, callback, on_error, options=None) -> int:
        self.subscribe_calls += 1
        handle = self.subscribe_calls
        self.subscriptions[handle] = (callback, on_error)
        return handle

    def unsubscribe(self, handle: int) -> None:
        self.unsubscribed.append(handle)
        self.subscriptions.pop(handle, None)

    def emit(self, sample: PositionSample) -> None:
        for callback, _ in list(self.subscriptions.values()):
            callback(sample)

    def fail(self, message: str) -> None:
        for _, on_error in list(self.subscriptions.values()):
            on_error(message)


def north_of(lat: float, miles: float) -> float:
    """Latitude `miles` due north along a meridian."""
    return lat + math.degrees(miles / EARTH_RADIUS_MILES)


class Route:
    """Builds a northbound track of samples for the motion tests."""

    def __init__(self, lat: float = 32.7767, lon: float = -96.7970, ts: int = BASE_MS) -> None:
        self.lat = lat
        self.lon = lon
        self.ts = ts

    def here(self, speed=None) -> PositionSample:
        return PositionSample(latitude=self.lat, longitude=self.lon, timestamp=self.ts, speed=speed)

    def move(self, miles: float, seconds: float, speed=None) -> PositionSample:
        self.lat = north_of(self.lat, miles)
        self.ts += int(seconds * 1000)
        return self.here(speed)

    def wait(self, seconds: float, speed=None) -> PositionSample:
        self.ts += int(seconds * 1000)
        return self.here(speed)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tracker(store, clock) -> TrackerController:
    return TrackerController(store, clock=clock)


@pytest.fixture
def details() -> JobDetails:
    return JobDetails(
        customer_name="Acme Cold Storage",
        contact="Dana, 555-0101",
        facility="Warehouse 4",
        work_scope="Compressor inspection",
    )
