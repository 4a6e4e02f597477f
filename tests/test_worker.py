import asyncio

import pytest

from conftest import BASE_MS, FakeLocationSource, Route
from location import SubscriptionOptions, accept_sample
from schemas import LifecycleState, PositionSample
from worker import AutoDetector


async def settle(detector: AutoDetector) -> None:
    await asyncio.wait_for(detector.channel.join(), timeout=1)


@pytest.mark.asyncio
async def test_enable_subscribes_exactly_once(tracker):
    source = FakeLocationSource()
    detector = AutoDetector(tracker, source)

    assert await detector.enable() == "Requesting location access..."
    await detector.enable()

    assert source.subscribe_calls == 1
    await detector.disable()
    await detector.disable()
    assert source.unsubscribed == [1]
    assert source.subscriptions == {}


@pytest.mark.asyncio
async def test_reenable_after_disable_opens_a_new_subscription(tracker):
    source = FakeLocationSource()
    detector = AutoDetector(tracker, source)

    await detector.enable()
    await detector.disable()
    await detector.enable()

    assert source.subscribe_calls == 2
    assert list(source.subscriptions) == [2]
    await detector.disable()


@pytest.mark.asyncio
async def test_enable_during_pending_disable_leaves_one_live_consumer(tracker):
    source = FakeLocationSource()
    detector = AutoDetector(tracker, source)
    await detector.enable()
    first = detector._consumer

    disabling = asyncio.create_task(detector.disable())
    await asyncio.sleep(0)
    await detector.enable()
    await disabling

    assert first.done()
    assert detector.enabled
    assert detector._consumer is not None and not detector._consumer.done()
    assert list(source.subscriptions) == [2]

    second = detector._consumer
    await detector.disable()

    assert second.done()
    assert source.subscriptions == {}
    assert detector._consumer is None


@pytest.mark.asyncio
async def test_no_location_source_degrades_to_manual(tracker, details):
    detector = AutoDetector(tracker, None)

    assert await detector.enable() == "Geolocation not supported"

    await tracker.start_job(details)
    assert (await tracker.arrive()).applied
    await detector.disable()


@pytest.mark.asyncio
async def test_pushed_samples_auto_arrive(tracker, details):
    source = FakeLocationSource()
    detector = AutoDetector(tracker, source)
    await tracker.start_job(details)
    await detector.enable()

    route = Route()
    source.emit(route.here())
    await settle(detector)
    assert detector.status == "Tracking location"

    for _ in range(3):
        source.emit(route.move(0.1, 10))
    await settle(detector)
    assert detector.status.startswith("Driving:")

    source.emit(route.wait(10))
    await settle(detector)

    assert detector.status == "Stopped - Auto-arrived at site"
    assert tracker.current_state == LifecycleState.ONSITE
    await detector.disable()


@pytest.mark.asyncio
async def test_disable_clears_motion_context(tracker, details):
    source = FakeLocationSource()
    detector = AutoDetector(tracker, source)
    await tracker.start_job(details)
    await detector.enable()

    route = Route()
    source.emit(route.here())
    source.emit(route.move(0.2, 10))
    await settle(detector)
    assert tracker.motion.accumulated_miles > 0

    await detector.disable()

    assert tracker.motion.accumulated_miles == 0
    assert tracker.motion.last_position is None
    assert detector.status == ""


@pytest.mark.asyncio
async def test_location_errors_become_status(tracker):
    source = FakeLocationSource()
    detector = AutoDetector(tracker, source)
    await detector.enable()

    source.fail("User denied Geolocation")

    assert detector.status == "Location error: User denied Geolocation"
    await detector.disable()


@pytest.mark.asyncio
async def test_failed_auto_arrival_keeps_consuming(tracker, store, details):
    source = FakeLocationSource()
    detector = AutoDetector(tracker, source)
    await tracker.start_job(details)
    await detector.enable()

    route = Route()
    source.emit(route.here())
    for _ in range(3):
        source.emit(route.move(0.1, 10))
    await settle(detector)

    store.fail_writes = True
    source.emit(route.wait(10))
    await settle(detector)

    assert detector.status.startswith("Auto-arrival not saved")
    assert tracker.current_state == LifecycleState.HEADING

    store.fail_writes = False
    source.emit(route.move(0.1, 10))
    await settle(detector)
    assert detector.status.startswith("Driving:")
    await detector.disable()


def sample(ts, accuracy=None):
    return PositionSample(latitude=1.0, longitude=2.0, timestamp=ts, accuracy=accuracy)


def test_stale_samples_are_dropped():
    options = SubscriptionOptions(high_accuracy=False, maximum_age_ms=5000, timeout_ms=10000)
    assert accept_sample(sample(BASE_MS - 4000), options, now=BASE_MS)
    assert not accept_sample(sample(BASE_MS - 6000), options, now=BASE_MS)


def test_high_accuracy_drops_imprecise_fixes():
    strict = SubscriptionOptions(high_accuracy=True, maximum_age_ms=5000, timeout_ms=10000)
    loose = SubscriptionOptions(high_accuracy=False, maximum_age_ms=5000, timeout_ms=10000)

    assert accept_sample(sample(BASE_MS, accuracy=15), strict, now=BASE_MS)
    assert accept_sample(sample(BASE_MS), strict, now=BASE_MS)
    assert not accept_sample(sample(BASE_MS, accuracy=500), strict, now=BASE_MS)
    assert accept_sample(sample(BASE_MS, accuracy=500), loose, now=BASE_MS)
