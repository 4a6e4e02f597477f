import pytest

from conftest import Route
from motion import MotionProcessor
from schemas import LifecycleState

HEADING = LifecycleState.HEADING


def test_first_sample_is_only_a_baseline():
    mp = MotionProcessor()
    route = Route()

    assert mp.process(route.here(), HEADING) is None
    assert mp.last_position is not None
    assert mp.accumulated_miles == 0


def test_point_three_miles_in_a_minute_is_driving():
    mp = MotionProcessor()
    route = Route()
    mp.process(route.here(), HEADING)

    result = mp.process(route.move(0.3, 60), HEADING)

    assert result.speed_mph == pytest.approx(18.0, rel=1e-3)
    assert result.is_driving
    assert result.accumulated_miles == pytest.approx(0.3, rel=1e-3)
    assert result.status == "Driving: 18 mph (0.30 mi)"
    assert not result.auto_arrive


def test_stop_after_quarter_mile_auto_arrives_once():
    mp = MotionProcessor()
    route = Route()
    mp.process(route.here(), HEADING)
    for _ in range(3):
        assert mp.process(route.move(0.1, 10), HEADING).is_driving

    stopped = mp.process(route.wait(10), HEADING)

    assert stopped.auto_arrive
    assert not stopped.is_driving
    assert stopped.status == "Stopped - Auto-arrived at site"
    assert mp.accumulated_miles == 0

    # still parked: nothing accumulated, so no second signal
    again = mp.process(route.wait(10), HEADING)
    assert not again.auto_arrive


def test_short_hop_does_not_auto_arrive():
    mp = MotionProcessor()
    route = Route()
    mp.process(route.here(), HEADING)
    mp.process(route.move(0.1, 10), HEADING)

    stopped = mp.process(route.wait(30), HEADING)

    assert not stopped.auto_arrive
    assert stopped.status == "Not moving (0 mph)"
    assert mp.accumulated_miles == 0


@pytest.mark.parametrize("state", [LifecycleState.IDLE, LifecycleState.ONSITE, LifecycleState.LEFT])
def test_only_heading_jobs_auto_arrive(state):
    mp = MotionProcessor()
    route = Route()
    mp.process(route.here(), state)
    for _ in range(4):
        mp.process(route.move(0.1, 10), state)

    stopped = mp.process(route.wait(10), state)

    assert not stopped.auto_arrive
    assert mp.accumulated_miles == 0


def test_device_speed_overrides_position_delta():
    mp = MotionProcessor()
    route = Route()
    mp.process(route.here(), HEADING)

    # barely moved, but the device says 20 m/s
    result = mp.process(route.move(0.001, 1, speed=20.0), HEADING)

    assert result.is_driving
    assert result.speed_mph == pytest.approx(44.74)


def test_duplicate_timestamp_is_treated_as_not_moving():
    mp = MotionProcessor()
    route = Route()
    mp.process(route.here(), HEADING)

    result = mp.process(route.move(0.05, 0), HEADING)

    assert result.speed_mph == 0.0
    assert not result.is_driving


def test_reset_discards_motion_context():
    mp = MotionProcessor()
    route = Route()
    mp.process(route.here(), HEADING)
    mp.process(route.move(0.2, 10), HEADING)

    mp.reset()

    assert mp.last_position is None
    assert mp.accumulated_miles == 0
    assert mp.process(route.move(0.2, 10), HEADING) is None
