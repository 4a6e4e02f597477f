# app/motion.py
from typing import Optional

from geo import haversine_miles, speed_mph
from schemas import Classification, LifecycleState, PositionSample
from variables import AUTO_ARRIVE_MIN_MILES, DRIVING_SPEED_MPH

from logging_config import get_logger


logger = get_logger("motion", "motion.log")


class MotionProcessor:
    """
    Classifies each GPS sample against the one before it as driving or
    stationary and keeps a running tally of miles driven.

    A stop after more than AUTO_ARRIVE_MIN_MILES of driving, while the job is
    still heading, is reported as an auto-arrival. The lifecycle state is
    passed in on every call; the processor never looks at the tracker itself.
    """

    def __init__(self):
        self.last_position: Optional[PositionSample] = None
        self.accumulated_miles = 0.0

    def reset(self) -> None:
        self.last_position = None
        self.accumulated_miles = 0.0

    def reset_distance(self) -> None:
        self.accumulated_miles = 0.0

    def process(self, sample: PositionSample, state: LifecycleState) -> Optional[Classification]:
        # baseline: nothing to compare against yet
        if self.last_position is None:
            self.last_position = sample
            logger.debug(f"[motion] Baseline sample at {sample.timestamp}")
            return None

        last = self.last_position
        distance = haversine_miles(last.latitude, last.longitude, sample.latitude, sample.longitude)
        elapsed_s = (sample.timestamp - last.timestamp) / 1000
        mph = speed_mph(distance, elapsed_s, sample.speed)

        auto_arrive = False

        if mph > DRIVING_SPEED_MPH:
            self.accumulated_miles += distance
            status = f"Driving: {mph:.0f} mph ({self.accumulated_miles:.2f} mi)"
        else:
            if state == LifecycleState.HEADING and self.accumulated_miles > AUTO_ARRIVE_MIN_MILES:
                auto_arrive = True
                status = "Stopped - Auto-arrived at site"
                logger.info(
                    f"[motion] Stopped after {self.accumulated_miles:.2f} mi of driving -> auto-arrival"
                )
            else:
                status = f"Not moving ({mph:.0f} mph)"
            self.accumulated_miles = 0.0

        self.last_position = sample

        return Classification(
            is_driving=mph > DRIVING_SPEED_MPH,
            speed_mph=mph,
            accumulated_miles=self.accumulated_miles,
            distance_miles=distance,
            auto_arrive=auto_arrive,
            status=status,
        )
