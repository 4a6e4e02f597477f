import math
from typing import Optional

from variables import EARTH_RADIUS_MILES, MPS_TO_MPH


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance in miles between two lat/lon points (degrees).
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    # rounding can push a a hair past 1 for antipodal points
    a = min(max(a, 0.0), 1.0)
    return 2 * EARTH_RADIUS_MILES * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def speed_mph(distance_miles: float, elapsed_s: float, device_speed_mps: Optional[float] = None) -> float:
    """
    Device-reported speed wins when present; otherwise derive it from the
    distance covered. Zero or negative elapsed time reads as not moving.
    """
    if device_speed_mps is not None:
        return device_speed_mps * MPS_TO_MPH
    if elapsed_s <= 0:
        return 0.0
    return distance_miles / elapsed_s * 3600
