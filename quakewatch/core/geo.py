"""Geographic calculations - Pure functions.

Spherical-Earth haversine distance used as the proximity metric for
cross-feed duplicate detection. Differences of a few hundred km at most
are compared here, so an ellipsoidal model is not needed.
"""

import math

from quakewatch.core.event import SeismicEvent


# Earth's radius in kilometers
EARTH_RADIUS_KM = 6371.0


def calculate_distance(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """Haversine distance in km between two points given in degrees.

    Pure function. Symmetric, and correct across the antimeridian.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    # Rounding can push a slightly above 1 for antipodal points
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def distance_between(first: SeismicEvent, second: SeismicEvent) -> float:
    """Great-circle distance between two event epicenters in km.

    Pure function.
    """
    return calculate_distance(
        first.latitude,
        first.longitude,
        second.latitude,
        second.longitude,
    )
