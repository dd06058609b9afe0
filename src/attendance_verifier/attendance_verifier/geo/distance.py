"""Great-circle distance between coordinates.

Distances are computed with the haversine formula on a spherical Earth
using the mean radius, which is accurate to well under a meter at the
scale of a training-center geofence.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from ..core.constants import COORDINATE_DECIMALS, EARTH_MEAN_RADIUS_M


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def normalized(self) -> "Coordinate":
        """Round to 6 decimals (~0.1 m) so every input path yields the same point."""
        return Coordinate(
            latitude=round(float(self.latitude), COORDINATE_DECIMALS),
            longitude=round(float(self.longitude), COORDINATE_DECIMALS),
        )

    def is_valid(self) -> bool:
        return is_valid_coordinate(self.latitude, self.longitude)


def is_valid_coordinate(latitude: float, longitude: float) -> bool:
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError):
        return False
    if math.isnan(lat) or math.isnan(lon):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def distance(a: Coordinate, b: Coordinate) -> float:
    """Calculate the great-circle distance between two points in meters.

    Args:
        a: First point in decimal degrees
        b: Second point in decimal degrees

    Returns:
        Distance in meters, never negative. Callers validate ranges first;
        out-of-range input is not rejected here.

    Example:
        >>> round(distance(Coordinate(28.6139, 77.2090), Coordinate(28.6150, 77.2100)))
        156
    """
    lat1 = math.radians(a.latitude)
    lon1 = math.radians(a.longitude)
    lat2 = math.radians(b.latitude)
    lon2 = math.radians(b.longitude)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Clamp: rounding can push h a hair above 1 for antipodal points.
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_MEAN_RADIUS_M * math.asin(math.sqrt(h))
