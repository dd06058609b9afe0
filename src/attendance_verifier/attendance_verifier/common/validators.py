from __future__ import annotations

import math

from ..core.exceptions import InputError


def require_float(value, field_name: str) -> float:
    if isinstance(value, bool):
        raise InputError(f"{field_name} is not a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InputError(f"{field_name} is not a number: {value!r}")
    if not math.isfinite(number):
        raise InputError(f"{field_name} is not finite: {value!r}")
    return number


def require_coordinate(latitude, longitude) -> tuple[float, float]:
    """Validate a raw latitude/longitude pair coming from the outside world."""
    lat = require_float(latitude, "latitude")
    lon = require_float(longitude, "longitude")
    if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lon <= 180.0):
        raise InputError(f"Coordinates out of range: ({lat}, {lon})")
    return lat, lon
