"""GPS extraction from photo metadata.

Extraction is an ordered chain of strategies. Each strategy looks at one
tag mapping and either yields a coordinate or nothing; the first strategy
(tried against every metadata source in turn) that yields both a latitude
and a longitude wins. Nothing is ever guessed: no yield means the photo
carries no location.
"""

from __future__ import annotations

import io
import logging
import math
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from PIL import ExifTags, Image, UnidentifiedImageError

from ..core.exceptions import InputError
from ..geo.distance import Coordinate, is_valid_coordinate

logger = logging.getLogger(__name__)

GpsStrategy = Callable[[Mapping[str, Any]], Optional[Coordinate]]

_NEGATIVE_REFS = {"S", "SOUTH", "W", "WEST"}


def read_photo_tags(image_bytes: bytes) -> Dict[str, Any]:
    """Read base, Exif-IFD and GPS-IFD tags from an image, keyed by tag name."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            exif = img.getexif()
            tags: Dict[str, Any] = {ExifTags.TAGS.get(k, k): v for k, v in exif.items()}
            tags.update({ExifTags.TAGS.get(k, k): v for k, v in exif.get_ifd(ExifTags.IFD.Exif).items()})
            tags.update({ExifTags.GPSTAGS.get(k, k): v for k, v in exif.get_ifd(ExifTags.IFD.GPSInfo).items()})
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise InputError(f"Could not read photo: {e}") from e
    return tags


def _as_float(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    return number if math.isfinite(number) else None


def _to_degrees(value: Any) -> Optional[float]:
    """Degrees from a decimal number or a (degrees, minutes, seconds) sequence."""
    if isinstance(value, (list, tuple)):
        if not 1 <= len(value) <= 3:
            return None
        parts = [_as_float(v) for v in value]
        if any(p is None for p in parts):
            return None
        parts += [0.0] * (3 - len(parts))
        return parts[0] + parts[1] / 60.0 + parts[2] / 3600.0
    return _as_float(value)


def _apply_ref(magnitude: float, ref: Any) -> float:
    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    if ref is not None and str(ref).strip("\x00 ").upper() in _NEGATIVE_REFS:
        return -abs(magnitude)
    return magnitude


def _checked(latitude: Optional[float], longitude: Optional[float]) -> Optional[Coordinate]:
    if latitude is None or longitude is None:
        return None
    if not is_valid_coordinate(latitude, longitude):
        logger.warning("Ignoring out-of-range photo coordinates (%s, %s)", latitude, longitude)
        return None
    return Coordinate(latitude=latitude, longitude=longitude)


def decimal_coordinates(tags: Mapping[str, Any]) -> Optional[Coordinate]:
    """Signed decimal ``latitude``/``longitude`` as written by metadata pre-processors."""
    lat = _as_float(tags.get("latitude"))
    lon = _as_float(tags.get("longitude"))
    if lat is None or lon is None:
        return None
    return _checked(_apply_ref(lat, tags.get("GPSLatitudeRef")), _apply_ref(lon, tags.get("GPSLongitudeRef")))


def dms_coordinates(tags: Mapping[str, Any]) -> Optional[Coordinate]:
    """Raw EXIF ``GPSLatitude``/``GPSLongitude`` with hemisphere references."""
    lat = _to_degrees(tags.get("GPSLatitude"))
    lon = _to_degrees(tags.get("GPSLongitude"))
    if lat is None or lon is None:
        return None
    return _checked(_apply_ref(lat, tags.get("GPSLatitudeRef")), _apply_ref(lon, tags.get("GPSLongitudeRef")))


GPS_STRATEGIES: Sequence[GpsStrategy] = (decimal_coordinates, dms_coordinates)


def extract_coordinate(
    sources: Sequence[Mapping[str, Any]],
    strategies: Sequence[GpsStrategy] = GPS_STRATEGIES,
) -> Optional[Coordinate]:
    for strategy in strategies:
        for tags in sources:
            if not tags:
                continue
            coordinate = strategy(tags)
            if coordinate is not None:
                logger.debug("GPS found by %s", strategy.__name__)
                return coordinate
    return None


def capture_time(sources: Sequence[Mapping[str, Any]]) -> Optional[datetime]:
    """Camera wall-clock time (``DateTimeOriginal``, else ``DateTime``), naive."""
    for tags in sources:
        for key in ("DateTimeOriginal", "DateTime"):
            raw = tags.get(key) if tags else None
            if not raw:
                continue
            if isinstance(raw, datetime):
                return raw
            try:
                return datetime.strptime(str(raw).strip("\x00 "), "%Y:%m:%d %H:%M:%S")
            except ValueError:
                continue
    return None
