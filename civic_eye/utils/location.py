import math
from typing import Optional, Tuple

import pygeohash

from civic_eye.core.exceptions import ValidationError


GEOHASH_PRECISION = 9


def encode_geohash(latitude: float, longitude: float, precision: int = GEOHASH_PRECISION) -> str:
    return pygeohash.encode(latitude, longitude, precision=precision)


def _parse_coordinate(name: str, value) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value == "":
            return None
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number")
    if math.isnan(parsed) or math.isinf(parsed):
        raise ValidationError(f"{name} must be a finite number")
    return parsed


def parse_coordinates(latitude, longitude) -> Tuple[Optional[float], Optional[float], str]:
    """
    Parse optional form coordinates.

    Returns (latitude, longitude, geohash). Coordinates are all-or-nothing:
    both absent gives (None, None, "").
    """
    lat = _parse_coordinate("latitude", latitude)
    lng = _parse_coordinate("longitude", longitude)

    if lat is None and lng is None:
        return None, None, ""
    if lat is None or lng is None:
        raise ValidationError("latitude and longitude must be provided together")
    if not -90.0 <= lat <= 90.0:
        raise ValidationError("latitude must be between -90 and 90")
    if not -180.0 <= lng <= 180.0:
        raise ValidationError("longitude must be between -180 and 180")

    return lat, lng, encode_geohash(lat, lng)
