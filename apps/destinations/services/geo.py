"""Great-circle distance helpers used by every geo-aware read path."""

import math
from dataclasses import dataclass
from typing import Optional

EARTH_RADIUS_KM = 6371.0
# about 0.1 mm; keeps points exactly on the circle inside the box under float rounding
BOX_PADDING_DEG = 1e-9


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float

    def __post_init__(self):
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")


@dataclass(frozen=True)
class BoundingBox:
    lat_min: float
    lat_max: float
    lng_min: float
    lng_max: float

    @property
    def wraps_longitude(self) -> bool:
        return self.lng_min < -180.0 or self.lng_max > 180.0


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance in kilometres."""
    rlat1, rlng1 = math.radians(lat1), math.radians(lng1)
    rlat2, rlng2 = math.radians(lat2), math.radians(lng2)
    dlat = rlat2 - rlat1
    dlng = rlng2 - rlng1
    a = math.sin(dlat / 2) ** 2 + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def distance_from(center: GeoPoint, latitude: Optional[float], longitude: Optional[float]) -> Optional[float]:
    """Distance to ``center`` or None when the candidate has no coordinates."""
    if latitude is None or longitude is None:
        return None
    return distance_km(center.latitude, center.longitude, latitude, longitude)


def within_radius(center: GeoPoint, radius_km: float, latitude: Optional[float], longitude: Optional[float]) -> bool:
    distance = distance_from(center, latitude, longitude)
    return distance is not None and distance <= radius_km


def bounding_box(center: GeoPoint, radius_km: float) -> BoundingBox:
    """Lat/lng box that fully contains the radius; a coarse SQL prefilter only.

    The longitude half-width is the meridian offset of the circle's tangent
    points, ``asin(sin d / cos lat)``, which is wider than ``d / cos lat``.
    A circle that reaches a pole spans every longitude.
    """
    angular = radius_km / EARTH_RADIUS_KM
    lat_delta = math.degrees(angular) + BOX_PADDING_DEG
    lat_min = center.latitude - lat_delta
    lat_max = center.latitude + lat_delta
    if lat_min <= -90.0 or lat_max >= 90.0 or angular >= math.pi / 2:
        return BoundingBox(
            lat_min=max(-90.0, lat_min),
            lat_max=min(90.0, lat_max),
            lng_min=-180.0,
            lng_max=180.0,
        )

    ratio = math.sin(angular) / math.cos(math.radians(center.latitude))
    lng_delta = math.degrees(math.asin(min(1.0, ratio))) + BOX_PADDING_DEG
    return BoundingBox(
        lat_min=lat_min,
        lat_max=lat_max,
        lng_min=center.longitude - lng_delta,
        lng_max=center.longitude + lng_delta,
    )
