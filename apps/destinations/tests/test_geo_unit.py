import math

import pytest

from apps.destinations.services.geo import (
    EARTH_RADIUS_KM,
    GeoPoint,
    bounding_box,
    distance_from,
    distance_km,
    within_radius,
)
from apps.destinations.services.specifications import InBoundingBox
from apps.destinations.tests.factories import make_record

MEXICO_CITY = (19.4326, -99.1332)
PACHUCA = (20.1011, -98.7591)


def _point_at(center, radius_km, bearing_deg):
    """Point reached by travelling radius_km from center on the given bearing."""
    lat1, lng1 = math.radians(center.latitude), math.radians(center.longitude)
    angular = radius_km / EARTH_RADIUS_KM
    bearing = math.radians(bearing_deg)
    lat2 = math.asin(math.sin(lat1) * math.cos(angular) + math.cos(lat1) * math.sin(angular) * math.cos(bearing))
    lng2 = lng1 + math.atan2(
        math.sin(bearing) * math.sin(angular) * math.cos(lat1),
        math.cos(angular) - math.sin(lat1) * math.sin(lat2),
    )
    lng = (math.degrees(lng2) + 540.0) % 360.0 - 180.0
    return math.degrees(lat2), lng


def test_distance_to_itself_is_zero():
    assert distance_km(*MEXICO_CITY, *MEXICO_CITY) == 0.0


def test_distance_is_symmetric():
    assert distance_km(*MEXICO_CITY, *PACHUCA) == pytest.approx(distance_km(*PACHUCA, *MEXICO_CITY))


def test_mexico_city_to_pachuca():
    # haversine with R=6371 km for these coordinates
    assert distance_km(*MEXICO_CITY, *PACHUCA) == pytest.approx(84.0, abs=1.0)


def test_quarter_meridian():
    assert distance_km(0, 0, 90, 0) == pytest.approx(math.pi * 6371 / 2)


def test_within_radius_excludes_missing_coordinates():
    center = GeoPoint(*PACHUCA)
    assert within_radius(center, 100, 20.1397, -98.6731)
    assert not within_radius(center, 5, 20.1397, -98.6731)
    assert not within_radius(center, 20000, None, -98.6731)
    assert not within_radius(center, 20000, 20.1397, None)
    assert distance_from(center, None, None) is None


def test_bounding_box_contains_radius():
    center = GeoPoint(*PACHUCA)
    box = bounding_box(center, 10)
    north = center.latitude + 9.9 / 111.195
    assert box.lat_min < center.latitude < box.lat_max
    assert box.lat_min <= north <= box.lat_max
    assert box.lng_min < center.longitude < box.lng_max
    assert not box.wraps_longitude


def test_bounding_box_near_antimeridian_wraps():
    box = bounding_box(GeoPoint(0.0, 179.9), 50)
    assert box.wraps_longitude


@pytest.mark.parametrize("lat,lng", [(91, 0), (-91, 0), (0, 181), (0, -181)])
def test_geo_point_rejects_out_of_range(lat, lng):
    with pytest.raises(ValueError):
        GeoPoint(lat, lng)


@pytest.mark.parametrize("center,radius_km", [
    (GeoPoint(20.0, -99.0), 1000),
    (GeoPoint(60.0, 0.0), 1000),
    (GeoPoint(-60.0, 120.0), 500),
    (GeoPoint(89.0, 0.0), 200),
    (GeoPoint(0.0, 179.9), 50),
])
def test_bounding_box_keeps_every_point_of_the_circle(center, radius_km):
    prefilter = InBoundingBox(bounding_box(center, radius_km))
    for bearing in range(0, 360, 5):
        lat, lng = _point_at(center, radius_km, bearing)
        assert distance_km(center.latitude, center.longitude, lat, lng) == pytest.approx(radius_km)
        assert prefilter.matches(make_record(1, latitude=lat, longitude=lng)), bearing


def test_bounding_box_reaches_tangent_longitude():
    center = GeoPoint(20.0, -99.0)
    box = bounding_box(center, 1000)
    angular = 1000 / EARTH_RADIUS_KM
    lat1 = math.radians(center.latitude)
    # easternmost point of the circle
    tangent_lat = math.degrees(math.asin(math.sin(lat1) / math.cos(angular)))
    tangent_lng = center.longitude + math.degrees(math.asin(math.sin(angular) / math.cos(lat1)))

    assert distance_km(center.latitude, center.longitude, tangent_lat, tangent_lng) == pytest.approx(1000)
    assert box.lng_min <= tangent_lng <= box.lng_max
    # wider than the small-angle estimate d / cos(lat)
    assert box.lng_max - center.longitude > math.degrees(angular / math.cos(lat1))


def test_bounding_box_around_a_pole_spans_all_longitudes():
    box = bounding_box(GeoPoint(89.0, 0.0), 200)

    assert box.lat_max == 90.0
    assert (box.lng_min, box.lng_max) == (-180.0, 180.0)
    assert InBoundingBox(box).matches(make_record(1, latitude=89.5, longitude=180.0))
