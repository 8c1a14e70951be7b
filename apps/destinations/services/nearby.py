"""Radius search around a point, nearest first."""

import logging
from typing import Any, Dict, Optional

from apps.core.exceptions import ValidationError
from apps.destinations.services.geo import GeoPoint
from apps.destinations.services.images import ImageUrlResolver
from apps.destinations.services.repository import DestinationRepository
from apps.destinations.services.search import GeoFilter, QueryPlan, execute_plan
from apps.destinations.services.specifications import HasAnyCategory, RatingAtLeast, all_of, published

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_KM = 50.0
MAX_RADIUS_KM = 1000.0
DEFAULT_LIMIT = 10
MAX_LIMIT = 50


class NearbySearch:
    def __init__(self, repository: DestinationRepository, images: ImageUrlResolver):
        self.repository = repository
        self.images = images

    def find(
        self,
        latitude: float,
        longitude: float,
        radius_km: float = DEFAULT_RADIUS_KM,
        limit: int = DEFAULT_LIMIT,
        category_id: Optional[int] = None,
        min_rating: Optional[float] = None,
    ) -> Dict[str, Any]:
        try:
            center = GeoPoint(latitude, longitude)
        except ValueError as exc:
            raise ValidationError.for_field("latitude" if "latitude" in str(exc) else "longitude", str(exc)) from exc
        if not 0 < radius_km <= MAX_RADIUS_KM:
            raise ValidationError.for_field("radius", f"radius must be in (0, {MAX_RADIUS_KM:g}] km")
        if not 1 <= limit <= MAX_LIMIT:
            raise ValidationError.for_field("limit", f"limit must be between 1 and {MAX_LIMIT}")

        spec = all_of([
            published(),
            HasAnyCategory((category_id,)) if category_id is not None else None,
            RatingAtLeast(min_rating) if min_rating is not None else None,
        ])
        plan = QueryPlan(spec=spec, geo=GeoFilter(center, radius_km), distance_first=True)
        page = execute_plan(self.repository, plan, offset=0, limit=limit)
        logger.debug("nearby (%.4f, %.4f) r=%.1fkm: %d found", latitude, longitude, radius_km, page.total)

        return {
            "destinations": [
                {
                    "id": record.id,
                    "name": record.name,
                    "slug": record.slug,
                    "short_description": record.short_description,
                    "main_image": self.images.main_image(record),
                    "average_rating": record.average_rating or 0,
                    "reviews_count": record.reviews_count or 0,
                    "region": record.region.as_dict() if record.region else None,
                    "latitude": record.latitude,
                    "longitude": record.longitude,
                    "distance_km": round(distance, 2),
                }
                for record, distance in page.items
            ],
            "search_center": {"latitude": latitude, "longitude": longitude, "radius_km": radius_km},
            "total_found": page.total,
        }
