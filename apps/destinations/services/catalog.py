"""Public catalog reads: autocomplete, filter facets, listings and detail."""

import logging
from typing import Any, Dict, List, Optional, Sequence

from apps.core.exceptions import NotFoundError, ValidationError
from apps.destinations.dto import DestinationRecord
from apps.destinations.services.geo import GeoPoint
from apps.destinations.services.images import ImageUrlResolver
from apps.destinations.services.repository import DestinationRepository
from apps.destinations.services.search import GeoFilter, QueryPlan, execute_plan, pagination_meta
from apps.destinations.services.specifications import (
    AnyOf,
    CategoryNameContains,
    HasAnyCategory,
    HasAnyCharacteristic,
    HasAnyTag,
    IsTop,
    NamePrefix,
    Ordering,
    RegionIn,
    RegionNameContains,
    TagNameContains,
    TextContains,
    all_of,
    published,
)

logger = logging.getLogger(__name__)

AUTOCOMPLETE_LIMIT = 10
AUTOCOMPLETE_MIN_LENGTH = 2
TOP_MAX_LIMIT = 50
LISTING_DEFAULT_RADIUS_KM = 50.0

PRICE_RANGES = [
    {"value": "gratis", "label": "Gratis", "count": 0},
    {"value": "economico", "label": "Económico", "count": 0},
    {"value": "moderado", "label": "Moderado", "count": 0},
    {"value": "premium", "label": "Premium", "count": 0},
]

LISTING_ORDERS = {
    "popularidad": [Ordering("reviews_count", descending=True), Ordering("average_rating", descending=True)],
    "rating": [Ordering("average_rating", descending=True)],
    "latest": [Ordering("created_at", descending=True)],
}


def destination_card(record: DestinationRecord, images: ImageUrlResolver,
                     distance_km: Optional[float] = None) -> Dict[str, Any]:
    """Compact card shared by listings, home and sections."""
    card = {
        "id": record.id,
        "titulo": record.name,
        "slug": record.slug,
        "region": record.region.name if record.region else None,
        "imagen_principal": images.main_image(record),
        "rating": record.average_rating or 0,
        "reviews_count": record.reviews_count or 0,
        "descripcion_corta": record.short_description,
        "is_top": record.is_top,
        "tags": [t.as_dict() for t in record.tags],
        "caracteristicas": [c.as_dict() for c in record.characteristics],
        "lat": record.latitude,
        "lng": record.longitude,
    }
    if distance_km is not None:
        card["distancia_km"] = round(distance_km, 2)
    return card


class DirectoryCatalog:
    def __init__(self, repository: DestinationRepository, images: ImageUrlResolver):
        self.repository = repository
        self.images = images

    def autocomplete(self, term: str) -> List[Dict[str, Any]]:
        """Name-prefix matches first, then name substring, then any other field; newest first within a tier."""
        term = (term or "").strip()
        if len(term) < AUTOCOMPLETE_MIN_LENGTH:
            raise ValidationError.for_field("q", f"q must have at least {AUTOCOMPLETE_MIN_LENGTH} characters")

        tiers = [
            NamePrefix(term),
            TextContains(term, fields=("name",)),
            AnyOf((
                TextContains(term, fields=("slug", "short_description")),
                TagNameContains(term),
                RegionNameContains(term),
                CategoryNameContains(term),
            )),
        ]
        newest = [Ordering("created_at", descending=True)]
        seen = set()
        matches: List[DestinationRecord] = []
        for tier in tiers:
            if len(matches) >= AUTOCOMPLETE_LIMIT:
                break
            fetched = self.repository.find(
                all_of([published(), tier]), newest, limit=AUTOCOMPLETE_LIMIT + len(seen)
            )
            for record in fetched:
                if record.id in seen:
                    continue
                seen.add(record.id)
                matches.append(record)
        logger.debug("Autocomplete %r -> %d suggestions", term, min(len(matches), AUTOCOMPLETE_LIMIT))
        return [
            {
                "id": r.id,
                "titulo": r.name,
                "slug": r.slug,
                "region": r.region.name if r.region else None,
                "categoria": r.categories[0].name if r.categories else None,
                "imagen_principal": self.images.main_image(r, allow_first=True),
            }
            for r in matches[:AUTOCOMPLETE_LIMIT]
        ]

    def filters(self) -> Dict[str, Any]:
        def facet(name: str, extra: Sequence[str] = ()) -> List[Dict[str, Any]]:
            rows = []
            for item in self.repository.facet_counts(name):
                if item.count <= 0:
                    continue
                row = {"id": item.id, "name": item.name, "slug": item.slug, "count": item.count}
                for key in extra:
                    row[key] = getattr(item, key)
                rows.append(row)
            return rows

        return {
            "categorias": facet("categories", ("icon",)),
            "caracteristicas": facet("characteristics", ("icon",)),
            "regiones": facet("regions"),
            "tags": facet("tags", ("color",)),
            "price_ranges": [dict(r) for r in PRICE_RANGES],
        }

    def top(self, limit: int = 10) -> List[Dict[str, Any]]:
        limit = max(1, min(limit, TOP_MAX_LIMIT))
        records = self.repository.find(
            all_of([published(), IsTop(True)]), [Ordering("created_at", descending=True)], limit=limit
        )
        return [destination_card(r, self.images) for r in records]

    def listing(
        self,
        region_id: Optional[int] = None,
        category_id: Optional[int] = None,
        caracteristicas: Sequence[int] = (),
        tags: Sequence[int] = (),
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        radius_km: float = LISTING_DEFAULT_RADIUS_KM,
        orden: Optional[str] = None,
        page: int = 1,
        per_page: int = 12,
    ) -> Dict[str, Any]:
        spec = all_of([
            published(),
            RegionIn((region_id,)) if region_id is not None else None,
            HasAnyCategory((category_id,)) if category_id is not None else None,
            HasAnyCharacteristic(tuple(caracteristicas)) if caracteristicas else None,
            HasAnyTag(tuple(tags)) if tags else None,
        ])

        geo = None
        if latitude is not None and longitude is not None:
            geo = GeoFilter(GeoPoint(latitude, longitude), radius_km)

        if orden == "distancia" and geo is not None:
            ordering = []
        else:
            ordering = LISTING_ORDERS.get(orden or "latest", LISTING_ORDERS["latest"])

        plan = QueryPlan(spec=spec, ordering=ordering, geo=geo, distance_first=orden == "distancia")
        result = execute_plan(self.repository, plan, offset=(page - 1) * per_page, limit=per_page)
        return {
            "destinos": [destination_card(r, self.images, d) for r, d in result.items],
            "pagination": pagination_meta(page, per_page, result.total),
        }

    def detail(self, slug: str) -> Dict[str, Any]:
        record = self.repository.get_by_slug(slug)
        if record is None or not record.is_published:
            raise NotFoundError("Destino no encontrado")

        payload = destination_card(record, self.images)
        payload.update({
            "descripcion": record.description,
            "precio": record.price,
            "region": record.region.as_dict() if record.region else None,
            "categorias": [c.as_dict() for c in record.categories],
            "imagenes": [
                {"url": self.images.absolute(i.url), "is_main": i.is_main, "order": i.order}
                for i in sorted(record.images, key=lambda i: i.order)
            ],
            "created_at": record.created_at.isoformat() if record.created_at else None,
        })
        return payload


def create_catalog(repository: DestinationRepository, images: ImageUrlResolver) -> DirectoryCatalog:
    return DirectoryCatalog(repository, images)
