#!/usr/bin/env python3
"""Advanced faceted search: filter parsing, query plans and the result composer."""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from apps.core.cache import ResultCache, make_cache_key
from apps.core.exceptions import ValidationError
from apps.destinations.dto import DestinationRecord
from apps.destinations.services.geo import GeoPoint, bounding_box, distance_from
from apps.destinations.services.images import ImageUrlResolver
from apps.destinations.services.repository import DestinationRepository
from apps.destinations.services.specifications import (
    HasAnyCategory,
    HasAnyCharacteristic,
    HasAnyTag,
    InBoundingBox,
    IsTop,
    Ordering,
    PriceBetween,
    RatingAtLeast,
    RegionIn,
    Specification,
    TextContains,
    all_of,
    published,
)

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 15
MAX_PER_PAGE = 100

SortBy = Literal["name", "rating", "price", "distance", "created_at"]
SortOrder = Literal["asc", "desc"]

ID_LIST_FIELDS = ("categorias", "caracteristicas", "regiones", "tags")


def parse_id_list(value: Any) -> List[int]:
    """Accept ``"1,2,3"`` or a list of ints; reject anything non-numeric."""
    if value is None or value == "":
        return []
    if isinstance(value, str):
        parts = [p.strip() for p in value.split(",")]
    elif isinstance(value, (list, tuple, set)):
        parts = []
        for item in value:
            parts.extend(p.strip() for p in str(item).split(","))
    else:
        raise ValueError("expected a comma-separated list of ids")

    ids = set()
    for part in parts:
        if not part:
            continue
        if not part.isdigit():
            raise ValueError(f"'{part}' is not a valid id")
        ids.add(int(part))
    return sorted(ids)


class SearchFilterSet(BaseModel):
    """Validated advanced-search parameters."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    query: Optional[str] = Field(None, max_length=100)
    categorias: List[int] = Field(default_factory=list)
    caracteristicas: List[int] = Field(default_factory=list)
    regiones: List[int] = Field(default_factory=list)
    tags: List[int] = Field(default_factory=list)
    precio_min: Optional[float] = Field(None, ge=0)
    precio_max: Optional[float] = Field(None, ge=0)
    rating_min: Optional[int] = Field(None, ge=1, le=5)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    distancia_max: Optional[float] = Field(None, ge=0, le=1000)
    is_top: Optional[bool] = None
    sort_by: SortBy = "rating"
    sort_order: SortOrder = "desc"
    page: int = Field(1, ge=1)
    per_page: int = Field(DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE)

    @field_validator(*ID_LIST_FIELDS, mode="before")
    @classmethod
    def _split_ids(cls, value: Any) -> List[int]:
        return parse_id_list(value)

    @field_validator("query", mode="before")
    @classmethod
    def _strip_query(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("precio_max")
    @classmethod
    def _check_price_range(cls, value: Optional[float], info: ValidationInfo) -> Optional[float]:
        # precio_min is declared first, so it is already in info.data when valid
        precio_min = info.data.get("precio_min")
        if value is not None and precio_min is not None and value < precio_min:
            raise ValueError("precio_max must be greater than or equal to precio_min")
        return value

    @property
    def geo_center(self) -> Optional[GeoPoint]:
        if self.lat is None or self.lng is None:
            return None
        return GeoPoint(self.lat, self.lng)

    @property
    def geo_active(self) -> bool:
        return self.geo_center is not None and self.distancia_max is not None

    def cache_params(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


def _errors_by_field(exc: PydanticValidationError) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "request"
        errors.setdefault(loc, []).append(err.get("msg", "invalid value"))
    return errors


def parse_search_filters(raw: Dict[str, Any]) -> SearchFilterSet:
    """Build a filter set from raw query values, raising the API validation error."""
    try:
        return SearchFilterSet.model_validate({k: v for k, v in raw.items() if v is not None})
    except PydanticValidationError as exc:
        raise ValidationError("Parámetros de búsqueda inválidos", errors=_errors_by_field(exc)) from exc


@dataclass(frozen=True)
class GeoFilter:
    center: GeoPoint
    radius_km: float


@dataclass
class QueryPlan:
    """What to fetch and how to order it; geo is applied on the records."""

    spec: Specification
    ordering: List[Ordering] = field(default_factory=list)
    geo: Optional[GeoFilter] = None
    distance_first: bool = False


@dataclass
class PlanPage:
    items: List[Tuple[DestinationRecord, Optional[float]]]
    total: int


def execute_plan(repository: DestinationRepository, plan: QueryPlan, offset: int, limit: int) -> PlanPage:
    """Run a plan; with geo, prefilter by bounding box and apply the exact radius in memory."""
    if plan.geo is None:
        total = repository.count(plan.spec)
        records = repository.find(plan.spec, plan.ordering, offset=offset, limit=limit)
        return PlanPage(items=[(r, None) for r in records], total=total)

    box = bounding_box(plan.geo.center, plan.geo.radius_km)
    records = repository.find(all_of([plan.spec, InBoundingBox(box)]), plan.ordering)

    hits = []
    for record in records:
        distance = distance_from(plan.geo.center, record.latitude, record.longitude)
        if distance is not None and distance <= plan.geo.radius_km:
            hits.append((record, distance))
    if plan.distance_first:
        # stable, so the requested ordering breaks distance ties
        hits.sort(key=lambda hit: hit[1])

    return PlanPage(items=hits[offset:offset + limit], total=len(hits))


def pagination_meta(page: int, per_page: int, total: int) -> Dict[str, Any]:
    offset = (page - 1) * per_page
    return {
        "current_page": page,
        "per_page": per_page,
        "total": total,
        "last_page": max(1, math.ceil(total / per_page)),
        "from": offset + 1 if total and offset < total else None,
        "to": min(offset + per_page, total) if total and offset < total else None,
    }


class AdvancedSearchComposer:
    """Translates a ``SearchFilterSet`` into predicates, ordering and a paginated payload."""

    def __init__(self, repository: DestinationRepository, images: ImageUrlResolver,
                 clock: Callable[[], float] = time.perf_counter):
        self.repository = repository
        self.images = images
        self.clock = clock

    def build_spec(self, filters: SearchFilterSet) -> Specification:
        specs: List[Optional[Specification]] = [published()]
        if filters.query:
            specs.append(TextContains(filters.query))
        if filters.categorias:
            specs.append(HasAnyCategory(tuple(filters.categorias)))
        if filters.caracteristicas:
            specs.append(HasAnyCharacteristic(tuple(filters.caracteristicas)))
        if filters.tags:
            specs.append(HasAnyTag(tuple(filters.tags)))
        if filters.regiones:
            specs.append(RegionIn(tuple(filters.regiones)))
        if filters.precio_min is not None or filters.precio_max is not None:
            specs.append(PriceBetween(filters.precio_min, filters.precio_max))
        if filters.rating_min is not None:
            specs.append(RatingAtLeast(filters.rating_min))
        if filters.is_top is not None:
            specs.append(IsTop(filters.is_top))
        return all_of(specs)

    def resolve_ordering(self, filters: SearchFilterSet) -> List[Ordering]:
        descending = filters.sort_order == "desc"
        if filters.sort_by == "distance":
            if filters.geo_active:
                return []
            # no geo filter: fall back to the default ranking
            return [Ordering("average_rating", descending=True)]
        if filters.sort_by == "rating":
            return [Ordering("average_rating", descending=descending)]
        return [Ordering(filters.sort_by, descending=descending)]

    def build_plan(self, filters: SearchFilterSet) -> QueryPlan:
        geo = GeoFilter(filters.geo_center, filters.distancia_max) if filters.geo_active else None
        return QueryPlan(
            spec=self.build_spec(filters),
            ordering=self.resolve_ordering(filters),
            geo=geo,
            distance_first=geo is not None,
        )

    def compose(self, filters: SearchFilterSet) -> Dict[str, Any]:
        started = self.clock()
        plan = self.build_plan(filters)
        offset = (filters.page - 1) * filters.per_page
        page = execute_plan(self.repository, plan, offset=offset, limit=filters.per_page)
        elapsed_ms = round((self.clock() - started) * 1000, 2)

        logger.info(
            "advanced search: %d results (page %d) in %.1fms geo=%s",
            page.total, filters.page, elapsed_ms, plan.geo is not None,
        )
        return {
            "destinos": [self._to_item(record, distance) for record, distance in page.items],
            "pagination": pagination_meta(filters.page, filters.per_page, page.total),
            "filters_applied": self.filters_applied(filters),
            "search_stats": {
                "total_results": page.total,
                "search_time_ms": elapsed_ms,
                "cache_hit": False,
            },
        }

    def filters_applied(self, filters: SearchFilterSet) -> Dict[str, Any]:
        applied: Dict[str, Any] = {}
        if filters.query:
            applied["query"] = filters.query
        for name in ID_LIST_FIELDS:
            ids = getattr(filters, name)
            if ids:
                applied[f"{name}_count"] = len(ids)
        if filters.precio_min is not None or filters.precio_max is not None:
            applied["price_range"] = {"min": filters.precio_min, "max": filters.precio_max}
        if filters.rating_min is not None:
            applied["rating_min"] = filters.rating_min
        if filters.geo_active:
            applied["distance_max"] = filters.distancia_max
        if filters.is_top is not None:
            applied["is_top"] = filters.is_top
        return applied

    def _to_item(self, record: DestinationRecord, distance: Optional[float]) -> Dict[str, Any]:
        item = {
            "id": record.id,
            "name": record.name,
            "slug": record.slug,
            "description": record.description,
            "price": record.price,
            "rating": record.average_rating or 0,
            "reviews_count": record.reviews_count or 0,
            "main_image": self.images.main_image(record),
            "region": record.region.as_dict() if record.region else None,
            "categorias": [c.as_dict() for c in record.categories],
            "caracteristicas": [c.as_dict() for c in record.characteristics],
            "is_top": record.is_top,
            "created_at": record.created_at.isoformat() if record.created_at else None,
        }
        if distance is not None:
            item["distance"] = round(distance, 2)
        return item


def cached_advanced_search(composer: AdvancedSearchComposer, cache: ResultCache,
                           filters: SearchFilterSet, ttl_seconds: int) -> Dict[str, Any]:
    """Compose through the result cache; a served copy reports ``cache_hit = true``."""
    key = make_cache_key("advanced_search", filters.cache_params())
    payload, hit = cache.remember(key, ttl_seconds, lambda: composer.compose(filters))
    if hit:
        payload["search_stats"]["cache_hit"] = True
    return payload


def create_search_composer(repository: DestinationRepository, images: ImageUrlResolver) -> AdvancedSearchComposer:
    return AdvancedSearchComposer(repository, images)
