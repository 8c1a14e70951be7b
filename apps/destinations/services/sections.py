"""Home page aggregation and the declarative visual sections."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from apps.core.config_cache import load_yaml_cached
from apps.core.exceptions import NotFoundError, ValidationError
from apps.destinations.services.catalog import destination_card
from apps.destinations.services.geo import GeoPoint, distance_from
from apps.destinations.services.images import ImageUrlResolver
from apps.destinations.services.repository import DestinationRepository
from apps.destinations.services.specifications import (
    AnyOf,
    CategoryNameContains,
    CharacteristicNameContains,
    IsFeatured,
    IsTop,
    Ordering,
    Specification,
    all_of,
    published,
)

logger = logging.getLogger(__name__)

SECTION_SORTS = {
    "rating": [Ordering("average_rating", descending=True), Ordering("reviews_count", descending=True)],
    "popularidad": [Ordering("reviews_count", descending=True), Ordering("average_rating", descending=True)],
    "nuevos": [Ordering("created_at", descending=True)],
}
SECTION_PREVIEW_SIZE = 4
HOME_DESTINATIONS = 8
HOME_REGIONS = 6
HOME_TAGS = 8
HERO_DESTINATIONS = 6


@dataclass(frozen=True)
class SectionDefinition:
    slug: str
    title: str
    subtitle: str
    match: str
    names: Tuple[str, ...]

    def __post_init__(self):
        if self.match not in ("category", "characteristic"):
            raise ValueError(f"section {self.slug}: match must be 'category' or 'characteristic'")
        if not self.names:
            raise ValueError(f"section {self.slug}: names must not be empty")

    def to_spec(self) -> Specification:
        contains = CategoryNameContains if self.match == "category" else CharacteristicNameContains
        return all_of([published(), AnyOf(tuple(contains(name) for name in self.names))])

    def header(self) -> Dict[str, Any]:
        return {"slug": self.slug, "title": self.title, "subtitle": self.subtitle}


def load_sections(path: Optional[str] = None) -> List[SectionDefinition]:
    """Section definitions from the YAML catalog."""
    if path is None:
        from apps.core.config import settings
        path = settings.sections_config_path

    payload = load_yaml_cached(path, default={"sections": []})
    sections = []
    for raw in payload.get("sections") or []:
        sections.append(SectionDefinition(
            slug=raw["slug"],
            title=raw.get("title", raw["slug"]),
            subtitle=raw.get("subtitle", ""),
            match=raw.get("match", "characteristic"),
            names=tuple(raw.get("names") or ()),
        ))
    if not sections:
        logger.warning("No sections configured in %s", path)
    return sections


class HomeService:
    def __init__(self, repository: DestinationRepository, images: ImageUrlResolver,
                 sections: Optional[List[SectionDefinition]] = None,
                 hero_copy: Optional[Dict[str, str]] = None):
        self.repository = repository
        self.images = images
        self._sections = sections
        self.hero_copy = dict(hero_copy or {})

    @property
    def sections(self) -> List[SectionDefinition]:
        if self._sections is None:
            self._sections = load_sections()
        return self._sections

    def home(self) -> Dict[str, Any]:
        top = self.repository.find(
            all_of([published(), IsTop(True)]),
            [Ordering("average_rating", descending=True)],
            limit=HOME_DESTINATIONS,
        )
        recommended = self.repository.find(
            published(), [Ordering("average_rating", descending=True)], limit=HOME_DESTINATIONS
        )
        regions = sorted(self.repository.facet_counts("regions"), key=lambda r: r.id, reverse=True)
        tags = sorted(self.repository.facet_counts("tags"), key=lambda t: t.count, reverse=True)
        return {
            "top_destinos": [destination_card(r, self.images) for r in top],
            "recomendaciones": [destination_card(r, self.images) for r in recommended],
            "regiones_destacadas": [
                {"id": r.id, "name": r.name, "slug": r.slug, "destinos_count": r.count}
                for r in regions[:HOME_REGIONS]
            ],
            "tags_populares": [
                {"id": t.id, "name": t.name, "slug": t.slug, "color": t.color, "destinos_count": t.count}
                for t in tags[:HOME_TAGS]
            ],
        }

    def hero(self) -> Dict[str, Any]:
        """Hero banner copy plus the newest featured destinations."""
        featured = self.repository.find(
            all_of([published(), IsFeatured(True)]),
            [Ordering("created_at", descending=True)],
            limit=HERO_DESTINATIONS,
        )
        return {
            "hero": self.hero_copy,
            "featured_destinations": [destination_card(r, self.images) for r in featured],
        }

    def get_section(self, slug: str) -> SectionDefinition:
        for section in self.sections:
            if section.slug == slug:
                return section
        raise NotFoundError(f"Sección '{slug}' no encontrada")

    def sections_index(self) -> List[Dict[str, Any]]:
        index = []
        for section in self.sections:
            spec = section.to_spec()
            preview = self.repository.find(spec, SECTION_SORTS["rating"], limit=SECTION_PREVIEW_SIZE)
            entry = section.header()
            entry["destinations_count"] = self.repository.count(spec)
            entry["destinations"] = [destination_card(r, self.images) for r in preview]
            index.append(entry)
        return index

    def section_listing(
        self,
        slug: str,
        limit: int = 12,
        offset: int = 0,
        sort_by: str = "rating",
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> Dict[str, Any]:
        if not 1 <= limit <= 50:
            raise ValidationError.for_field("limit", "limit must be between 1 and 50")
        if offset < 0:
            raise ValidationError.for_field("offset", "offset must be zero or positive")

        section = self.get_section(slug)
        spec = section.to_spec()
        center = GeoPoint(latitude, longitude) if latitude is not None and longitude is not None else None

        if sort_by == "distancia" and center is not None:
            records = self.repository.find(spec, SECTION_SORTS["rating"])
            with_distance = [(r, distance_from(center, r.latitude, r.longitude)) for r in records]
            # no coordinates: after every located destination
            with_distance.sort(key=lambda item: (item[1] is None, item[1] or 0.0))
            total = len(with_distance)
            page = with_distance[offset:offset + limit]
        else:
            ordering = SECTION_SORTS.get(sort_by, SECTION_SORTS["rating"])
            total = self.repository.count(spec)
            records = self.repository.find(spec, ordering, offset=offset, limit=limit)
            page = [
                (r, distance_from(center, r.latitude, r.longitude) if center else None) for r in records
            ]

        return {
            "section": section.header(),
            "destinations": [destination_card(r, self.images, d) for r, d in page],
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "has_more": offset + limit < total,
            },
        }


def create_home_service(repository: DestinationRepository, images: ImageUrlResolver) -> HomeService:
    from apps.core.config import settings

    hero_copy = {
        "title": settings.hero_title,
        "subtitle": settings.hero_subtitle,
        "search_placeholder": settings.hero_search_placeholder,
    }
    return HomeService(repository, images, hero_copy=hero_copy)
