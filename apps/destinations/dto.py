"""
Read projections of destinations.

Services work with these immutable DTOs instead of ORM rows, so the same
ranking/search code runs against the SQL repository and the in-memory one.
"""

from datetime import datetime
from typing import FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from apps.destinations.models import Destination, DestinationStatus


class EntityRef(BaseModel):
    """Region / category / characteristic / tag reference."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    slug: Optional[str] = None

    def as_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class ImageRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    is_main: bool = False
    order: int = 0


class DestinationRecord(BaseModel):
    """Everything the public read paths need about one destination."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    slug: str
    status: str = DestinationStatus.PUBLISHED.value
    short_description: Optional[str] = None
    description: Optional[str] = None

    region: Optional[EntityRef] = None
    categories: List[EntityRef] = Field(default_factory=list)
    characteristics: List[EntityRef] = Field(default_factory=list)
    tags: List[EntityRef] = Field(default_factory=list)
    images: List[ImageRef] = Field(default_factory=list)

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    average_rating: Optional[float] = 0.0
    reviews_count: Optional[int] = 0
    price: Optional[float] = None
    is_top: bool = False
    is_featured: bool = False
    created_at: datetime

    @property
    def region_id(self) -> Optional[int]:
        return self.region.id if self.region else None

    @property
    def category_ids(self) -> FrozenSet[int]:
        return frozenset(c.id for c in self.categories)

    @property
    def characteristic_ids(self) -> FrozenSet[int]:
        return frozenset(c.id for c in self.characteristics)

    @property
    def tag_ids(self) -> FrozenSet[int]:
        return frozenset(t.id for t in self.tags)

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def is_published(self) -> bool:
        return self.status == DestinationStatus.PUBLISHED.value

    @classmethod
    def from_model(cls, destination: Destination) -> "DestinationRecord":
        """Build the projection from an ORM row with its relationships loaded."""
        region = destination.region
        return cls(
            id=destination.id,
            name=destination.name,
            slug=destination.slug,
            status=destination.status,
            short_description=destination.short_description,
            description=destination.description,
            region=EntityRef(id=region.id, name=region.name, slug=region.slug) if region else None,
            categories=[EntityRef(id=c.id, name=c.name, slug=c.slug) for c in destination.categories],
            characteristics=[
                EntityRef(id=c.id, name=c.name, slug=c.slug) for c in destination.characteristics
            ],
            tags=[EntityRef(id=t.id, name=t.name, slug=t.slug) for t in destination.tags],
            images=[ImageRef(url=i.url, is_main=bool(i.is_main), order=i.order or 0) for i in destination.images],
            latitude=destination.latitude,
            longitude=destination.longitude,
            average_rating=destination.average_rating,
            reviews_count=destination.reviews_count,
            price=float(destination.price) if destination.price is not None else None,
            is_top=bool(destination.is_top),
            is_featured=bool(destination.is_featured),
            created_at=destination.created_at,
        )


class FacetCount(BaseModel):
    """An entity with the number of published destinations attached to it."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    slug: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    count: int = 0
