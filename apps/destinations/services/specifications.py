"""
Composable destination predicates.

Each predicate compiles to a SQLAlchemy clause (``to_clause``) for the SQL
repository and evaluates a ``DestinationRecord`` directly (``matches``) for the
in-memory one. Search services fold them with ``AllOf`` / ``AnyOf`` instead of
mutating a query builder.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import and_, false, or_, true

from apps.destinations.dto import DestinationRecord
from apps.destinations.models import (
    Category,
    Characteristic,
    Destination,
    DestinationStatus,
    Region,
    Tag,
)
from apps.destinations.services.geo import BoundingBox

TEXT_FIELDS = ("name", "description", "short_description")


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _icontains(column, term: str):
    return column.ilike(f"%{_escape_like(term)}%", escape="\\")


def _text_has(value: Optional[str], term: str) -> bool:
    return bool(value) and term.lower() in value.lower()


class Specification:
    """A predicate over destinations."""

    def to_clause(self):
        raise NotImplementedError

    def matches(self, record: DestinationRecord) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class AllOf(Specification):
    parts: Tuple[Specification, ...]

    def to_clause(self):
        if not self.parts:
            return true()
        return and_(*[p.to_clause() for p in self.parts])

    def matches(self, record: DestinationRecord) -> bool:
        return all(p.matches(record) for p in self.parts)


@dataclass(frozen=True)
class AnyOf(Specification):
    parts: Tuple[Specification, ...]

    def to_clause(self):
        if not self.parts:
            return false()
        return or_(*[p.to_clause() for p in self.parts])

    def matches(self, record: DestinationRecord) -> bool:
        return any(p.matches(record) for p in self.parts)


def all_of(specs: Iterable[Optional[Specification]]) -> Specification:
    """Fold the non-None predicates with AND."""
    parts = tuple(s for s in specs if s is not None)
    if len(parts) == 1:
        return parts[0]
    return AllOf(parts)


@dataclass(frozen=True)
class StatusIs(Specification):
    status: str

    def to_clause(self):
        return Destination.status == self.status

    def matches(self, record: DestinationRecord) -> bool:
        return record.status == self.status


def published() -> StatusIs:
    return StatusIs(DestinationStatus.PUBLISHED.value)


@dataclass(frozen=True)
class IdNot(Specification):
    destination_id: int

    def to_clause(self):
        return Destination.id != self.destination_id

    def matches(self, record: DestinationRecord) -> bool:
        return record.id != self.destination_id


@dataclass(frozen=True)
class TextContains(Specification):
    """Case-insensitive substring on any of the given text columns."""

    term: str
    fields: Tuple[str, ...] = TEXT_FIELDS

    def to_clause(self):
        return or_(*[_icontains(getattr(Destination, f), self.term) for f in self.fields])

    def matches(self, record: DestinationRecord) -> bool:
        return any(_text_has(getattr(record, f), self.term) for f in self.fields)


@dataclass(frozen=True)
class NamePrefix(Specification):
    term: str

    def to_clause(self):
        return Destination.name.ilike(f"{_escape_like(self.term)}%", escape="\\")

    def matches(self, record: DestinationRecord) -> bool:
        return record.name.lower().startswith(self.term.lower())


@dataclass(frozen=True)
class HasAnyCategory(Specification):
    ids: Tuple[int, ...]

    def to_clause(self):
        return Destination.categories.any(Category.id.in_(self.ids))

    def matches(self, record: DestinationRecord) -> bool:
        return bool(record.category_ids.intersection(self.ids))


@dataclass(frozen=True)
class HasAnyCharacteristic(Specification):
    ids: Tuple[int, ...]

    def to_clause(self):
        return Destination.characteristics.any(Characteristic.id.in_(self.ids))

    def matches(self, record: DestinationRecord) -> bool:
        return bool(record.characteristic_ids.intersection(self.ids))


@dataclass(frozen=True)
class HasAnyTag(Specification):
    ids: Tuple[int, ...]

    def to_clause(self):
        return Destination.tags.any(Tag.id.in_(self.ids))

    def matches(self, record: DestinationRecord) -> bool:
        return bool(record.tag_ids.intersection(self.ids))


@dataclass(frozen=True)
class RegionIn(Specification):
    ids: Tuple[int, ...]

    def to_clause(self):
        return Destination.region_id.in_(self.ids)

    def matches(self, record: DestinationRecord) -> bool:
        return record.region_id is not None and record.region_id in self.ids


@dataclass(frozen=True)
class CategoryNameContains(Specification):
    term: str

    def to_clause(self):
        return Destination.categories.any(_icontains(Category.name, self.term))

    def matches(self, record: DestinationRecord) -> bool:
        return any(_text_has(c.name, self.term) for c in record.categories)


@dataclass(frozen=True)
class CharacteristicNameContains(Specification):
    term: str

    def to_clause(self):
        return Destination.characteristics.any(_icontains(Characteristic.name, self.term))

    def matches(self, record: DestinationRecord) -> bool:
        return any(_text_has(c.name, self.term) for c in record.characteristics)


@dataclass(frozen=True)
class TagNameContains(Specification):
    term: str

    def to_clause(self):
        return Destination.tags.any(_icontains(Tag.name, self.term))

    def matches(self, record: DestinationRecord) -> bool:
        return any(_text_has(t.name, self.term) for t in record.tags)


@dataclass(frozen=True)
class RegionNameContains(Specification):
    term: str

    def to_clause(self):
        return Destination.region.has(_icontains(Region.name, self.term))

    def matches(self, record: DestinationRecord) -> bool:
        return record.region is not None and _text_has(record.region.name, self.term)


@dataclass(frozen=True)
class PriceBetween(Specification):
    """Inclusive bounds; rows without a price fail any bound."""

    minimum: Optional[float] = None
    maximum: Optional[float] = None

    def to_clause(self):
        clauses = []
        if self.minimum is not None:
            clauses.append(Destination.price >= self.minimum)
        if self.maximum is not None:
            clauses.append(Destination.price <= self.maximum)
        return and_(*clauses) if clauses else true()

    def matches(self, record: DestinationRecord) -> bool:
        if self.minimum is None and self.maximum is None:
            return True
        if record.price is None:
            return False
        if self.minimum is not None and record.price < self.minimum:
            return False
        if self.maximum is not None and record.price > self.maximum:
            return False
        return True


@dataclass(frozen=True)
class RatingAtLeast(Specification):
    minimum: float

    def to_clause(self):
        return Destination.average_rating >= self.minimum

    def matches(self, record: DestinationRecord) -> bool:
        return record.average_rating is not None and record.average_rating >= self.minimum


@dataclass(frozen=True)
class IsTop(Specification):
    value: bool = True

    def to_clause(self):
        return Destination.is_top == self.value

    def matches(self, record: DestinationRecord) -> bool:
        return record.is_top is self.value


@dataclass(frozen=True)
class IsFeatured(Specification):
    value: bool = True

    def to_clause(self):
        return Destination.is_featured == self.value

    def matches(self, record: DestinationRecord) -> bool:
        return record.is_featured is self.value


@dataclass(frozen=True)
class InBoundingBox(Specification):
    """Coarse geo prefilter; the exact radius check happens on the records."""

    box: BoundingBox

    def to_clause(self):
        clauses = [
            Destination.latitude.isnot(None),
            Destination.longitude.isnot(None),
            Destination.latitude.between(self.box.lat_min, self.box.lat_max),
        ]
        if not self.box.wraps_longitude:
            clauses.append(Destination.longitude.between(self.box.lng_min, self.box.lng_max))
        return and_(*clauses)

    def matches(self, record: DestinationRecord) -> bool:
        if not record.has_coordinates:
            return False
        if not self.box.lat_min <= record.latitude <= self.box.lat_max:
            return False
        if self.box.wraps_longitude:
            return True
        return self.box.lng_min <= record.longitude <= self.box.lng_max


# Sort fields exposed by the repositories
SORTABLE_FIELDS = ("id", "name", "price", "created_at", "average_rating", "reviews_count")


@dataclass(frozen=True)
class Ordering:
    """One sort key; NULLs always sort last."""

    field: str
    descending: bool = False

    def __post_init__(self):
        if self.field not in SORTABLE_FIELDS:
            raise ValueError(f"unsupported sort field: {self.field}")

    def to_clause(self):
        column = getattr(Destination, self.field)
        clause = column.desc() if self.descending else column.asc()
        return clause.nulls_last()


def sort_records(records: Sequence[DestinationRecord], orderings: Sequence[Ordering]) -> List[DestinationRecord]:
    """Stable multi-key sort mirroring ``Ordering.to_clause`` for in-memory data."""
    items = list(records)
    for ordering in reversed(list(orderings)):
        present = [i for i in items if getattr(i, ordering.field) is not None]
        missing = [i for i in items if getattr(i, ordering.field) is None]
        present.sort(key=lambda i: getattr(i, ordering.field), reverse=ordering.descending)
        items = present + missing
    return items
