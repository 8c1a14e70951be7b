"""Destination repositories: SQLAlchemy-backed for the API, in-memory for tests."""

import functools
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import and_, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from apps.core.exceptions import DataAccessError
from apps.destinations.dto import DestinationRecord, FacetCount
from apps.destinations.models import (
    Category,
    Characteristic,
    Destination,
    DestinationStatus,
    Region,
    Tag,
    destination_category,
    destination_characteristic,
    destination_tag,
)
from apps.destinations.services.specifications import Ordering, Specification, sort_records

logger = logging.getLogger(__name__)

FACETS = ("categories", "characteristics", "regions", "tags")


class DestinationRepository:
    """Read port used by the search, similarity and catalog services."""

    def find(
        self,
        spec: Specification,
        ordering: Sequence[Ordering] = (),
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[DestinationRecord]:
        raise NotImplementedError

    def count(self, spec: Specification) -> int:
        raise NotImplementedError

    def get_by_slug(self, slug: str) -> Optional[DestinationRecord]:
        raise NotImplementedError

    def facet_counts(self, facet: str) -> List[FacetCount]:
        """Entities of ``facet`` with their count of published destinations, by name."""
        raise NotImplementedError


def _wrap_db_errors(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except SQLAlchemyError as exc:
            logger.error("Repository %s failed: %s", method.__name__, exc)
            raise DataAccessError("database query failed") from exc
    return wrapper


class SqlDestinationRepository(DestinationRepository):
    """Runs predicates as SQL and projects rows into ``DestinationRecord``."""

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self):
        return select(Destination).options(
            selectinload(Destination.region),
            selectinload(Destination.categories),
            selectinload(Destination.characteristics),
            selectinload(Destination.tags),
            selectinload(Destination.images),
        )

    @_wrap_db_errors
    def find(self, spec, ordering=(), offset=0, limit=None):
        stmt = self._base_query().where(spec.to_clause())
        stmt = stmt.order_by(*[o.to_clause() for o in ordering], Destination.id.asc())
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = self.db.execute(stmt).scalars().all()
        return [DestinationRecord.from_model(row) for row in rows]

    @_wrap_db_errors
    def count(self, spec):
        stmt = select(func.count(Destination.id)).where(spec.to_clause())
        return int(self.db.execute(stmt).scalar() or 0)

    @_wrap_db_errors
    def get_by_slug(self, slug):
        stmt = self._base_query().where(Destination.slug == slug)
        row = self.db.execute(stmt).scalars().first()
        return DestinationRecord.from_model(row) if row else None

    @_wrap_db_errors
    def facet_counts(self, facet):
        if facet not in FACETS:
            raise ValueError(f"unknown facet: {facet}")

        published = Destination.status == DestinationStatus.PUBLISHED.value
        if facet == "regions":
            entity = Region
            stmt = (
                select(Region, func.count(Destination.id))
                .outerjoin(Destination, and_(Destination.region_id == Region.id, published))
            )
        else:
            entity, link, fk = {
                "categories": (Category, destination_category, destination_category.c.category_id),
                "characteristics": (
                    Characteristic,
                    destination_characteristic,
                    destination_characteristic.c.characteristic_id,
                ),
                "tags": (Tag, destination_tag, destination_tag.c.tag_id),
            }[facet]
            stmt = (
                select(entity, func.count(Destination.id))
                .outerjoin(link, fk == entity.id)
                .outerjoin(Destination, and_(Destination.id == link.c.destination_id, published))
            )
            if hasattr(entity, "is_active"):
                stmt = stmt.where(entity.is_active.is_(True))

        stmt = stmt.group_by(entity.id).order_by(entity.name.asc(), entity.id.asc())
        return [
            FacetCount(
                id=row.id,
                name=row.name,
                slug=row.slug,
                icon=getattr(row, "icon", None),
                color=getattr(row, "color", None),
                count=int(total or 0),
            )
            for row, total in self.db.execute(stmt).all()
        ]


class InMemoryDestinationRepository(DestinationRepository):
    """Evaluates predicates against a fixed list of records."""

    def __init__(self, records: Iterable[DestinationRecord] = ()):
        self._records: List[DestinationRecord] = sorted(records, key=lambda r: r.id)

    def find(self, spec, ordering=(), offset=0, limit=None):
        matched = [r for r in self._records if spec.matches(r)]
        matched = sort_records(matched, ordering)
        end = None if limit is None else offset + limit
        return matched[offset:end]

    def count(self, spec):
        return sum(1 for r in self._records if spec.matches(r))

    def get_by_slug(self, slug):
        return next((r for r in self._records if r.slug == slug), None)

    def facet_counts(self, facet):
        if facet not in FACETS:
            raise ValueError(f"unknown facet: {facet}")

        entities: Dict[int, FacetCount] = {}
        for record in self._records:
            refs = [record.region] if facet == "regions" else getattr(record, facet)
            for ref in refs:
                if ref is None:
                    continue
                current = entities.get(ref.id) or FacetCount(id=ref.id, name=ref.name, slug=ref.slug)
                if record.is_published:
                    current = current.model_copy(update={"count": current.count + 1})
                entities[ref.id] = current
        return sorted(entities.values(), key=lambda f: (f.name, f.id))
