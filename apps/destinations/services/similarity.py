"""Destination similarity: weighted scorer and the ranker behind /similar."""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from apps.core.exceptions import NotFoundError, ValidationError
from apps.destinations.dto import DestinationRecord
from apps.destinations.services.images import ImageUrlResolver
from apps.destinations.services.repository import DestinationRepository
from apps.destinations.services.specifications import (
    AnyOf,
    HasAnyCategory,
    HasAnyCharacteristic,
    IdNot,
    Ordering,
    RegionIn,
    all_of,
    published,
)

logger = logging.getLogger(__name__)

LIMIT_RANGE = (1, 20)
MIN_SCORE_RANGE = (0.1, 1.0)
SCORE_PRECISION = 9


class SimilarityFactor(str, Enum):
    """Labels reported for each factor that contributed to a score."""
    REGION = "Región"
    CATEGORY = "Categoría"
    CHARACTERISTICS = "Características"
    TOP = "Tipo de Destino"


# Fixed weights; the score is always divided by their full sum
WEIGHTS: Dict[SimilarityFactor, float] = {
    SimilarityFactor.REGION: 0.4,
    SimilarityFactor.CATEGORY: 0.3,
    SimilarityFactor.CHARACTERISTICS: 0.2,
    SimilarityFactor.TOP: 0.1,
}
TOTAL_WEIGHT = sum(WEIGHTS.values())


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0.0 when the denominator is zero."""
    if not denominator:
        return 0.0
    return numerator / denominator


def _overlap(a: frozenset, b: frozenset) -> float:
    if not a or not b:
        return 0.0
    return safe_ratio(len(a & b), len(a) + len(b))


@dataclass(frozen=True)
class SimilarityResult:
    destination_id: int
    score: float
    factors: Tuple[SimilarityFactor, ...]


class SimilarityScorer:
    """Compares two destinations on region, categories, characteristics and top status."""

    def __init__(self, weights: Optional[Dict[SimilarityFactor, float]] = None):
        self.weights = dict(weights or WEIGHTS)
        self.total_weight = sum(self.weights.values())

    def contributions(self, reference: DestinationRecord, candidate: DestinationRecord) -> Dict[SimilarityFactor, float]:
        same_region = reference.region_id is not None and reference.region_id == candidate.region_id
        return {
            SimilarityFactor.REGION: self.weights[SimilarityFactor.REGION] if same_region else 0.0,
            SimilarityFactor.CATEGORY: self.weights[SimilarityFactor.CATEGORY]
            * _overlap(reference.category_ids, candidate.category_ids),
            SimilarityFactor.CHARACTERISTICS: self.weights[SimilarityFactor.CHARACTERISTICS]
            * _overlap(reference.characteristic_ids, candidate.characteristic_ids),
            SimilarityFactor.TOP: self.weights[SimilarityFactor.TOP]
            if reference.is_top and candidate.is_top else 0.0,
        }

    def score(self, reference: DestinationRecord, candidate: DestinationRecord) -> SimilarityResult:
        parts = self.contributions(reference, candidate)
        # 9 decimals absorb float noise (0.3 * 1/3 must compare equal to 0.1)
        value = round(safe_ratio(sum(parts.values()), self.total_weight), SCORE_PRECISION)
        # declaration order of SimilarityFactor
        factors = tuple(f for f in SimilarityFactor if parts[f] > 0)
        return SimilarityResult(destination_id=candidate.id, score=min(1.0, max(0.0, value)), factors=factors)


def validate_similarity_params(limit: int, min_score: float) -> None:
    if not LIMIT_RANGE[0] <= limit <= LIMIT_RANGE[1]:
        raise ValidationError.for_field("limit", f"limit must be between {LIMIT_RANGE[0]} and {LIMIT_RANGE[1]}")
    if not MIN_SCORE_RANGE[0] <= min_score <= MIN_SCORE_RANGE[1]:
        raise ValidationError.for_field(
            "min_score", f"min_score must be between {MIN_SCORE_RANGE[0]} and {MIN_SCORE_RANGE[1]}"
        )


class SimilarityRanker:
    """Finds published destinations most similar to a reference one."""

    def __init__(self, repository: DestinationRepository, images: ImageUrlResolver,
                 scorer: Optional[SimilarityScorer] = None):
        self.repository = repository
        self.images = images
        self.scorer = scorer or SimilarityScorer()

    def candidate_spec(self, reference: DestinationRecord, include_region: bool = True,
                       include_categories: bool = True, include_characteristics: bool = True):
        """Published, not the reference; category/characteristic overlap narrows, same region widens."""
        narrowing = []
        if include_categories and reference.category_ids:
            narrowing.append(HasAnyCategory(tuple(sorted(reference.category_ids))))
        if include_characteristics and reference.characteristic_ids:
            narrowing.append(HasAnyCharacteristic(tuple(sorted(reference.characteristic_ids))))

        pool = all_of(narrowing) if narrowing else None
        if pool is not None and include_region and reference.region_id is not None:
            pool = AnyOf((pool, RegionIn((reference.region_id,))))

        return all_of([published(), IdNot(reference.id), pool])

    def find_similar(
        self,
        reference: DestinationRecord,
        limit: int = 6,
        min_score: float = 0.3,
        include_region: bool = True,
        include_categories: bool = True,
        include_characteristics: bool = True,
    ) -> List[Tuple[DestinationRecord, SimilarityResult]]:
        validate_similarity_params(limit, min_score)

        spec = self.candidate_spec(reference, include_region, include_categories, include_characteristics)
        candidates = self.repository.find(spec, ordering=[Ordering("id")])

        scored = []
        for candidate in candidates:
            result = self.scorer.score(reference, candidate)
            if result.score >= min_score:
                scored.append((candidate, result))

        # stable: equal scores keep retrieval order
        scored.sort(key=lambda item: item[1].score, reverse=True)
        return scored[:limit]

    def similar_for_slug(
        self,
        slug: str,
        limit: int = 6,
        min_score: float = 0.3,
        include_region: bool = True,
        include_categories: bool = True,
        include_characteristics: bool = True,
    ) -> Dict[str, Any]:
        """Response payload for ``GET /destinos/{slug}/similar``."""
        validate_similarity_params(limit, min_score)
        started = time.perf_counter()

        reference = self.repository.get_by_slug(slug)
        if reference is None or not reference.is_published:
            raise NotFoundError("Destino no encontrado")

        ranked = self.find_similar(
            reference,
            limit=limit,
            min_score=min_score,
            include_region=include_region,
            include_categories=include_categories,
            include_characteristics=include_characteristics,
        )
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info("similar for %s: %d results in %.1fms", slug, len(ranked), elapsed_ms)

        return {
            "destino_referencia": {
                "id": reference.id,
                "name": reference.name,
                "slug": reference.slug,
                "region": reference.region.as_dict() if reference.region else None,
                "categorias": [c.as_dict() for c in reference.categories],
                "caracteristicas": [c.as_dict() for c in reference.characteristics],
                "is_top": reference.is_top,
            },
            "destinos_similares": [self._to_card(record, result) for record, result in ranked],
            "stats": {
                "total_found": len(ranked),
                "min_score": min_score,
                "limit": limit,
                "criteria": {
                    "include_region": include_region,
                    "include_categories": include_categories,
                    "include_characteristics": include_characteristics,
                },
                "search_time_ms": elapsed_ms,
            },
        }

    def _to_card(self, record: DestinationRecord, result: SimilarityResult) -> Dict[str, Any]:
        return {
            "id": record.id,
            "name": record.name,
            "slug": record.slug,
            "short_description": record.short_description,
            "main_image": self.images.main_image(record),
            "average_rating": record.average_rating or 0,
            "reviews_count": record.reviews_count or 0,
            "similarity_score": round(result.score, 2),
            "similarity_factors": [f.value for f in result.factors],
        }


def create_similarity_ranker(repository: DestinationRepository, images: ImageUrlResolver) -> SimilarityRanker:
    return SimilarityRanker(repository, images)
