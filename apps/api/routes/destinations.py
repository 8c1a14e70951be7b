from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from apps.api.deps import get_image_resolver, get_repository, get_result_cache
from apps.api.schemas.destination import NearbyResponse, SimilarResponse
from apps.core.cache import ResultCache, make_cache_key
from apps.core.config import settings
from apps.core.exceptions import ValidationError
from apps.destinations.services.catalog import create_catalog
from apps.destinations.services.images import ImageUrlResolver
from apps.destinations.services.nearby import NearbySearch
from apps.destinations.services.repository import DestinationRepository
from apps.destinations.services.search import parse_id_list
from apps.destinations.services.similarity import create_similarity_ranker

router = APIRouter(prefix="/destinos", tags=["destinos"])


@router.get("", summary="Published destinations with optional geo filter")
def list_destinations(
    region_id: Optional[int] = Query(None, ge=1),
    category_id: Optional[int] = Query(None, ge=1),
    caracteristicas: Optional[str] = Query(None, description="Comma-separated characteristic ids"),
    tags: Optional[str] = Query(None, description="Comma-separated tag ids"),
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    radius: float = Query(50, gt=0, le=1000, description="Radius in km"),
    orden: Optional[str] = Query(None, pattern="^(popularidad|rating|distancia|latest)$"),
    page: int = Query(1, ge=1),
    per_page: int = Query(12, ge=1, le=50),
    repository: DestinationRepository = Depends(get_repository),
    images: ImageUrlResolver = Depends(get_image_resolver),
    cache: ResultCache = Depends(get_result_cache),
) -> Dict[str, Any]:
    try:
        caracteristica_ids = parse_id_list(caracteristicas)
        tag_ids = parse_id_list(tags)
    except ValueError as exc:
        raise ValidationError("Parámetros inválidos", errors={"caracteristicas/tags": [str(exc)]}) from exc

    params = {
        "region_id": region_id,
        "category_id": category_id,
        "caracteristicas": caracteristica_ids,
        "tags": tag_ids,
        "latitude": latitude,
        "longitude": longitude,
        "radius": radius,
        "orden": orden,
        "page": page,
        "per_page": per_page,
    }
    catalog = create_catalog(repository, images)
    return cache.get_or_compute(
        make_cache_key("destinos_index", params),
        settings.cache_ttl_listing_s,
        lambda: catalog.listing(
            region_id=region_id,
            category_id=category_id,
            caracteristicas=caracteristica_ids,
            tags=tag_ids,
            latitude=latitude,
            longitude=longitude,
            radius_km=radius,
            orden=orden,
            page=page,
            per_page=per_page,
        ),
    )


@router.get("/top", summary="Top destinations, newest first")
def top_destinations(
    limit: int = Query(10, ge=1, description="Capped at 50"),
    repository: DestinationRepository = Depends(get_repository),
    images: ImageUrlResolver = Depends(get_image_resolver),
) -> Dict[str, Any]:
    return {"destinos": create_catalog(repository, images).top(limit)}


@router.get("/nearby", response_model=NearbyResponse, summary="Destinations within a radius, nearest first")
def nearby_destinations(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius: float = Query(50, gt=0, le=1000, description="Radius in km"),
    limit: int = Query(10, ge=1, le=50),
    category_id: Optional[int] = Query(None, ge=1),
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    repository: DestinationRepository = Depends(get_repository),
    images: ImageUrlResolver = Depends(get_image_resolver),
):
    return NearbySearch(repository, images).find(
        latitude=latitude,
        longitude=longitude,
        radius_km=radius,
        limit=limit,
        category_id=category_id,
        min_rating=min_rating,
    )


@router.get("/{slug}/similar", response_model=SimilarResponse, summary="Destinations similar to a published one")
def similar_destinations(
    slug: str,
    limit: int = Query(6, ge=1, le=20),
    min_score: float = Query(0.3, ge=0.1, le=1.0),
    include_region: bool = Query(True),
    include_categories: bool = Query(True),
    include_characteristics: bool = Query(True),
    repository: DestinationRepository = Depends(get_repository),
    images: ImageUrlResolver = Depends(get_image_resolver),
    cache: ResultCache = Depends(get_result_cache),
):
    params = {
        "slug": slug,
        "limit": limit,
        "min_score": min_score,
        "include_region": include_region,
        "include_categories": include_categories,
        "include_characteristics": include_characteristics,
    }
    ranker = create_similarity_ranker(repository, images)
    return cache.get_or_compute(
        make_cache_key("similar", params),
        settings.cache_ttl_similar_s,
        lambda: ranker.similar_for_slug(slug, **{k: v for k, v in params.items() if k != "slug"}),
    )


@router.get("/{slug}", summary="Published destination detail")
def get_destination(
    slug: str,
    repository: DestinationRepository = Depends(get_repository),
    images: ImageUrlResolver = Depends(get_image_resolver),
) -> Dict[str, Any]:
    return create_catalog(repository, images).detail(slug)
