from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from apps.api.deps import get_image_resolver, get_repository, get_result_cache
from apps.api.schemas.search import AdvancedSearchResponse, AutocompleteResponse
from apps.core.cache import ResultCache, make_cache_key
from apps.core.config import settings
from apps.destinations.services.catalog import create_catalog
from apps.destinations.services.images import ImageUrlResolver
from apps.destinations.services.repository import DestinationRepository
from apps.destinations.services.search import (
    cached_advanced_search,
    create_search_composer,
    parse_search_filters,
)

router = APIRouter(tags=["search"])


@router.get("/search/advanced", response_model=AdvancedSearchResponse, response_model_exclude_unset=True,
            summary="Faceted search with geo-distance filter")
def advanced_search(
    query: Optional[str] = Query(None, max_length=100, description="Text on name and descriptions"),
    categorias: Optional[str] = Query(None, description="Comma-separated category ids"),
    caracteristicas: Optional[str] = Query(None, description="Comma-separated characteristic ids"),
    regiones: Optional[str] = Query(None, description="Comma-separated region ids"),
    tags: Optional[str] = Query(None, description="Comma-separated tag ids"),
    precio_min: Optional[float] = Query(None, ge=0),
    precio_max: Optional[float] = Query(None, ge=0),
    rating_min: Optional[int] = Query(None, ge=1, le=5),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    distancia_max: Optional[float] = Query(None, ge=0, le=1000, description="Radius in km"),
    is_top: Optional[bool] = Query(None),
    sort_by: str = Query("rating", description="name, rating, price, distance or created_at"),
    sort_order: str = Query("desc", description="asc or desc"),
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    repository: DestinationRepository = Depends(get_repository),
    images: ImageUrlResolver = Depends(get_image_resolver),
    cache: ResultCache = Depends(get_result_cache),
):
    filters = parse_search_filters({
        "query": query,
        "categorias": categorias,
        "caracteristicas": caracteristicas,
        "regiones": regiones,
        "tags": tags,
        "precio_min": precio_min,
        "precio_max": precio_max,
        "rating_min": rating_min,
        "lat": lat,
        "lng": lng,
        "distancia_max": distancia_max,
        "is_top": is_top,
        "sort_by": sort_by,
        "sort_order": sort_order,
        "page": page,
        "per_page": per_page,
    })
    composer = create_search_composer(repository, images)
    return cached_advanced_search(composer, cache, filters, settings.cache_ttl_search_s)


@router.get("/search/autocomplete", response_model=AutocompleteResponse, summary="Search-as-you-type suggestions")
def autocomplete(
    q: str = Query(..., min_length=2, max_length=100),
    repository: DestinationRepository = Depends(get_repository),
    images: ImageUrlResolver = Depends(get_image_resolver),
    cache: ResultCache = Depends(get_result_cache),
):
    catalog = create_catalog(repository, images)
    suggestions = cache.get_or_compute(
        make_cache_key("autocomplete", {"q": q.lower()}),
        settings.cache_ttl_autocomplete_s,
        lambda: catalog.autocomplete(q),
    )
    return {"query": q, "suggestions": suggestions}


@router.get("/filters", summary="Facets with published destination counts")
def filters(
    repository: DestinationRepository = Depends(get_repository),
    images: ImageUrlResolver = Depends(get_image_resolver),
    cache: ResultCache = Depends(get_result_cache),
) -> Dict[str, Any]:
    catalog = create_catalog(repository, images)
    return cache.get_or_compute("search_filters", settings.cache_ttl_filters_s, catalog.filters)
