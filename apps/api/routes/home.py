from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from apps.api.deps import get_image_resolver, get_repository, get_result_cache
from apps.core.cache import ResultCache, make_cache_key
from apps.core.config import settings
from apps.destinations.services.images import ImageUrlResolver
from apps.destinations.services.repository import DestinationRepository
from apps.destinations.services.sections import create_home_service

router = APIRouter(tags=["home"])


@router.get("/home", summary="Home page aggregation")
def home(
    repository: DestinationRepository = Depends(get_repository),
    images: ImageUrlResolver = Depends(get_image_resolver),
    cache: ResultCache = Depends(get_result_cache),
) -> Dict[str, Any]:
    service = create_home_service(repository, images)
    return cache.get_or_compute("public_home", settings.cache_ttl_home_s, service.home)


@router.get("/home/hero", summary="Hero banner and featured destinations")
def home_hero(
    repository: DestinationRepository = Depends(get_repository),
    images: ImageUrlResolver = Depends(get_image_resolver),
    cache: ResultCache = Depends(get_result_cache),
) -> Dict[str, Any]:
    service = create_home_service(repository, images)
    return cache.get_or_compute("home_hero", settings.cache_ttl_hero_s, service.hero)


@router.get("/sections", summary="Visual sections with a preview of each")
def sections(
    repository: DestinationRepository = Depends(get_repository),
    images: ImageUrlResolver = Depends(get_image_resolver),
    cache: ResultCache = Depends(get_result_cache),
) -> Dict[str, Any]:
    service = create_home_service(repository, images)
    data = cache.get_or_compute("home_sections", settings.cache_ttl_sections_index_s, service.sections_index)
    return {"sections": data}


@router.get("/sections/{section_slug}", summary="Destinations of one visual section")
def section_detail(
    section_slug: str,
    limit: int = Query(12, ge=1, le=50),
    offset: int = Query(0, ge=0),
    sort_by: str = Query("rating", pattern="^(rating|popularidad|nuevos|distancia)$"),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    repository: DestinationRepository = Depends(get_repository),
    images: ImageUrlResolver = Depends(get_image_resolver),
    cache: ResultCache = Depends(get_result_cache),
) -> Dict[str, Any]:
    service = create_home_service(repository, images)
    params = {"slug": section_slug, "limit": limit, "offset": offset, "sort_by": sort_by, "lat": lat, "lng": lng}
    return cache.get_or_compute(
        make_cache_key("section", params),
        settings.cache_ttl_sections_s,
        lambda: service.section_listing(
            section_slug, limit=limit, offset=offset, sort_by=sort_by, latitude=lat, longitude=lng
        ),
    )
