"""Pydantic schemas for destination endpoints"""

from pydantic import BaseModel
from typing import Any, Dict, List, Optional

from apps.api.schemas.search import EntityOut


class SimilarDestination(BaseModel):
    id: int
    name: str
    slug: str
    short_description: Optional[str] = None
    main_image: Optional[str] = None
    average_rating: float
    reviews_count: int
    similarity_score: float
    similarity_factors: List[str]


class ReferenceDestination(BaseModel):
    id: int
    name: str
    slug: str
    region: Optional[EntityOut] = None
    categorias: List[EntityOut]
    caracteristicas: List[EntityOut]
    is_top: bool


class SimilarResponse(BaseModel):
    """Response for GET /destinos/{slug}/similar"""
    destino_referencia: ReferenceDestination
    destinos_similares: List[SimilarDestination]
    stats: Dict[str, Any]


class NearbyDestination(BaseModel):
    id: int
    name: str
    slug: str
    short_description: Optional[str] = None
    main_image: Optional[str] = None
    average_rating: float
    reviews_count: int
    region: Optional[EntityOut] = None
    latitude: float
    longitude: float
    distance_km: float


class SearchCenter(BaseModel):
    latitude: float
    longitude: float
    radius_km: float


class NearbyResponse(BaseModel):
    destinations: List[NearbyDestination]
    search_center: SearchCenter
    total_found: int
