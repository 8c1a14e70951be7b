"""Pydantic schemas for the advanced search and autocomplete endpoints"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class EntityOut(BaseModel):
    id: int
    name: str


class SearchDestination(BaseModel):
    """Single advanced-search hit"""
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    price: Optional[float] = None
    rating: float
    reviews_count: int
    main_image: Optional[str] = None
    region: Optional[EntityOut] = None
    categorias: List[EntityOut]
    caracteristicas: List[EntityOut]
    is_top: bool
    created_at: Optional[str] = None
    # only present when the geo filter is active
    distance: Optional[float] = None


class Pagination(BaseModel):
    current_page: int
    per_page: int
    total: int
    last_page: int
    from_: Optional[int] = Field(None, alias="from")
    to: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True)


class SearchStats(BaseModel):
    total_results: int
    search_time_ms: float
    cache_hit: bool


class AdvancedSearchResponse(BaseModel):
    destinos: List[SearchDestination]
    pagination: Pagination
    filters_applied: Dict[str, Any]
    search_stats: SearchStats


class AutocompleteItem(BaseModel):
    id: int
    titulo: str
    slug: str
    region: Optional[str] = None
    categoria: Optional[str] = None
    imagen_principal: Optional[str] = None


class AutocompleteResponse(BaseModel):
    query: str
    suggestions: List[AutocompleteItem]
