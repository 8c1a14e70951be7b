"""FastAPI dependencies shared by the public routers."""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from apps.core.cache import ResultCache
from apps.core.db import get_db
from apps.destinations.services.images import ImageUrlResolver, create_image_resolver
from apps.destinations.services.repository import DestinationRepository, SqlDestinationRepository


def get_result_cache(request: Request) -> ResultCache:
    """Process-wide cache created at startup (``app.state.result_cache``)."""
    return request.app.state.result_cache


def get_repository(db: Session = Depends(get_db)) -> DestinationRepository:
    return SqlDestinationRepository(db)


def get_image_resolver() -> ImageUrlResolver:
    return create_image_resolver()
