"""Health check endpoints exposed by the public API."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from apps.api.deps import get_result_cache
from apps.core.cache import ResultCache
from apps.core.db import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("", summary="Constant-time readiness probe")
def health_fast() -> dict[str, str]:
    """Simple readiness probe that avoids touching the database."""
    return {"status": "ok", "timestamp": _utc_timestamp()}


@router.get("/db", summary="Database connectivity check")
def health_db(db: Session = Depends(get_db)) -> dict[str, str]:
    """Deep health check that validates the database connection."""
    db.execute(text("SELECT 1"))
    return {"status": "ok", "scope": "db", "timestamp": _utc_timestamp()}


@router.get("/cache", summary="Result cache status")
def health_cache(cache: ResultCache = Depends(get_result_cache)) -> dict[str, object]:
    stats = cache.stats()
    status = "ok"
    if stats.get("status") == "unreachable":
        logger.error("Cache health check failed: backend %s unreachable", stats.get("backend"))
        status = "unhealthy"
    return {"status": status, "cache": stats, "timestamp": _utc_timestamp()}
