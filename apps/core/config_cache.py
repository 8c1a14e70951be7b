"""
Cached access to YAML configuration such as ``config/sections.yml``.

The visual sections catalog is read on every home and sections request, so the
parsed document is kept per absolute path and re-read only when its TTL lapses
or the file's mtime changes. Callers always get a deep copy.
"""

from __future__ import annotations

import copy
import logging
import os
import threading
import time
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)
_CACHE: Dict[str, Dict[str, Any]] = {}
_LOCK = threading.Lock()


def _read_yaml(abs_path: str, default: Dict[str, Any]) -> Dict[str, Any]:
    try:
        with open(abs_path, "r", encoding="utf-8") as fh:
            payload = yaml.safe_load(fh) or {}
    except FileNotFoundError:
        logger.debug("YAML config %s not found; using default", abs_path)
        return default
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Failed to load YAML %s: %s", abs_path, exc)
        return default

    if not isinstance(payload, dict):
        logger.warning("YAML %s must contain a mapping at top level; using default", abs_path)
        return default
    return payload


def load_yaml_cached(
    path: str,
    *,
    default: Optional[Dict[str, Any]] = None,
    ttl_seconds: Optional[int] = None,
) -> Dict[str, Any]:
    """Return the YAML mapping at ``path``, parsed at most once per TTL or file change.

    A missing, unparsable or non-mapping document resolves to ``default``; the
    sections catalog then comes back empty instead of failing the request.
    """
    from apps.core.config import settings

    ttl = ttl_seconds if ttl_seconds is not None else settings.config_cache_ttl_s
    abs_path = os.path.abspath(path)
    try:
        mtime = os.path.getmtime(abs_path)
    except FileNotFoundError:
        mtime = None
    now = time.time()

    with _LOCK:
        cached = _CACHE.get(abs_path)
        if cached and now - cached["loaded_at"] <= ttl and cached["mtime"] == mtime:
            return copy.deepcopy(cached["payload"])

        payload = _read_yaml(abs_path, default or {})
        _CACHE[abs_path] = {"payload": payload, "mtime": mtime, "loaded_at": now}
        return copy.deepcopy(payload)


def clear_yaml_cache() -> None:
    """Forget every parsed document; the next load reads from disk."""
    with _LOCK:
        _CACHE.clear()
