"""Centralized cache utilities (TTLCache settings & key builders)."""
from __future__ import annotations

import os
from cachetools import TTLCache

# Rekordbox cache settings
REKORDBOX_CACHE_VERSION = int(os.getenv("REKORDBOX_CACHE_VERSION", "1"))
REKORDBOX_CACHE_MAXSIZE = int(os.getenv("REKORDBOX_CACHE_MAXSIZE", "10"))
REKORDBOX_CACHE_TTL_S = int(os.getenv("REKORDBOX_CACHE_TTL_S", "600"))

# Marketplace cache settings
MARKETPLACE_CACHE_VERSION = int(os.getenv("MARKETPLACE_CACHE_VERSION", "1"))
MARKETPLACE_CACHE_MAXSIZE = int(os.getenv("MARKETPLACE_CACHE_MAXSIZE", "512"))
MARKETPLACE_CACHE_TTL_S = int(os.getenv("MARKETPLACE_CACHE_TTL_S", "3600"))

# Lazy-initialized caches
_rekordbox_cache: TTLCache | None = None
_marketplace_cache: TTLCache | None = None


def get_rekordbox_cache() -> TTLCache:
    global _rekordbox_cache
    if _rekordbox_cache is None:
        _rekordbox_cache = TTLCache(maxsize=REKORDBOX_CACHE_MAXSIZE, ttl=REKORDBOX_CACHE_TTL_S)
    return _rekordbox_cache


def get_marketplace_cache() -> TTLCache:
    global _marketplace_cache
    if _marketplace_cache is None:
        _marketplace_cache = TTLCache(maxsize=MARKETPLACE_CACHE_MAXSIZE, ttl=MARKETPLACE_CACHE_TTL_S)
    return _marketplace_cache


def build_rekordbox_cache_key(file_hash: str) -> str:
    return f"rb:{REKORDBOX_CACHE_VERSION}:{file_hash}"


def build_marketplace_cache_key(query: str, provider_names: list[str], authenticated: bool = False) -> str:
    auth = "auth" if authenticated else "anon"
    return f"mp:{MARKETPLACE_CACHE_VERSION}:{auth}:{','.join(provider_names)}:{query.lower()}"
