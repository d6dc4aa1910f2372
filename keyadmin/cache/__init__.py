"""Key state cache.

Public API:
    CacheBackend          - Abstract base for all backends
    RedisCacheBackend     - Redis-backed shared cache
    InMemoryCacheBackend  - Dict-backed cache for dev/testing
    get_cache_backend     - Factory: selects backend from settings
"""

from keyadmin.cache.backend import (
    CacheBackend,
    InMemoryCacheBackend,
    RedisCacheBackend,
    get_cache_backend,
)

__all__ = [
    "CacheBackend",
    "RedisCacheBackend",
    "InMemoryCacheBackend",
    "get_cache_backend",
]
