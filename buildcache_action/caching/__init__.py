"""
Compiler cache persistence between CI runs.

Modules:
    keys: Cache key model
    store: Local and HTTP cache stores
    restorer: Restore the cache directory at job start
    saver: Save the cache directory at job end
    buildcache: buildcache environment and statistics
"""

from .buildcache import BuildcacheRunner, configure_environment, resolve_cache_dir
from .keys import CacheKeySet, build_cache_keys
from .restorer import CacheRestorer, RestoreOutcome, RestoreStatus
from .saver import CacheSaver, SaveOutcome, SaveStatus
from .store import CacheStore, HttpCacheStore, LocalCacheStore

__all__ = [
    "BuildcacheRunner",
    "CacheKeySet",
    "CacheRestorer",
    "CacheSaver",
    "CacheStore",
    "HttpCacheStore",
    "LocalCacheStore",
    "RestoreOutcome",
    "RestoreStatus",
    "SaveOutcome",
    "SaveStatus",
    "build_cache_keys",
    "configure_environment",
    "resolve_cache_dir",
]
