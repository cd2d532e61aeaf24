"""
Cache restore with failure isolation.

Restoring the compiler cache only saves build time. A miss or a broken
store must never fail the job, so ``CacheRestorer.restore`` always returns
a ``RestoreOutcome`` and never raises.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .keys import CacheKeySet
from .store import CacheStore

logger = logging.getLogger(__name__)


class RestoreStatus(Enum):
    """Result kinds of a restore attempt."""

    HIT = "hit"
    MISS = "miss"
    FAILED = "failed"


@dataclass(frozen=True)
class RestoreOutcome:
    """Result of a restore attempt."""

    status: RestoreStatus
    matched_key: Optional[str] = None
    exact: bool = False
    error: Optional[str] = None

    @classmethod
    def hit(cls, matched_key: str, exact: bool) -> "RestoreOutcome":
        return cls(RestoreStatus.HIT, matched_key=matched_key, exact=exact)

    @classmethod
    def miss(cls) -> "RestoreOutcome":
        return cls(RestoreStatus.MISS)

    @classmethod
    def failed(cls, error: str) -> "RestoreOutcome":
        return cls(RestoreStatus.FAILED, error=error)

    @property
    def is_hit(self) -> bool:
        return self.status is RestoreStatus.HIT


class CacheRestorer:
    """
    Populates the local cache directory from a cache store.

    Example:
        >>> restorer = CacheRestorer(LocalCacheStore(store_dir))
        >>> outcome = restorer.restore(build_cache_keys("linux"), cache_dir)
        >>> outcome.status
        <RestoreStatus.MISS: 'miss'>
    """

    def __init__(self, store: CacheStore):
        self.store = store

    def restore(self, key_set: CacheKeySet, cache_dir: Path) -> RestoreOutcome:
        """
        Try every key of ``key_set`` against the store.

        Args:
            key_set: Keys to try, save key first
            cache_dir: Directory to populate

        Returns:
            RestoreOutcome (hit, miss or failed)
        """
        keys = key_set.lookup_keys
        try:
            matched = self.store.restore([Path(cache_dir)], keys)
        except Exception as e:
            logger.error(f"Caching not working: {e}")
            return RestoreOutcome.failed(str(e))

        if matched is None:
            logger.warning(
                f"No cache for key {key_set.save_key} or "
                f"{', '.join(key_set.restore_keys) or '(no fallback keys)'} "
                "- cold cache or invalid key"
            )
            return RestoreOutcome.miss()

        exact = key_set.is_exact(matched)
        if exact:
            logger.info(f"Restored from cache key \"{matched}\" (exact match).")
        else:
            logger.info(f"Restored from cache key \"{matched}\" (fallback match).")
        return RestoreOutcome.hit(matched, exact)
