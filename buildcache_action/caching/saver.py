"""
Cache save for the end of the job.

Like restore, save is best effort: a failed upload costs the next run some
build time and nothing else.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .store import CacheStore

logger = logging.getLogger(__name__)


class SaveStatus(Enum):
    """Result kinds of a save attempt."""

    SAVED = "saved"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class SaveOutcome:
    """Result of a save attempt."""

    status: SaveStatus
    key: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def saved(cls, key: str) -> "SaveOutcome":
        return cls(SaveStatus.SAVED, key=key)

    @classmethod
    def skipped(cls, reason: str, key: Optional[str] = None) -> "SaveOutcome":
        return cls(SaveStatus.SKIPPED, key=key, reason=reason)

    @classmethod
    def failed(cls, reason: str, key: Optional[str] = None) -> "SaveOutcome":
        return cls(SaveStatus.FAILED, key=key, reason=reason)


class CacheSaver:
    """Persists the cache directory to a cache store."""

    def __init__(self, store: CacheStore):
        self.store = store

    def save(self, save_key: str, cache_dir: Path) -> SaveOutcome:
        """
        Save ``cache_dir`` under ``save_key``.

        Returns:
            SaveOutcome; never raises
        """
        cache_dir = Path(cache_dir)
        if not cache_dir.is_dir():
            logger.warning(f"Cache directory {cache_dir} does not exist, nothing to save")
            return SaveOutcome.skipped("cache directory missing", key=save_key)

        try:
            saved = self.store.save([cache_dir], save_key)
        except Exception as e:
            logger.error(f"Saving cache failed: {e}")
            return SaveOutcome.failed(str(e), key=save_key)

        if not saved:
            return SaveOutcome.skipped("entry already exists", key=save_key)

        logger.info(f"Saved cache with key \"{save_key}\".")
        return SaveOutcome.saved(save_key)
