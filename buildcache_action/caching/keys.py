"""
Cache key model.

The save key is unique per run (it ends in a timestamp), the restore keys
are prefixes of it, from most to least specific:

    save key:      buildcache-<cache_key>-2026-10-17T09:15:02.123Z
    restore keys:  buildcache-<cache_key>-

The store tries the save key first and falls back to the newest entry
matching each restore key in turn.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

KEY_BASE = "buildcache-"


@dataclass(frozen=True)
class CacheKeySet:
    """
    Ordered cache keys for one run.

    Attributes:
        save_key: Key the cache is saved under (most specific)
        restore_keys: Fallback keys, most specific first
    """

    save_key: str
    restore_keys: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        """Validate key ordering."""
        if not self.save_key:
            raise ValueError("save_key cannot be empty")

        object.__setattr__(self, "restore_keys", tuple(self.restore_keys))

        if len(set(self.restore_keys)) != len(self.restore_keys):
            raise ValueError(f"duplicate restore keys: {self.restore_keys}")

        for key in self.restore_keys:
            if not key:
                raise ValueError("restore keys cannot be empty")
            if key == self.save_key:
                raise ValueError(
                    f"restore key '{key}' repeats the save key; it must be less specific"
                )

    @property
    def lookup_keys(self) -> List[str]:
        """All keys in lookup order: save key, then restore keys."""
        return [self.save_key, *self.restore_keys]

    def is_exact(self, matched_key: Optional[str]) -> bool:
        """True if ``matched_key`` is the save key itself."""
        return matched_key == self.save_key


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2026-10-17T09:15:02.123Z."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def build_cache_keys(cache_key: str = "", now: Optional[datetime] = None) -> CacheKeySet:
    """
    Build the key set for a run.

    Args:
        cache_key: User-supplied key fragment (e.g. compiler/OS fingerprint)
        now: Timestamp for the save key (default: current time)

    Example:
        >>> keys = build_cache_keys("macos-clang")
        >>> keys.restore_keys
        ('buildcache-macos-clang-',)
    """
    cache_key = (cache_key or "").strip()
    with_input = f"{KEY_BASE}{cache_key}-" if cache_key else KEY_BASE
    moment = now or datetime.now(timezone.utc)
    return CacheKeySet(
        save_key=f"{with_input}{format_timestamp(moment)}",
        restore_keys=(with_input,),
    )
