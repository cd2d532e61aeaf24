"""
Artifact cache stores.

A store maps cache keys to tar.gz snapshots of one or more directories.
Entries are immutable: saving under an existing key is a no-op.

Lookup rule, applied to each key in order until one matches:
1. an entry with exactly that key
2. otherwise the most recently saved entry whose key starts with it

Backends:
- LocalCacheStore: a directory (shared disk on self-hosted runners)
- HttpCacheStore: a small REST cache service

Usage:
    from buildcache_action.caching.store import LocalCacheStore

    store = LocalCacheStore(Path("/var/cache/buildcache-action"))
    matched = store.restore([Path(".buildcache")], ["buildcache-x-2026...", "buildcache-x-"])
"""

import logging
import os
import sys
import tarfile
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
from urllib.parse import quote, unquote

import requests
from filelock import FileLock, Timeout as LockTimeout
from requests.exceptions import RequestException

from ..core.download import DownloadError, download_file
from ..core.exceptions import CacheStoreError
from ..core.filesystem import InsecureArchiveError, validate_archive_path

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".tar.gz"
MEMBER_PREFIX = "path-"


# ============================================================================
# Key Matching
# ============================================================================


def select_key(keys: Sequence[str], available: Sequence[str]) -> Optional[str]:
    """
    Pick the entry to restore.

    Args:
        keys: Lookup keys, most specific first
        available: Stored keys, most recently saved first

    Returns:
        The matching stored key, or None
    """
    stored = set(available)
    for key in keys:
        if key in stored:
            return key
        for candidate in available:
            if candidate.startswith(key):
                return candidate
    return None


# ============================================================================
# Archive Packing
# ============================================================================


def pack_directories(target_dirs: Sequence[Path], archive_path: Path) -> None:
    """
    Write ``target_dirs`` into a tar.gz archive.

    Each directory is stored under ``path-<index>/`` so restore can map it
    back to the same position in the target list. Missing directories are
    skipped.
    """
    with tarfile.open(archive_path, "w:gz") as tar:
        for index, directory in enumerate(target_dirs):
            directory = Path(directory)
            if not directory.is_dir():
                logger.warning(f"Cache path does not exist, skipping: {directory}")
                continue
            tar.add(directory, arcname=f"{MEMBER_PREFIX}{index}")


def unpack_directories(archive_path: Path, target_dirs: Sequence[Path]) -> None:
    """
    Extract an archive written by ``pack_directories`` into ``target_dirs``.

    Raises:
        CacheStoreError: If the archive does not match the target list
    """
    with tarfile.open(archive_path, "r:gz") as tar:
        for member in tar.getmembers():
            prefix, _, rest = member.name.partition("/")
            index = _member_index(prefix)
            if index is None or index >= len(target_dirs):
                raise CacheStoreError(
                    f"Unexpected member in cache archive {archive_path}: {member.name}"
                )

            target = Path(target_dirs[index])
            target.mkdir(parents=True, exist_ok=True)
            if not rest:
                continue

            try:
                validate_archive_path(rest, target)
                if member.islnk():
                    # Hard link targets carry the same path-<index>/ prefix.
                    link_prefix, _, link_rest = member.linkname.partition("/")
                    if _member_index(link_prefix) != index or not link_rest:
                        raise CacheStoreError(
                            f"Hard link {member.name} -> {member.linkname} "
                            f"crosses cache directories in {archive_path}"
                        )
                    validate_archive_path(link_rest, target)
                    member.linkname = link_rest
            except InsecureArchiveError as e:
                raise CacheStoreError(str(e)) from e
            member.name = rest

            try:
                if sys.version_info >= (3, 12):
                    tar.extract(member, target, filter="data")
                else:
                    tar.extract(member, target)
            except KeyError as e:
                raise CacheStoreError(
                    f"Cannot extract {member.name} from {archive_path}: {e}"
                ) from e


def _member_index(prefix: str) -> Optional[int]:
    if not prefix.startswith(MEMBER_PREFIX):
        return None
    try:
        return int(prefix[len(MEMBER_PREFIX):])
    except ValueError:
        return None


# ============================================================================
# Store Interface
# ============================================================================


class CacheStore(ABC):
    """Key/value store of directory snapshots."""

    @abstractmethod
    def restore(self, target_dirs: Sequence[Path], keys: Sequence[str]) -> Optional[str]:
        """
        Restore the first matching entry into ``target_dirs``.

        Args:
            target_dirs: Directories to populate
            keys: Lookup keys, most specific first

        Returns:
            The key of the restored entry, or None on a miss

        Raises:
            CacheStoreError: If the store cannot be read
        """

    @abstractmethod
    def save(self, target_dirs: Sequence[Path], key: str) -> bool:
        """
        Save ``target_dirs`` under ``key``.

        Returns:
            True if saved, False if an entry with that key already existed

        Raises:
            CacheStoreError: If the store cannot be written
        """


# ============================================================================
# Local Directory Store
# ============================================================================


class LocalCacheStore(CacheStore):
    """
    Cache store backed by a directory.

    Layout:
        <root>/<url-quoted key>.tar.gz
        <root>/locks/<url-quoted key>.lock

    Recency is the archive's modification time.
    """

    def __init__(self, root: Path, lock_timeout: float = 60):
        """
        Initialize local store.

        Args:
            root: Store directory (created on first save)
            lock_timeout: Seconds to wait for another job using the same key
        """
        self.root = Path(root)
        self.lock_timeout = lock_timeout

    def _archive_path(self, key: str) -> Path:
        return self.root / f"{quote(key, safe='')}{ARCHIVE_SUFFIX}"

    def _lock(self, key: str) -> FileLock:
        lock_dir = self.root / "locks"
        lock_dir.mkdir(parents=True, exist_ok=True)
        return FileLock(lock_dir / f"{quote(key, safe='')}.lock", timeout=self.lock_timeout)

    def list_entries(self) -> List[Tuple[str, float]]:
        """
        List stored entries.

        Returns:
            (key, mtime) pairs, most recently saved first
        """
        if not self.root.is_dir():
            return []

        entries = []
        for archive in self.root.glob(f"*{ARCHIVE_SUFFIX}"):
            key = unquote(archive.name[: -len(ARCHIVE_SUFFIX)])
            entries.append((key, archive.stat().st_mtime))
        entries.sort(key=lambda entry: entry[1], reverse=True)
        return entries

    def restore(self, target_dirs: Sequence[Path], keys: Sequence[str]) -> Optional[str]:
        try:
            available = [key for key, _ in self.list_entries()]
            matched = select_key(keys, available)
            if matched is None:
                return None

            logger.debug(f"Restoring {matched} from {self.root}")
            with self._lock(matched):
                unpack_directories(self._archive_path(matched), target_dirs)
            return matched
        except CacheStoreError:
            raise
        except LockTimeout as e:
            raise CacheStoreError(f"Timed out waiting for cache lock: {e}") from e
        except (OSError, tarfile.TarError) as e:
            raise CacheStoreError(f"Cannot read cache store {self.root}: {e}") from e

    def save(self, target_dirs: Sequence[Path], key: str) -> bool:
        archive = self._archive_path(key)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            with self._lock(key):
                if archive.exists():
                    logger.info(f"Cache entry already exists, not saving: {key}")
                    return False

                fd, temp_name = tempfile.mkstemp(
                    dir=self.root, prefix=".", suffix=".tmp"
                )
                os.close(fd)
                temp_path = Path(temp_name)
                try:
                    pack_directories(target_dirs, temp_path)
                    temp_path.replace(archive)
                finally:
                    temp_path.unlink(missing_ok=True)
        except LockTimeout as e:
            raise CacheStoreError(f"Timed out waiting for cache lock: {e}") from e
        except (OSError, tarfile.TarError) as e:
            raise CacheStoreError(f"Cannot write cache store {self.root}: {e}") from e

        logger.debug(f"Saved {key} to {archive}")
        return True


# ============================================================================
# HTTP Store
# ============================================================================


class HttpCacheStore(CacheStore):
    """
    Cache store backed by an HTTP cache service.

    Protocol:
        GET  <base>/lookup?key=<k1>&key=<k2>   200 {"key", "archive_url"} | 204/404
        GET  <archive_url>                     tar.gz body
        PUT  <base>/entries/<quoted key>       tar.gz body; 409 if it exists
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 60,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize HTTP store.

        Args:
            base_url: Service base URL
            token: Optional bearer token
            timeout: Request timeout in seconds
            session: Optional requests session
        """
        if not base_url:
            raise ValueError("base_url cannot be empty")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def restore(self, target_dirs: Sequence[Path], keys: Sequence[str]) -> Optional[str]:
        try:
            response = self.session.get(
                f"{self.base_url}/lookup",
                params=[("key", key) for key in keys],
                timeout=self.timeout,
            )
        except RequestException as e:
            raise CacheStoreError(f"Cache service unreachable: {e}") from e

        if response.status_code in (204, 404):
            return None
        if not response.ok:
            raise CacheStoreError(f"Cache lookup failed: HTTP {response.status_code}")

        try:
            body = response.json()
            matched = body["key"]
            archive_url = body["archive_url"]
        except (ValueError, KeyError, TypeError) as e:
            raise CacheStoreError(f"Malformed cache lookup response: {e}") from e

        with tempfile.TemporaryDirectory(prefix="buildcache-restore-") as temp_dir:
            archive = Path(temp_dir) / f"cache{ARCHIVE_SUFFIX}"
            try:
                download_file(
                    archive_url, archive, timeout=self.timeout, session=self.session
                )
                unpack_directories(archive, target_dirs)
            except DownloadError as e:
                raise CacheStoreError(str(e)) from e
            except (OSError, tarfile.TarError) as e:
                raise CacheStoreError(f"Cannot unpack cache entry {matched}: {e}") from e

        return matched

    def save(self, target_dirs: Sequence[Path], key: str) -> bool:
        url = f"{self.base_url}/entries/{quote(key, safe='')}"

        with tempfile.TemporaryDirectory(prefix="buildcache-save-") as temp_dir:
            archive = Path(temp_dir) / f"cache{ARCHIVE_SUFFIX}"
            try:
                pack_directories(target_dirs, archive)
                with open(archive, "rb") as f:
                    response = self.session.put(
                        url,
                        data=f,
                        headers={"Content-Type": "application/gzip"},
                        timeout=self.timeout,
                    )
            except RequestException as e:
                raise CacheStoreError(f"Cache service unreachable: {e}") from e
            except (OSError, tarfile.TarError) as e:
                raise CacheStoreError(f"Cannot pack cache entry {key}: {e}") from e

        if response.status_code == 409:
            logger.info(f"Cache entry already exists, not saving: {key}")
            return False
        if not response.ok:
            raise CacheStoreError(f"Cache upload failed: HTTP {response.status_code}")
        return True
