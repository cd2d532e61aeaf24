"""
Unit tests for cache stores.
"""

import io
import os
import tarfile
import time
from urllib.parse import parse_qs, urlparse

import pytest
import requests
import responses

from buildcache_action.caching.store import (
    HttpCacheStore,
    LocalCacheStore,
    pack_directories,
    select_key,
    unpack_directories,
)
from buildcache_action.core.exceptions import CacheStoreError

BASE_URL = "https://cache.example.com/buildcache"


@pytest.fixture
def cache_dir(tmp_path):
    """A populated buildcache directory."""
    directory = tmp_path / "cache"
    (directory / "c" / "3f").mkdir(parents=True)
    (directory / "c" / "3f" / "entry.o").write_bytes(b"object code")
    (directory / "stats.json").write_text("{}")
    return directory


@pytest.fixture
def store(tmp_path):
    return LocalCacheStore(tmp_path / "store", lock_timeout=1)


def set_age(store, key, seconds_ago):
    archive = store._archive_path(key)
    stamp = time.time() - seconds_ago
    os.utime(archive, (stamp, stamp))


class TestSelectKey:
    def test_exact_match(self):
        assert select_key(["k-1", "k-"], ["k-2", "k-1"]) == "k-1"

    def test_prefix_match_takes_newest(self):
        assert select_key(["k-9", "k-"], ["k-3", "k-2", "k-1"]) == "k-3"

    def test_keys_tried_in_order(self):
        assert select_key(["a-", "k-"], ["k-1", "a-1"]) == "a-1"

    def test_miss(self):
        assert select_key(["x-"], ["k-1"]) is None

    def test_exact_beats_newer_prefix(self):
        assert select_key(["k-1"], ["k-10", "k-1"]) == "k-1"


class TestArchivePacking:
    def test_roundtrip_multiple_dirs(self, tmp_path, cache_dir):
        other = tmp_path / "other"
        other.mkdir()
        (other / "file").write_text("second")
        archive = tmp_path / "snapshot.tar.gz"

        pack_directories([cache_dir, other], archive)
        restored = [tmp_path / "r0", tmp_path / "r1"]
        unpack_directories(archive, restored)

        assert (restored[0] / "c" / "3f" / "entry.o").read_bytes() == b"object code"
        assert (restored[1] / "file").read_text() == "second"

    def test_missing_dir_skipped(self, tmp_path, cache_dir, caplog):
        archive = tmp_path / "snapshot.tar.gz"

        pack_directories([tmp_path / "missing", cache_dir], archive)

        assert "does not exist" in caplog.text
        with tarfile.open(archive) as tar:
            assert all(name.startswith("path-1") for name in tar.getnames())

    def test_foreign_archive_rejected(self, tmp_path):
        archive = tmp_path / "foreign.tar.gz"
        with tarfile.open(archive, "w:gz") as tar:
            info = tarfile.TarInfo("random/file")
            info.size = 1
            tar.addfile(info, io.BytesIO(b"x"))

        with pytest.raises(CacheStoreError, match="Unexpected member"):
            unpack_directories(archive, [tmp_path / "out"])

    def test_hard_links_restored(self, tmp_path, store, cache_dir):
        first = cache_dir / "c" / "3f" / "entry.o"
        second = cache_dir / "c" / "3f" / "same.o"
        os.link(first, second)
        store.save([cache_dir], "k-1")
        restored = tmp_path / "restored"

        assert store.restore([restored], ["k-1"]) == "k-1"

        assert (restored / "c" / "3f" / "same.o").read_bytes() == b"object code"
        assert (restored / "c" / "3f" / "entry.o").read_bytes() == b"object code"

    def test_hard_link_across_directories_rejected(self, tmp_path):
        archive = tmp_path / "cross.tar.gz"
        with tarfile.open(archive, "w:gz") as tar:
            info = tarfile.TarInfo("path-1/file")
            info.size = 1
            tar.addfile(info, io.BytesIO(b"x"))
            link = tarfile.TarInfo("path-0/link")
            link.type = tarfile.LNKTYPE
            link.linkname = "path-1/file"
            tar.addfile(link)

        with pytest.raises(CacheStoreError, match="crosses cache directories"):
            unpack_directories(archive, [tmp_path / "r0", tmp_path / "r1"])

    def test_hard_link_to_missing_member(self, tmp_path):
        archive = tmp_path / "dangling.tar.gz"
        with tarfile.open(archive, "w:gz") as tar:
            link = tarfile.TarInfo("path-0/link")
            link.type = tarfile.LNKTYPE
            link.linkname = "path-0/missing"
            tar.addfile(link)

        with pytest.raises(CacheStoreError, match="Cannot extract"):
            unpack_directories(archive, [tmp_path / "out"])

    def test_traversal_rejected(self, tmp_path):
        archive = tmp_path / "evil.tar.gz"
        with tarfile.open(archive, "w:gz") as tar:
            info = tarfile.TarInfo("path-0/../../evil")
            info.size = 1
            tar.addfile(info, io.BytesIO(b"x"))

        with pytest.raises(CacheStoreError, match="traversal"):
            unpack_directories(archive, [tmp_path / "out" / "cache"])


class TestLocalCacheStore:
    """Test LocalCacheStore."""

    def test_miss_on_empty_store(self, store, tmp_path):
        assert store.restore([tmp_path / "target"], ["buildcache-"]) is None

    def test_save_and_exact_restore(self, store, cache_dir, tmp_path):
        assert store.save([cache_dir], "buildcache-linux-1") is True

        target = tmp_path / "target"
        matched = store.restore([target], ["buildcache-linux-1", "buildcache-linux-"])

        assert matched == "buildcache-linux-1"
        assert (target / "c" / "3f" / "entry.o").read_bytes() == b"object code"

    def test_exact_match_beats_prefix(self, store, cache_dir, tmp_path):
        store.save([cache_dir], "buildcache-linux-1")
        store.save([cache_dir], "buildcache-linux-2")
        set_age(store, "buildcache-linux-1", 100)
        set_age(store, "buildcache-linux-2", 10)

        matched = store.restore(
            [tmp_path / "t"], ["buildcache-linux-1", "buildcache-linux-"]
        )

        assert matched == "buildcache-linux-1"

    def test_newest_prefix_match_wins(self, store, cache_dir, tmp_path):
        for key, age in (("buildcache-linux-a", 300), ("buildcache-linux-b", 10),
                         ("buildcache-linux-c", 200)):
            store.save([cache_dir], key)
            set_age(store, key, age)

        matched = store.restore([tmp_path / "t"], ["buildcache-linux-z", "buildcache-linux-"])

        assert matched == "buildcache-linux-b"

    def test_save_existing_key_is_noop(self, store, cache_dir, tmp_path):
        store.save([cache_dir], "buildcache-linux-1")
        (cache_dir / "new.o").write_text("later")

        assert store.save([cache_dir], "buildcache-linux-1") is False

        target = tmp_path / "t"
        store.restore([target], ["buildcache-linux-1"])
        assert not (target / "new.o").exists()

    def test_keys_with_special_characters(self, store, cache_dir):
        key = "buildcache-macos/clang 15-2026-10-17T09:15:02.123Z"
        store.save([cache_dir], key)

        assert [k for k, _ in store.list_entries()] == [key]

    def test_no_temp_files_left(self, store, cache_dir):
        store.save([cache_dir], "buildcache-1")
        assert not list(store.root.glob("*.tmp"))

    def test_unreadable_entry(self, store, tmp_path):
        store.root.mkdir(parents=True)
        (store.root / "buildcache-1.tar.gz").write_bytes(b"corrupt")

        with pytest.raises(CacheStoreError, match="Cannot read cache store"):
            store.restore([tmp_path / "t"], ["buildcache-"])

    def test_lock_timeout(self, store, cache_dir):
        with store._lock("buildcache-1"):
            with pytest.raises(CacheStoreError, match="Timed out"):
                LocalCacheStore(store.root, lock_timeout=0.1).save(
                    [cache_dir], "buildcache-1"
                )


class TestHttpCacheStore:
    """Test HttpCacheStore."""

    @pytest.fixture
    def archive_bytes(self, tmp_path, cache_dir):
        archive = tmp_path / "entry.tar.gz"
        pack_directories([cache_dir], archive)
        return archive.read_bytes()

    @responses.activate
    def test_hit(self, tmp_path, archive_bytes):
        responses.add(
            responses.GET,
            f"{BASE_URL}/lookup",
            json={"key": "buildcache-linux-1", "archive_url": f"{BASE_URL}/blobs/1"},
        )
        responses.add(responses.GET, f"{BASE_URL}/blobs/1", body=archive_bytes)
        store = HttpCacheStore(BASE_URL, token="secret")

        target = tmp_path / "target"
        matched = store.restore([target], ["buildcache-linux-2", "buildcache-linux-"])

        assert matched == "buildcache-linux-1"
        assert (target / "c" / "3f" / "entry.o").read_bytes() == b"object code"
        assert responses.calls[0].request.headers["Authorization"] == "Bearer secret"

        query = parse_qs(urlparse(responses.calls[0].request.url).query)
        assert query == {"key": ["buildcache-linux-2", "buildcache-linux-"]}

    @responses.activate
    @pytest.mark.parametrize("status", [204, 404])
    def test_miss(self, tmp_path, status):
        responses.add(responses.GET, f"{BASE_URL}/lookup", status=status)

        assert HttpCacheStore(BASE_URL).restore([tmp_path], ["k-"]) is None

    @responses.activate
    def test_server_error(self, tmp_path):
        responses.add(responses.GET, f"{BASE_URL}/lookup", status=503)

        with pytest.raises(CacheStoreError, match="HTTP 503"):
            HttpCacheStore(BASE_URL).restore([tmp_path], ["k-"])

    @responses.activate
    def test_unreachable(self, tmp_path):
        responses.add(
            responses.GET, f"{BASE_URL}/lookup", body=requests.ConnectionError("refused")
        )

        with pytest.raises(CacheStoreError, match="unreachable"):
            HttpCacheStore(BASE_URL).restore([tmp_path], ["k-"])

    @responses.activate
    def test_malformed_lookup(self, tmp_path):
        responses.add(responses.GET, f"{BASE_URL}/lookup", json={"unexpected": True})

        with pytest.raises(CacheStoreError, match="Malformed"):
            HttpCacheStore(BASE_URL).restore([tmp_path], ["k-"])

    @responses.activate
    def test_archive_download_fails(self, tmp_path):
        responses.add(
            responses.GET,
            f"{BASE_URL}/lookup",
            json={"key": "k-1", "archive_url": f"{BASE_URL}/blobs/1"},
        )
        responses.add(responses.GET, f"{BASE_URL}/blobs/1", status=500)

        with pytest.raises(CacheStoreError):
            HttpCacheStore(BASE_URL).restore([tmp_path / "t"], ["k-"])

    @responses.activate
    def test_save(self, cache_dir):
        responses.add(responses.PUT, f"{BASE_URL}/entries/buildcache-linux-1", status=201)

        assert HttpCacheStore(BASE_URL).save([cache_dir], "buildcache-linux-1") is True

        request = responses.calls[0].request
        assert request.headers["Content-Type"] == "application/gzip"

    @responses.activate
    def test_save_quotes_key(self, cache_dir):
        responses.add(responses.PUT, f"{BASE_URL}/entries/a%2Fb%3A1", status=201)

        assert HttpCacheStore(BASE_URL).save([cache_dir], "a/b:1") is True

    @responses.activate
    def test_save_conflict(self, cache_dir):
        responses.add(responses.PUT, f"{BASE_URL}/entries/k-1", status=409)

        assert HttpCacheStore(BASE_URL).save([cache_dir], "k-1") is False

    @responses.activate
    def test_save_failure(self, cache_dir):
        responses.add(responses.PUT, f"{BASE_URL}/entries/k-1", status=500)

        with pytest.raises(CacheStoreError, match="upload failed"):
            HttpCacheStore(BASE_URL).save([cache_dir], "k-1")

    def test_empty_base_url(self):
        with pytest.raises(ValueError):
            HttpCacheStore("")
