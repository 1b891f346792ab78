from __future__ import annotations

import os
import time

import pytest

from crosswalk.connectors.file_cache import CacheMissError, FileCache


@pytest.fixture()
def cache(tmp_path) -> FileCache:
    return FileCache(cache_dir=tmp_path / "raw")


class TestFileCache:
    def test_creates_cache_directory(self, tmp_path) -> None:
        target = tmp_path / "nested" / "raw"
        FileCache(cache_dir=target)
        assert target.is_dir()

    def test_save_then_load_returns_same_bytes(self, cache: FileCache) -> None:
        cache.save("hud.csv", b"ZIP,TRACT\n")
        assert cache.exists("hud.csv")
        assert cache.load("hud.csv") == b"ZIP,TRACT\n"

    def test_load_text_strips_bom(self, cache: FileCache) -> None:
        cache.save("hud.csv", "\ufeffZIP".encode("utf-8"))
        assert cache.load_text("hud.csv") == "ZIP"

    def test_missing_file_raises_cache_miss(self, cache: FileCache) -> None:
        with pytest.raises(CacheMissError):
            cache.load("absent.geojson")

    def test_cache_miss_is_file_not_found(self) -> None:
        assert issubclass(CacheMissError, FileNotFoundError)

    def test_fresh_inside_window(self, cache: FileCache) -> None:
        cache.save("nta.geojson", b"{}")
        assert cache.is_fresh("nta.geojson", max_age_days=30)

    def test_stale_outside_window(self, cache: FileCache) -> None:
        path = cache.save("nta.geojson", b"{}")
        old = time.time() - 40 * 24 * 60 * 60
        os.utime(path, (old, old))
        assert not cache.is_fresh("nta.geojson", max_age_days=30)

    def test_absent_file_is_not_fresh(self, cache: FileCache) -> None:
        assert not cache.is_fresh("nta.geojson", max_age_days=30)

    def test_disabled_cache_is_never_fresh(self, tmp_path) -> None:
        cache = FileCache(cache_dir=tmp_path, use_cache=False)
        cache.save("nta.geojson", b"{}")
        assert not cache.is_fresh("nta.geojson", max_age_days=30)
        assert cache.exists("nta.geojson")

    def test_list_files_sorted_without_partial_writes(self, cache: FileCache) -> None:
        cache.save("b.csv", b"1")
        cache.save("a.csv", b"2")
        (cache.cache_dir / "c.csv.part").write_bytes(b"partial")
        assert cache.list_files() == ["a.csv", "b.csv"]

    def test_info_reports_size(self, cache: FileCache) -> None:
        cache.save("a.csv", b"12345")
        entry = cache.info("a.csv")
        assert entry is not None
        assert entry.size_bytes == 5
        assert entry.age_days >= 0
        assert cache.info("missing.csv") is None

    def test_clear_removes_directory(self, cache: FileCache) -> None:
        cache.save("a.csv", b"1")
        cache.clear()
        assert cache.list_files() == []
