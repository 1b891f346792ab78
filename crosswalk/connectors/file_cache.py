"""
crosswalk/connectors/file_cache.py

Local cache of downloaded source files.
"""

from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_SECONDS_PER_DAY = 24 * 60 * 60


class CacheMissError(FileNotFoundError):
    """
    Raised when a required cache file is absent.
    """


@dataclass(frozen=True)
class CacheEntryInfo:
    """
    Size and age of one cached file.
    """

    filename: str
    size_bytes: int
    age_seconds: float

    @property
    def age_days(self) -> float:
        return self.age_seconds / _SECONDS_PER_DAY


class FileCache:
    """
    Reads and writes source files under one cache directory.
    """

    def __init__(self, *, cache_dir: Path, use_cache: bool = True) -> None:
        self._cache_dir = Path(cache_dir)
        self._use_cache = use_cache
        if not self._cache_dir.exists():
            self._cache_dir.mkdir(parents=True, exist_ok=True)
            logger.info("Created cache directory path=%s", self._cache_dir)

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def get_path(self, filename: str) -> Path:
        return self._cache_dir / filename

    def exists(self, filename: str) -> bool:
        return self.get_path(filename).is_file()

    def is_fresh(self, filename: str, max_age_days: float) -> bool:
        """
        Return True when caching is enabled and the file is younger than the window.
        """

        if not self._use_cache:
            return False

        entry = self.info(filename)
        if entry is None:
            return False

        fresh = entry.age_seconds < max_age_days * _SECONDS_PER_DAY
        if fresh:
            logger.debug("Cache hit file=%s age_days=%.1f", filename, entry.age_days)
        return fresh

    def save(self, filename: str, content: bytes) -> Path:
        path = self.get_path(filename)
        tmp_path = path.with_name(path.name + ".part")
        tmp_path.write_bytes(content)
        tmp_path.replace(path)
        logger.info("Cached file=%s size_kb=%.1f", filename, len(content) / 1024)
        return path

    def load(self, filename: str) -> bytes:
        path = self.get_path(filename)
        if not path.is_file():
            raise CacheMissError(f"Cache file not found: {filename}")
        return path.read_bytes()

    def load_text(self, filename: str) -> str:
        return self.load(filename).decode("utf-8-sig")

    def list_files(self) -> list[str]:
        if not self._cache_dir.exists():
            return []
        return sorted(
            entry.name
            for entry in self._cache_dir.iterdir()
            if entry.is_file() and not entry.name.endswith(".part")
        )

    def info(self, filename: str) -> CacheEntryInfo | None:
        path = self.get_path(filename)
        if not path.is_file():
            return None
        stat = path.stat()
        return CacheEntryInfo(
            filename=filename,
            size_bytes=stat.st_size,
            age_seconds=max(0.0, time.time() - stat.st_mtime),
        )

    def clear(self) -> None:
        if self._cache_dir.exists():
            shutil.rmtree(self._cache_dir)
            logger.info("Cache cleared path=%s", self._cache_dir)
