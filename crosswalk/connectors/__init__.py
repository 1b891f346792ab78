"""
crosswalk/connectors package marker.
"""

from crosswalk.connectors.file_cache import CacheEntryInfo, CacheMissError, FileCache
from crosswalk.connectors.source_fetcher import SourceFetcher, SourceFetchError

__all__ = [
    "CacheEntryInfo",
    "CacheMissError",
    "FileCache",
    "SourceFetchError",
    "SourceFetcher",
]
