"""
crosswalk/connectors/source_fetcher.py

Download-or-reuse logic for the pipeline's three upstream datasets.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence

import requests

from crosswalk.config import SourceHTTPSettings
from crosswalk.connectors.file_cache import FileCache
from crosswalk.domain.geo import AcquiredSources, SourceFile

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class SourceFetchError(RuntimeError):
    """
    Raised when a source cannot be downloaded from its primary or fallback URL.
    """

    def __init__(self, *, source: str, causes: Sequence[str]) -> None:
        self.source = source
        self.causes = tuple(causes)
        super().__init__(f"{source}: download failed ({'; '.join(self.causes)}).")


class SourceFetcher:
    """
    Returns source bytes, reusing the local cache inside its freshness window.
    """

    def __init__(
        self,
        *,
        cache: FileCache,
        http_settings: SourceHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        self._cache = cache
        self._session = session or requests.Session()
        self._session.max_redirects = http_settings.max_redirects
        self._timeout_seconds = http_settings.timeout_seconds
        self._max_retries = http_settings.max_retries
        self._backoff_initial_seconds = http_settings.backoff_initial_seconds
        self._backoff_multiplier = http_settings.backoff_multiplier

    def ensure_fresh(self, source: SourceFile) -> bytes:
        """
        Return cached bytes when fresh, otherwise download and cache them.
        """

        if self._cache.is_fresh(source.cache_filename, source.max_age_days):
            logger.info("Using cached source=%s file=%s", source.name, source.cache_filename)
            return self._cache.load(source.cache_filename)

        causes: list[str] = []
        for url in self._candidate_urls(source):
            try:
                content = self._download(source=source.name, url=url)
            except requests.RequestException as exc:
                causes.append(f"{url}: {exc}")
                logger.error("Source download failed source=%s url=%s error=%s", source.name, url, exc)
                continue
            self._cache.save(source.cache_filename, content)
            return content

        raise SourceFetchError(source=source.name, causes=causes)

    def acquire_all(
        self,
        sources: Sequence[SourceFile],
        *,
        fail_on_error: bool = True,
    ) -> AcquiredSources:
        """
        Ensure all three sources are available locally and return their bytes.

        Expects sources in pipeline order: weight table, tract boundaries,
        neighborhood boundaries.
        """

        if len(sources) != 3:
            raise ValueError(f"Expected 3 sources, got {len(sources)}.")

        payloads: list[bytes] = []
        stale: list[str] = []
        for source in sources:
            try:
                payloads.append(self.ensure_fresh(source))
            except SourceFetchError:
                if fail_on_error or not self._cache.exists(source.cache_filename):
                    raise
                logger.warning(
                    "Source download failed, proceeding with cached copy source=%s file=%s",
                    source.name,
                    source.cache_filename,
                )
                payloads.append(self._cache.load(source.cache_filename))
                stale.append(source.name)

        self._log_inventory()
        return AcquiredSources(
            weight_table=payloads[0],
            tract_boundaries=payloads[1],
            neighborhood_boundaries=payloads[2],
            used_stale_cache=tuple(stale),
        )

    @staticmethod
    def _candidate_urls(source: SourceFile) -> list[str]:
        urls = [source.url]
        if source.fallback_url and source.fallback_url != source.url:
            urls.append(source.fallback_url)
        return urls

    def _download(self, *, source: str, url: str) -> bytes:
        """
        GET one URL with a fixed timeout and optional backoff on retryable statuses.
        """

        logger.info("Downloading source=%s url=%s", source, url)
        last_error: requests.RequestException | None = None
        for attempt in range(self._max_retries + 1):
            try:
                response = self._session.get(url, timeout=self._timeout_seconds, allow_redirects=True)
                if response.status_code in RETRYABLE_STATUS_CODES:
                    raise requests.HTTPError(
                        f"Retryable HTTP status code: {response.status_code}",
                        response=response,
                    )
                response.raise_for_status()
                return response.content
            except requests.HTTPError as exc:
                last_error = exc
                status_code = exc.response.status_code if exc.response is not None else None
                if status_code not in RETRYABLE_STATUS_CODES:
                    raise
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = exc

            if attempt >= self._max_retries:
                break

            backoff_seconds = self._backoff_initial_seconds * (self._backoff_multiplier**attempt)
            logger.warning(
                "Source download retry source=%s attempt=%s/%s wait_seconds=%.2f url=%s",
                source,
                attempt + 1,
                self._max_retries,
                backoff_seconds,
                url,
            )
            time.sleep(backoff_seconds)

        raise requests.RequestException(
            f"Download of {url} failed after {self._max_retries + 1} attempt(s): {last_error}"
        ) from last_error

    def _log_inventory(self) -> None:
        for filename in self._cache.list_files():
            entry = self._cache.info(filename)
            if entry is None:
                continue
            logger.info(
                "Cache entry file=%s size_mb=%.2f age_days=%.1f",
                filename,
                entry.size_bytes / (1024 * 1024),
                entry.age_days,
            )
