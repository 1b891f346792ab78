"""
crosswalk/config.py

Pipeline configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from crosswalk.constants import BRONX_ZIPS, CACHED_FILES
from crosswalk.domain.geo import SourceFile

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def load_env_files() -> None:
    """
    Load simple KEY=VALUE pairs from `.env` and `.env.local` (if present).
    Existing process environment variables are not overwritten.
    """

    for filename in (".env", ".env.local"):
        env_path = PROJECT_ROOT / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _get_csv_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    """
    Read a comma-separated list from environment variables.
    """

    raw = _get_optional_str_env(name)
    if raw is None:
        return default
    items = tuple(token.strip() for token in raw.split(",") if token.strip())
    return items or default


@dataclass(frozen=True)
class SourceHTTPSettings:
    """
    HTTP behavior for source downloads.
    """

    timeout_seconds: float = 60.0
    max_redirects: int = 1
    max_retries: int = 0
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0


@dataclass(frozen=True)
class SourceURLSettings:
    """
    Upstream dataset locations.
    """

    hud_url: str = "https://www.huduser.gov/sites/default/files/datasets/lihtc/zip-to-zcta.csv"
    hud_fallback_url: str | None = "https://www.huduser.gov/portal/datasets/lihtc/zip_to_zcta_2021.csv"
    census_tiger_url: str = "https://www2.census.gov/geo/tiger/TIGER2020/TRACT/tl_2020_36_tract.zip"
    nta_url: str = "https://data.cityofnewyork.us/api/geospatial/kwyp-6h3f?method=export&format=GeoJSON"


@dataclass(frozen=True)
class PipelineSettings:
    """
    Runtime settings for one crosswalk build.
    """

    zips: tuple[str, ...] = BRONX_ZIPS
    county_fips: str = "36005"
    state_fips: str = "36"
    cache_dir: Path = PROJECT_ROOT / "data" / "raw"
    use_cache: bool = True
    cache_max_age_days: int = 30
    output_dir: Path = PROJECT_ROOT / "data" / "geo"
    fail_on_fetch_error: bool = True
    weight_sum_tolerance: float = 0.05
    urls: SourceURLSettings = field(default_factory=SourceURLSettings)
    http: SourceHTTPSettings = field(default_factory=SourceHTTPSettings)

    def source_files(self) -> tuple[SourceFile, SourceFile, SourceFile]:
        """
        Build the three source descriptors for this configuration.
        """

        return (
            SourceFile(
                name="hud_zip_tract",
                url=self.urls.hud_url,
                cache_filename=CACHED_FILES["hud_zip_tract"],
                max_age_days=self.cache_max_age_days,
                fallback_url=self.urls.hud_fallback_url,
            ),
            SourceFile(
                name="census_tiger",
                url=self.urls.census_tiger_url,
                cache_filename=CACHED_FILES["census_tiger"],
                max_age_days=self.cache_max_age_days,
            ),
            SourceFile(
                name="nta_boundaries",
                url=self.urls.nta_url,
                cache_filename=CACHED_FILES["nta_geojson"],
                max_age_days=self.cache_max_age_days,
            ),
        )


def _resolve_dir(name: str, default: Path) -> Path:
    raw = _get_optional_str_env(name)
    if raw is None:
        return default
    path = Path(raw)
    return path if path.is_absolute() else PROJECT_ROOT / path


@lru_cache(maxsize=1)
def get_source_http_settings() -> SourceHTTPSettings:
    """
    Return source download HTTP settings from environment variables.
    """

    return SourceHTTPSettings(
        timeout_seconds=max(1.0, _get_float_env("SOURCE_HTTP_TIMEOUT_SECONDS", 60.0)),
        max_redirects=max(0, _get_int_env("SOURCE_HTTP_MAX_REDIRECTS", 1)),
        max_retries=max(0, _get_int_env("SOURCE_HTTP_MAX_RETRIES", 0)),
        backoff_initial_seconds=max(0.1, _get_float_env("SOURCE_HTTP_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("SOURCE_HTTP_BACKOFF_MULTIPLIER", 2.0)),
    )


@lru_cache(maxsize=1)
def get_source_url_settings() -> SourceURLSettings:
    """
    Return upstream dataset URLs from environment variables.
    """

    defaults = SourceURLSettings()
    return SourceURLSettings(
        hud_url=_get_str_env("HUD_ZIP_TRACT_URL", defaults.hud_url),
        hud_fallback_url=_get_optional_str_env("HUD_ZIP_TRACT_FALLBACK_URL") or defaults.hud_fallback_url,
        census_tiger_url=_get_str_env("CENSUS_TIGER_TRACT_URL", defaults.census_tiger_url),
        nta_url=_get_str_env("NTA_BOUNDARIES_URL", defaults.nta_url),
    )


@lru_cache(maxsize=1)
def get_pipeline_settings() -> PipelineSettings:
    """
    Return cached pipeline settings from environment variables.
    """

    defaults = PipelineSettings()
    return PipelineSettings(
        zips=_get_csv_env("CROSSWALK_ZIPS", defaults.zips),
        county_fips=_get_str_env("CROSSWALK_COUNTY_FIPS", defaults.county_fips),
        state_fips=_get_str_env("CROSSWALK_STATE_FIPS", defaults.state_fips),
        cache_dir=_resolve_dir("CROSSWALK_CACHE_DIR", defaults.cache_dir),
        use_cache=_get_bool_env("CROSSWALK_USE_CACHE", defaults.use_cache),
        cache_max_age_days=max(0, _get_int_env("CROSSWALK_CACHE_MAX_AGE_DAYS", defaults.cache_max_age_days)),
        output_dir=_resolve_dir("CROSSWALK_OUTPUT_DIR", defaults.output_dir),
        fail_on_fetch_error=_get_bool_env("CROSSWALK_FAIL_ON_FETCH_ERROR", defaults.fail_on_fetch_error),
        weight_sum_tolerance=max(0.0, _get_float_env("CROSSWALK_WEIGHT_SUM_TOLERANCE", defaults.weight_sum_tolerance)),
        urls=get_source_url_settings(),
        http=get_source_http_settings(),
    )
