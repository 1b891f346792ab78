"""
Readers for tract and neighborhood boundary files.

Tract boundaries arrive either as a TIGER/Line shapefile archive or as
GeoJSON; neighborhood boundaries arrive as GeoJSON whose property names
differ between data vintages.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping, Optional, Sequence, Tuple

import geopandas as gpd
from shapely.errors import ShapelyError
from shapely.geometry import shape
from shapely.geometry.base import BaseGeometry

from crosswalk.constants import UNKNOWN_NTA_CODE, UNKNOWN_NTA_NAME
from crosswalk.domain.geo import NeighborhoodGeometry, TractGeometry

logger = logging.getLogger(__name__)

# Candidate property names, tried in order.
NTA_CODE_ALIASES: tuple[str, ...] = (
    "NTA_CODE",
    "NTA_code",
    "NTA",
    "nta_code",
    "ntacode",
    "NTACode",
    "nta2020",
    "NTA2020",
)
NTA_NAME_ALIASES: tuple[str, ...] = (
    "NTA_NAME",
    "NTA_name",
    "nta_name",
    "ntaname",
    "NTAName",
)
TRACT_GEOID_ALIASES: tuple[str, ...] = ("GEOID", "GEOID20", "geoid", "geoid20")

_ZIP_MAGIC = b"PK\x03\x04"
_WGS84_EPSG = 4326

# (index, properties, geometry, parse error)
Feature = Tuple[int, Mapping[str, Any], Optional[BaseGeometry], Optional[str]]


class BoundaryFormatError(ValueError):
    """
    Raised when a boundary file cannot be parsed.
    """


def resolve_property(
    properties: Mapping[str, Any] | None,
    aliases: Sequence[str],
    default: str,
) -> str:
    """
    Return the first non-blank property among ``aliases``, else ``default``.
    """

    if not properties:
        return default
    for alias in aliases:
        value = properties.get(alias)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return default


def load_neighborhood_geometries(content: bytes) -> tuple[NeighborhoodGeometry, ...]:
    """
    Parse neighborhood GeoJSON into canonical (code, name, geometry) records.

    Input order is preserved; the spatial join assigns the first match.
    """

    neighborhoods: list[NeighborhoodGeometry] = []
    for index, properties, geometry, error in _iter_geojson_features(content):
        if error is not None:
            logger.warning("Neighborhood feature with invalid geometry skipped index=%s error=%s", index, error)
            continue
        if geometry is None:
            logger.warning("Neighborhood feature without geometry skipped index=%s", index)
            continue
        neighborhoods.append(
            NeighborhoodGeometry(
                code=resolve_property(properties, NTA_CODE_ALIASES, UNKNOWN_NTA_CODE),
                name=resolve_property(properties, NTA_NAME_ALIASES, UNKNOWN_NTA_NAME),
                geometry=geometry,
            )
        )

    unknown = sum(1 for item in neighborhoods if item.code == UNKNOWN_NTA_CODE)
    if unknown:
        logger.warning("Neighborhood features without a recognized code count=%s", unknown)
    logger.info("Loaded neighborhood boundaries count=%s", len(neighborhoods))
    return tuple(neighborhoods)


def load_tract_geometries(
    content: bytes,
    *,
    state_fips: str,
    county_fips: str,
) -> tuple[TractGeometry, ...]:
    """
    Parse tract boundaries and keep the tracts of one county, sorted by GEOID.

    Args:
        content:     Shapefile ZIP archive or GeoJSON bytes.
        state_fips:  2-digit state code.
        county_fips: 5-digit state+county code (a 3-digit county code is
                     also accepted).
    """

    county_5 = county_fips if len(county_fips) == 5 else state_fips.zfill(2) + county_fips.zfill(3)

    if content[:4] == _ZIP_MAGIC:
        features: Iterable[Feature] = _iter_shapefile_archive(content)
    else:
        features = _iter_geojson_features(content)

    by_geoid: dict[str, TractGeometry] = {}
    for index, properties, geometry, error in features:
        geoid = _tract_geoid(properties)
        if geoid is None:
            logger.warning("Tract feature without a usable GEOID skipped index=%s", index)
            continue
        if geoid[:5] != county_5:
            continue
        if error is not None:
            logger.warning("Tract geometry could not be parsed geoid=%s error=%s", geoid, error)
        elif geometry is None:
            logger.warning("Tract feature without geometry skipped geoid=%s", geoid)
            continue
        if geoid in by_geoid:
            logger.warning("Duplicate tract feature ignored geoid=%s", geoid)
            continue
        by_geoid[geoid] = TractGeometry(
            geoid=geoid,
            state_fips=geoid[:2],
            county_fips=geoid[:5],
            geometry=geometry,
            geometry_error=error,
        )

    tracts = tuple(by_geoid[geoid] for geoid in sorted(by_geoid))
    logger.info("Loaded tract boundaries county=%s count=%s", county_5, len(tracts))
    return tracts


def _tract_geoid(properties: Mapping[str, Any]) -> str | None:
    raw = resolve_property(properties, TRACT_GEOID_ALIASES, "")
    digits = "".join(ch for ch in raw if ch.isdigit())
    if len(digits) >= 11:
        return digits[-11:]

    state = resolve_property(properties, ("STATEFP", "STATEFP20", "statefp"), "")
    county = resolve_property(properties, ("COUNTYFP", "COUNTYFP20", "countyfp"), "")
    tract = resolve_property(properties, ("TRACTCE", "TRACTCE20", "tractce"), "")
    if state and county and tract:
        candidate = state.zfill(2) + county.zfill(3) + tract.zfill(6)
        if candidate.isdigit() and len(candidate) == 11:
            return candidate
    return None


def _iter_geojson_features(content: bytes) -> Iterator[Feature]:
    try:
        document = json.loads(content.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise BoundaryFormatError(f"Boundary file is not valid GeoJSON: {exc}") from exc

    if not isinstance(document, dict) or document.get("type") != "FeatureCollection":
        raise BoundaryFormatError("Boundary file must be a GeoJSON FeatureCollection.")

    for index, feature in enumerate(document.get("features") or []):
        properties = feature.get("properties") or {}
        geometry, error = _parse_geometry(feature.get("geometry"))
        yield index, properties, geometry, error


def _parse_geometry(raw_geometry: Any) -> tuple[BaseGeometry | None, str | None]:
    if not raw_geometry:
        return None, None
    try:
        return shape(raw_geometry), None
    except (ShapelyError, ValueError, TypeError, AttributeError, KeyError) as exc:
        return None, f"{type(exc).__name__}: {exc}"


def _iter_shapefile_archive(content: bytes) -> Iterator[Feature]:
    with tempfile.TemporaryDirectory() as tmp_dir:
        archive_path = Path(tmp_dir) / "tracts.zip"
        archive_path.write_bytes(content)
        try:
            frame = gpd.read_file(archive_path)
        except Exception as exc:  # noqa: BLE001
            raise BoundaryFormatError(f"Tract shapefile archive could not be read: {exc}") from exc

    if frame.crs is not None and frame.crs.to_epsg() != _WGS84_EPSG:
        frame = frame.to_crs(epsg=_WGS84_EPSG)

    attributes = frame.drop(columns=frame.geometry.name).to_dict("records")
    for index, (properties, geometry) in enumerate(zip(attributes, frame.geometry)):
        yield index, properties, geometry, None
