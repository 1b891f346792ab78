"""
crosswalk/mappers/weight_table.py

Parsing and column normalization for the HUD ZIP-to-tract weight table.
"""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterator, Mapping, Sequence

logger = logging.getLogger(__name__)

# Known historical spellings of each logical field, tried in order.
WEIGHT_TABLE_COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "zip_code": ("ZIP_CODE", "zip_code", "USPS_ZIP_CODE", "ZIP", "zip"),
    "county_fips": ("COUNTY_FIPS", "county_fips", "COUNTYFP", "COUNTY", "county"),
    "tract": ("TRACT", "tract", "CENSUS_TRACT", "TRACTCE", "GEOID"),
    "state_fips": ("STATE_FIPS", "state_fips", "STATEFP", "STATE", "state"),
    "res_ratio": ("RES_RATIO", "res_ratio", "RESIDENTIAL_RATIO", "res_ratio_pct"),
    "tot_ratio": ("TOT_RATIO", "tot_ratio", "TOTAL_RATIO", "tot_ratio_pct"),
}

REQUIRED_COLUMNS: tuple[str, ...] = ("zip_code", "tract", "res_ratio", "tot_ratio")


class WeightTableFormatError(ValueError):
    """
    Raised when the weight table cannot be read or lacks required columns.
    """


def resolve_columns(headers: Sequence[str]) -> dict[str, str]:
    """
    Map each logical field to the first matching source header.

    Matching is exact first, then case-insensitive. Optional fields
    (county, state) may be absent.
    """

    by_stripped: dict[str, str] = {}
    by_lower: dict[str, str] = {}
    for header in headers:
        by_stripped.setdefault(header.strip(), header)
        by_lower.setdefault(header.strip().lower(), header)
    stripped = list(by_stripped)

    resolved: dict[str, str] = {}
    for field_name, aliases in WEIGHT_TABLE_COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in by_stripped:
                resolved[field_name] = by_stripped[alias]
                break
        else:
            for alias in aliases:
                match = by_lower.get(alias.lower())
                if match is not None:
                    resolved[field_name] = match
                    break

    missing = [name for name in REQUIRED_COLUMNS if name not in resolved]
    if missing:
        raise WeightTableFormatError(
            f"Weight table is missing required columns: {', '.join(missing)}. "
            f"Found: {list(stripped)}"
        )
    return resolved


def normalize_row(raw_row: Mapping[str, str | None], columns: Mapping[str, str]) -> dict[str, str | None]:
    """
    Project one raw CSV row onto the canonical field names.
    """

    normalized: dict[str, str | None] = {}
    for field_name in WEIGHT_TABLE_COLUMN_ALIASES:
        source = columns.get(field_name)
        value = raw_row.get(source) if source is not None else None
        normalized[field_name] = value.strip() if isinstance(value, str) else value
    return normalized


def iter_weight_table(content: bytes) -> Iterator[tuple[int, dict[str, str | None]]]:
    """
    Yield (row_number, normalized_row) for every data row of the CSV.

    Row numbers are 1-based and count the header as row 1.
    """

    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise WeightTableFormatError("Weight table must be UTF-8 encoded.") from exc

    reader = csv.DictReader(io.StringIO(text, newline=""))
    headers = reader.fieldnames or []
    if not headers:
        raise WeightTableFormatError("Weight table header row is missing.")

    columns = resolve_columns(headers)
    logger.debug("Weight table columns resolved mapping=%s", columns)

    try:
        for row_number, raw_row in enumerate(reader, start=2):
            yield row_number, normalize_row(raw_row, columns)
    except csv.Error as exc:
        raise WeightTableFormatError(f"Invalid CSV format: {exc}") from exc
