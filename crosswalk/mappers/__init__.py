"""
crosswalk/mappers package marker.
"""

from crosswalk.mappers.weight_table import WEIGHT_TABLE_COLUMN_ALIASES, WeightTableFormatError
from crosswalk.mappers.zip_tract_mapper import (
    MappingResult,
    MappingScope,
    ZipTractMapper,
    build_tract_geoid,
)

__all__ = [
    "MappingResult",
    "MappingScope",
    "WEIGHT_TABLE_COLUMN_ALIASES",
    "WeightTableFormatError",
    "ZipTractMapper",
    "build_tract_geoid",
]
