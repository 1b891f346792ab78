"""
Spatial join of Census tracts to neighborhood areas.
"""

from spatial.geometry import contains_point, representative_point
from spatial.join import SpatialJoiner, SpatialJoinResult, assign_tract
from spatial.loaders import (
    NTA_CODE_ALIASES,
    NTA_NAME_ALIASES,
    load_neighborhood_geometries,
    load_tract_geometries,
    resolve_property,
)

__all__ = [
    "NTA_CODE_ALIASES",
    "NTA_NAME_ALIASES",
    "SpatialJoinResult",
    "SpatialJoiner",
    "assign_tract",
    "contains_point",
    "load_neighborhood_geometries",
    "load_tract_geometries",
    "representative_point",
    "resolve_property",
]
