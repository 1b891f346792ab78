"""
Geometry primitives for the tract-to-neighborhood join.

Representative points and containment tests only; no I/O and no
knowledge of tracts or neighborhoods.
"""

from typing import List

from shapely.geometry import MultiPolygon, Point, Polygon
from shapely.geometry.base import BaseGeometry


SUPPORTED_GEOMETRY_TYPES = ("Polygon", "MultiPolygon")


class UnsupportedGeometryError(ValueError):
    """Raised for geometry types other than Polygon and MultiPolygon."""


def is_supported(geometry: BaseGeometry) -> bool:
    return geometry is not None and geometry.geom_type in SUPPORTED_GEOMETRY_TYPES


def polygon_parts(geometry: BaseGeometry) -> List[Polygon]:
    """
    Split a geometry into its polygon parts, in input order.

    Returns an empty list for unsupported geometry types.
    """
    if isinstance(geometry, Polygon):
        return [geometry]
    if isinstance(geometry, MultiPolygon):
        return list(geometry.geoms)
    return []


def representative_point(geometry: BaseGeometry) -> Point:
    """
    Point used to place a tract inside a neighborhood.

    Polygon:      area-weighted centroid.
    MultiPolygon: centroid of the first part only. Disjoint multi-part
                  tracts are placed by that part alone.

    Raises:
        UnsupportedGeometryError: For any other geometry type.
        ValueError: For empty geometries.
    """
    if not is_supported(geometry):
        geom_type = getattr(geometry, "geom_type", type(geometry).__name__)
        raise UnsupportedGeometryError(f"Unsupported geometry type: {geom_type}.")

    parts = polygon_parts(geometry)
    if not parts or parts[0].is_empty:
        raise ValueError("Cannot compute a centroid for an empty geometry.")

    centroid = parts[0].centroid
    if centroid.is_empty:
        raise ValueError("Centroid computation produced an empty point.")
    return centroid


def contains_point(geometry: BaseGeometry, point: Point) -> bool:
    """
    True when any polygon part contains the point; boundary points count as inside.
    """
    return any(part.covers(point) for part in polygon_parts(geometry))
