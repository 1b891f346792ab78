"""
ZIP centroids derived from tract representative points.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Tuple

from shapely.geometry import Point

from crosswalk.domain.geo import CrosswalkRow, TractGeometry, ZipCentroid
from spatial.geometry import representative_point

_COORDINATE_PRECISION = 6


def compute_zip_centroids(
    rows: Iterable[CrosswalkRow],
    tracts: Iterable[TractGeometry],
) -> Tuple[ZipCentroid, ...]:
    """
    Weighted mean of each ZIP's tract centroids, using ``weight_tot``.

    ZIPs whose weights are all zero or missing fall back to an unweighted
    mean. Tracts without a usable geometry are ignored; ZIPs with no
    usable tract are omitted. Output is sorted by ZIP.
    """
    points: Dict[str, Point] = {}
    for tract in tracts:
        if tract.geometry is None:
            continue
        try:
            points[tract.geoid] = representative_point(tract.geometry)
        except ValueError:
            continue

    samples: Dict[str, List[Tuple[Point, float]]] = defaultdict(list)
    for row in rows:
        point = points.get(row.tract_geoid)
        if point is None:
            continue
        samples[row.zip].append((point, float(row.weight_tot or 0.0)))

    centroids: List[ZipCentroid] = []
    for zip_code in sorted(samples):
        longitude, latitude = _weighted_mean(samples[zip_code])
        centroids.append(
            ZipCentroid(
                zip=zip_code,
                longitude=round(longitude, _COORDINATE_PRECISION),
                latitude=round(latitude, _COORDINATE_PRECISION),
                tract_count=len(samples[zip_code]),
            )
        )
    return tuple(centroids)


def _weighted_mean(samples: List[Tuple[Point, float]]) -> Tuple[float, float]:
    total = sum(weight for _, weight in samples)
    if total <= 0:
        count = len(samples)
        return (
            sum(point.x for point, _ in samples) / count,
            sum(point.y for point, _ in samples) / count,
        )
    return (
        sum(point.x * weight for point, weight in samples) / total,
        sum(point.y * weight for point, weight in samples) / total,
    )
