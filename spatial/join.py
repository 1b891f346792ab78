"""
Tract-to-neighborhood spatial join.

Places every tract at its representative point and assigns the first
neighborhood (in input order) whose boundary covers that point. A tract
is never split across neighborhoods.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from functools import reduce
from types import MappingProxyType
from typing import Mapping, Sequence, Tuple

from shapely.errors import GEOSException

from crosswalk.constants import (
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    JOIN_METHOD_CENTROID,
    UNASSIGNED_NTA_CODE,
    UNASSIGNED_NTA_NAME,
)
from crosswalk.domain.geo import (
    NeighborhoodGeometry,
    RowIssue,
    TractGeometry,
    TractNeighborhoodAssignment,
)
from spatial.geometry import contains_point, is_supported, representative_point

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpatialJoinResult:
    """
    Phase 3 output: one assignment per tract, sorted by tract GEOID.
    """

    assignments: Tuple[TractNeighborhoodAssignment, ...] = ()
    issues: Tuple[RowIssue, ...] = ()

    @property
    def matched_count(self) -> int:
        return sum(1 for item in self.assignments if item.nta_code != UNASSIGNED_NTA_CODE)

    @property
    def unassigned_count(self) -> int:
        return len(self.assignments) - self.matched_count

    def lookup(self) -> Mapping[str, TractNeighborhoodAssignment]:
        """
        Read-only tract GEOID -> assignment table for this run.
        """
        return MappingProxyType({item.tract_geoid: item for item in self.assignments})


def unassigned(tract_geoid: str) -> TractNeighborhoodAssignment:
    return TractNeighborhoodAssignment(
        tract_geoid=tract_geoid,
        nta_code=UNASSIGNED_NTA_CODE,
        nta_name=UNASSIGNED_NTA_NAME,
        spatial_join_method=JOIN_METHOD_CENTROID,
        confidence=CONFIDENCE_LOW,
    )


def assign_tract(
    tract: TractGeometry,
    neighborhoods: Sequence[NeighborhoodGeometry],
) -> Tuple[TractNeighborhoodAssignment, Tuple[RowIssue, ...]]:
    """
    Assign one tract to a neighborhood.

    Returns:
        The assignment plus any issue explaining a low-confidence result.
        Geometry failures are reported as issues, never raised.
    """
    location = f"tract {tract.geoid}"

    if tract.geometry_error is not None:
        return unassigned(tract.geoid), (
            RowIssue(
                code="geometry_error",
                message=f"Tract boundary could not be parsed: {tract.geometry_error}",
                location=location,
                value=None,
            ),
        )

    if not is_supported(tract.geometry):
        geom_type = getattr(tract.geometry, "geom_type", type(tract.geometry).__name__)
        return unassigned(tract.geoid), (
            RowIssue(
                code="unsupported_geometry",
                message="Tract geometry type is not supported; tract left unassigned.",
                location=location,
                value=geom_type,
            ),
        )

    try:
        point = representative_point(tract.geometry)
        for neighborhood in neighborhoods:
            if contains_point(neighborhood.geometry, point):
                return (
                    TractNeighborhoodAssignment(
                        tract_geoid=tract.geoid,
                        nta_code=neighborhood.code,
                        nta_name=neighborhood.name,
                        spatial_join_method=JOIN_METHOD_CENTROID,
                        confidence=CONFIDENCE_HIGH,
                    ),
                    (),
                )
    except (GEOSException, ValueError, TypeError, AttributeError) as exc:
        logger.warning("Spatial join failed tract=%s error=%s", tract.geoid, exc)
        return unassigned(tract.geoid), (
            RowIssue(
                code="geometry_error",
                message=f"Centroid or containment test failed: {exc}",
                location=location,
                value=None,
            ),
        )

    return unassigned(tract.geoid), (
        RowIssue(
            code="unmatched_tract",
            message="Tract centroid is not inside any neighborhood boundary.",
            location=location,
            value=f"{point.x:.6f},{point.y:.6f}",
        ),
    )


def _fold_assignment(
    acc: SpatialJoinResult,
    outcome: Tuple[TractNeighborhoodAssignment, Tuple[RowIssue, ...]],
) -> SpatialJoinResult:
    assignment, issues = outcome
    return replace(
        acc,
        assignments=acc.assignments + (assignment,),
        issues=acc.issues + issues,
    )


class SpatialJoiner:
    """
    Runs the centroid-in-polygon join over all tracts in scope.

    Not responsible for:
        - Loading boundary files.
        - Merging assignments into crosswalk rows.
    """

    def join(
        self,
        tracts: Sequence[TractGeometry],
        neighborhoods: Sequence[NeighborhoodGeometry],
    ) -> SpatialJoinResult:
        ordered = sorted(tracts, key=lambda item: item.geoid)
        outcomes = (assign_tract(tract, neighborhoods) for tract in ordered)
        result = reduce(_fold_assignment, outcomes, SpatialJoinResult())

        logger.info(
            "Spatial join complete tracts=%s matched=%s unassigned=%s neighborhoods=%s",
            len(result.assignments),
            result.matched_count,
            result.unassigned_count,
            len(neighborhoods),
        )
        return result
