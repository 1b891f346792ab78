"""
Neighborhood clustering.

Folds per-tract neighborhood assignments into the crosswalk rows and
reduces the rows to one summary per neighborhood code. No geometry and
no I/O here.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Set, Tuple

from crosswalk.constants import UNASSIGNED_NTA_CODE, UNASSIGNED_NTA_NAME
from crosswalk.domain.geo import CrosswalkRow, NeighborhoodCluster, TractNeighborhoodAssignment


def merge_assignments(
    rows: Iterable[CrosswalkRow],
    assignments: Mapping[str, TractNeighborhoodAssignment],
) -> Tuple[CrosswalkRow, ...]:
    """
    Overwrite each row's neighborhood fields from the tract assignment table.

    Args:
        rows:        Crosswalk rows from the ZIP-to-tract phase.
        assignments: Read-only lookup keyed by tract GEOID.

    Returns:
        New rows in the same order. Tracts missing from the lookup get the
        UNASSIGNED sentinel.
    """
    merged: List[CrosswalkRow] = []
    for row in rows:
        assignment = assignments.get(row.tract_geoid)
        if assignment is None:
            merged.append(row.with_neighborhood(UNASSIGNED_NTA_CODE, UNASSIGNED_NTA_NAME))
        else:
            merged.append(row.with_neighborhood(assignment.nta_code, assignment.nta_name))
    return tuple(merged)


def build_clusters(rows: Iterable[CrosswalkRow]) -> Tuple[NeighborhoodCluster, ...]:
    """
    Group rows by neighborhood code, skipping the UNASSIGNED group.

    Tract GEOIDs and ZIPs are deduplicated and sorted before counting, so
    ``tract_count == len(tract_geoids)`` and ``zip_count == len(zips)``.
    Clusters are ordered by neighborhood code.
    """
    tracts_by_code: Dict[str, Set[str]] = defaultdict(set)
    zips_by_code: Dict[str, Set[str]] = defaultdict(set)
    names_by_code: Dict[str, str] = {}

    for row in rows:
        if row.nta_code == UNASSIGNED_NTA_CODE:
            continue
        tracts_by_code[row.nta_code].add(row.tract_geoid)
        zips_by_code[row.nta_code].add(row.zip)
        # Smallest non-empty name wins if a code carries several spellings.
        current = names_by_code.get(row.nta_code)
        if current is None or (row.nta_name and (not current or row.nta_name < current)):
            names_by_code[row.nta_code] = row.nta_name

    clusters: List[NeighborhoodCluster] = []
    for code in sorted(tracts_by_code):
        tract_geoids = tuple(sorted(tracts_by_code[code]))
        zips = tuple(sorted(zips_by_code[code]))
        clusters.append(
            NeighborhoodCluster(
                nta_code=code,
                nta_name=names_by_code.get(code, ""),
                tract_geoids=tract_geoids,
                zips=zips,
                tract_count=len(tract_geoids),
                zip_count=len(zips),
            )
        )
    return tuple(clusters)
