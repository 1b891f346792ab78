"""
crosswalk/domain/geo.py

Domain records passed between pipeline phases.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Any

from shapely.geometry.base import BaseGeometry

from crosswalk.constants import UNASSIGNED_NTA_CODE, UNASSIGNED_NTA_NAME


@dataclass(frozen=True)
class SourceFile:
    """
    One external dataset and where it is cached.
    """

    name: str
    url: str
    cache_filename: str
    max_age_days: int = 30
    fallback_url: str | None = None


@dataclass(frozen=True)
class WeightRow:
    """
    One in-scope, validated row of the ZIP-to-tract weight table.
    """

    zip: str
    county_fips: str
    tract: str
    state_fips: str
    res_ratio: float
    tot_ratio: float


@dataclass(frozen=True)
class CrosswalkRow:
    """
    ZIP-to-tract row with its tract GEOID and neighborhood assignment.
    """

    zip: str
    county_fips: str
    state_fips: str
    tract_geoid: str
    tract: str
    weight_res: float | None
    weight_tot: float | None
    nta_code: str = UNASSIGNED_NTA_CODE
    nta_name: str = UNASSIGNED_NTA_NAME

    @property
    def key(self) -> tuple[str, str]:
        return (self.zip, self.tract_geoid)

    def with_neighborhood(self, nta_code: str, nta_name: str) -> CrosswalkRow:
        return replace(self, nta_code=nta_code, nta_name=nta_name)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TractGeometry:
    """
    Tract boundary keyed by its 11-digit GEOID.

    ``geometry`` is None when the boundary could not be parsed; the parse
    failure is kept in ``geometry_error`` so the tract still reaches the join.
    """

    geoid: str
    state_fips: str
    county_fips: str
    geometry: BaseGeometry | None
    geometry_error: str | None = None


@dataclass(frozen=True)
class NeighborhoodGeometry:
    """
    Neighborhood boundary with its canonical code and name.
    """

    code: str
    name: str
    geometry: BaseGeometry


@dataclass(frozen=True)
class TractNeighborhoodAssignment:
    """
    Spatial join outcome for one tract.
    """

    tract_geoid: str
    nta_code: str
    nta_name: str
    spatial_join_method: str
    confidence: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class NeighborhoodCluster:
    """
    NTA-level summary of constituent tracts and ZIPs.
    """

    nta_code: str
    nta_name: str
    tract_geoids: tuple[str, ...]
    zips: tuple[str, ...]
    tract_count: int
    zip_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "nta_code": self.nta_code,
            "nta_name": self.nta_name,
            "tract_geoids": list(self.tract_geoids),
            "zips": list(self.zips),
            "tract_count": self.tract_count,
            "zip_count": self.zip_count,
        }


@dataclass(frozen=True)
class ZipCentroid:
    """
    Weighted representative point of one ZIP.
    """

    zip: str
    longitude: float
    latitude: float
    tract_count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RowIssue:
    """
    One itemized data problem found while processing a row or tract.
    """

    code: str
    message: str
    location: str | None = None
    value: str | None = None


@dataclass(frozen=True)
class PhaseStatus:
    """
    Execution state of one pipeline phase.
    """

    phase: int
    name: str
    status: str = "pending"
    started_at: datetime | None = None
    finished_at: datetime | None = None
    items_processed: int | None = None
    error: str | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()


@dataclass(frozen=True)
class AcquiredSources:
    """
    Raw bytes of the three upstream datasets.
    """

    weight_table: bytes
    tract_boundaries: bytes
    neighborhood_boundaries: bytes
    used_stale_cache: tuple[str, ...] = field(default_factory=tuple)
