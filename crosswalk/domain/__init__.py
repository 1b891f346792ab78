"""
crosswalk/domain package marker.
"""

from crosswalk.domain.geo import (
    AcquiredSources,
    CrosswalkRow,
    NeighborhoodCluster,
    NeighborhoodGeometry,
    PhaseStatus,
    RowIssue,
    SourceFile,
    TractGeometry,
    TractNeighborhoodAssignment,
    WeightRow,
    ZipCentroid,
)
from crosswalk.domain.report import ValidationIssue, ValidationReport, ValidationSummary

__all__ = [
    "AcquiredSources",
    "CrosswalkRow",
    "NeighborhoodCluster",
    "NeighborhoodGeometry",
    "PhaseStatus",
    "RowIssue",
    "SourceFile",
    "TractGeometry",
    "TractNeighborhoodAssignment",
    "ValidationIssue",
    "ValidationReport",
    "ValidationSummary",
    "WeightRow",
    "ZipCentroid",
]
