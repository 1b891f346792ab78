"""
Neighborhood-level reductions of the crosswalk.
"""

from neighborhoods.centroids import compute_zip_centroids
from neighborhoods.clustering import build_clusters, merge_assignments

__all__ = [
    "build_clusters",
    "compute_zip_centroids",
    "merge_assignments",
]
