from __future__ import annotations

import unittest
from types import MappingProxyType

from shapely.geometry import MultiPolygon, Point, box

from crosswalk.domain.geo import CrosswalkRow, TractGeometry, TractNeighborhoodAssignment
from neighborhoods import build_clusters, compute_zip_centroids, merge_assignments


def _row(zip_code: str, geoid: str, weight: float = 0.5, nta_code: str = "UNASSIGNED", nta_name: str = "") -> CrosswalkRow:
    return CrosswalkRow(
        zip=zip_code,
        county_fips=geoid[:5],
        state_fips=geoid[:2],
        tract_geoid=geoid,
        tract=geoid[5:],
        weight_res=weight,
        weight_tot=weight,
        nta_code=nta_code,
        nta_name=nta_name,
    )


def _assignment(geoid: str, code: str, name: str) -> TractNeighborhoodAssignment:
    return TractNeighborhoodAssignment(
        tract_geoid=geoid,
        nta_code=code,
        nta_name=name,
        spatial_join_method="centroid",
        confidence="high",
    )


class TestMergeAssignments(unittest.TestCase):
    def test_rows_take_assignment_or_unassigned(self) -> None:
        rows = (_row("10456", "36005012300"), _row("10456", "36005099900"))
        lookup = MappingProxyType({"36005012300": _assignment("36005012300", "BX35", "Morrisania-Melrose")})

        merged = merge_assignments(rows, lookup)

        self.assertEqual([row.nta_code for row in merged], ["BX35", "UNASSIGNED"])
        self.assertEqual(merged[0].nta_name, "Morrisania-Melrose")
        self.assertEqual(merged[1].nta_name, "")
        # inputs are left untouched
        self.assertEqual(rows[0].nta_code, "UNASSIGNED")


class TestBuildClusters(unittest.TestCase):
    def test_two_tracts_one_zip_form_one_cluster(self) -> None:
        rows = (
            _row("10456", "36005012300", 0.6, "BX35", "Morrisania-Melrose"),
            _row("10456", "36005012400", 0.4, "BX35", "Morrisania-Melrose"),
        )

        clusters = build_clusters(rows)

        self.assertEqual(len(clusters), 1)
        self.assertEqual(
            clusters[0].to_dict(),
            {
                "nta_code": "BX35",
                "nta_name": "Morrisania-Melrose",
                "tract_geoids": ["36005012300", "36005012400"],
                "zips": ["10456"],
                "tract_count": 2,
                "zip_count": 1,
            },
        )

    def test_unassigned_tracts_are_excluded(self) -> None:
        rows = (
            _row("10456", "36005012300", nta_code="BX35", nta_name="Morrisania-Melrose"),
            _row("10456", "36005099900"),
        )

        clusters = build_clusters(rows)

        self.assertEqual([cluster.nta_code for cluster in clusters], ["BX35"])
        self.assertNotIn("36005099900", clusters[0].tract_geoids)

    def test_counts_match_unique_members(self) -> None:
        rows = (
            _row("10457", "36005012300", nta_code="BX14", nta_name="East Concourse"),
            _row("10456", "36005012300", nta_code="BX14", nta_name="East Concourse"),
            _row("10456", "36005012500", nta_code="BX14", nta_name="East Concourse"),
            _row("10451", "36005006300", nta_code="BX01", nta_name="Claremont-Bathgate"),
        )

        clusters = build_clusters(rows)

        self.assertEqual([cluster.nta_code for cluster in clusters], ["BX01", "BX14"])
        for cluster in clusters:
            self.assertEqual(cluster.tract_count, len(set(cluster.tract_geoids)))
            self.assertEqual(cluster.zip_count, len(set(cluster.zips)))
            self.assertEqual(list(cluster.tract_geoids), sorted(cluster.tract_geoids))
            self.assertEqual(list(cluster.zips), sorted(cluster.zips))
        self.assertEqual(clusters[1].zips, ("10456", "10457"))
        self.assertEqual(clusters[1].tract_count, 2)

    def test_non_empty_name_preferred(self) -> None:
        rows = (
            _row("10456", "36005012300", nta_code="BX35", nta_name=""),
            _row("10456", "36005012400", nta_code="BX35", nta_name="Morrisania-Melrose"),
        )
        self.assertEqual(build_clusters(rows)[0].nta_name, "Morrisania-Melrose")

    def test_no_rows_no_clusters(self) -> None:
        self.assertEqual(build_clusters(()), ())


class TestZipCentroids(unittest.TestCase):
    def test_weighted_mean_of_tract_centroids(self) -> None:
        tracts = (
            TractGeometry("36005012300", "36", "36005", box(0, 0, 2, 2)),
            TractGeometry("36005012400", "36", "36005", box(10, 0, 12, 2)),
        )
        rows = (
            _row("10456", "36005012300", 0.75),
            _row("10456", "36005012400", 0.25),
        )

        centroids = compute_zip_centroids(rows, tracts)

        self.assertEqual(len(centroids), 1)
        self.assertEqual(centroids[0].zip, "10456")
        self.assertAlmostEqual(centroids[0].longitude, 3.5)
        self.assertAlmostEqual(centroids[0].latitude, 1.0)
        self.assertEqual(centroids[0].tract_count, 2)

    def test_zero_weights_fall_back_to_plain_mean(self) -> None:
        tracts = (
            TractGeometry("36005012300", "36", "36005", box(0, 0, 2, 2)),
            TractGeometry("36005012400", "36", "36005", box(10, 0, 12, 2)),
        )
        rows = (_row("10456", "36005012300", 0.0), _row("10456", "36005012400", 0.0))

        centroid = compute_zip_centroids(rows, tracts)[0]

        self.assertAlmostEqual(centroid.longitude, 6.0)

    def test_unusable_geometry_and_unknown_tracts_skipped(self) -> None:
        tracts = (
            TractGeometry("36005012300", "36", "36005", Point(0, 0)),
            TractGeometry("36005012400", "36", "36005", MultiPolygon([box(4, 4, 6, 6)])),
        )
        rows = (
            _row("10457", "36005012300"),
            _row("10456", "36005012400"),
            _row("10456", "36005099900"),
        )

        centroids = compute_zip_centroids(rows, tracts)

        self.assertEqual([item.zip for item in centroids], ["10456"])
        self.assertEqual(centroids[0].tract_count, 1)
        self.assertAlmostEqual(centroids[0].longitude, 5.0)


if __name__ == "__main__":
    unittest.main()
