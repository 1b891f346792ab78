"""
crosswalk/services/output_writer.py

Deterministic serialisation of the crosswalk deliverables.

Every file is a pure function of its inputs:

    bronx_zip_to_tracts.json         CrosswalkRow array
    bronx_zip_to_tracts.csv          same rows, fixed column order
    bronx_neighborhood_clusters.json NeighborhoodCluster array
    bronx_tract_to_nta_mapping.json  TractNeighborhoodAssignment array
    zip_centroids.json               ZipCentroid array
    bronx_validation_report.json     ValidationReport
    README.md                        file and source description

JSON uses 2-space indentation and a trailing newline; CSV uses ``\\n`` line
terminators. No wall-clock values are written.
"""

from __future__ import annotations

import csv
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from crosswalk.constants import CROSSWALK_COLUMNS, OUTPUT_FILES, README_TEMPLATE
from crosswalk.domain.geo import (
    CrosswalkRow,
    NeighborhoodCluster,
    SourceFile,
    TractNeighborhoodAssignment,
    ZipCentroid,
)
from crosswalk.domain.report import ValidationReport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutputBundle:
    """
    Everything phase 5 serialises, already sorted by the producing phases.
    """

    rows: tuple[CrosswalkRow, ...]
    clusters: tuple[NeighborhoodCluster, ...]
    assignments: tuple[TractNeighborhoodAssignment, ...]
    centroids: tuple[ZipCentroid, ...]
    report: ValidationReport


def write_json(path: Path, payload: Any) -> Path:
    """Write *payload* as indented JSON followed by a newline."""
    text = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    with path.open("w", encoding="utf-8", newline="\n") as handle:
        handle.write(text)
    return path


def write_crosswalk_csv(path: Path, rows: Sequence[CrosswalkRow]) -> Path:
    """Write *rows* as CSV with the canonical column order."""
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(
            handle,
            fieldnames=list(CROSSWALK_COLUMNS),
            extrasaction="ignore",
            restval="",
            lineterminator="\n",
        )
        writer.writeheader()
        for row in rows:
            # None is written as an empty cell
            record = {k: ("" if v is None else v) for k, v in row.to_dict().items()}
            writer.writerow(record)
    return path


def render_readme(
    *,
    sources: Sequence[SourceFile],
    county_fips: str,
    zip_count: int,
) -> str:
    source_lines = "\n".join(f"- **{source.name}**: {source.url}" for source in sources)
    return README_TEMPLATE.format(
        columns=", ".join(CROSSWALK_COLUMNS),
        sources=source_lines,
        county_fips=county_fips,
        zip_count=zip_count,
    )


class OutputWriter:
    """
    Writes an :class:`OutputBundle` into one output directory.
    """

    def __init__(self, *, output_dir: Path) -> None:
        self._output_dir = Path(output_dir)

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def path_for(self, key: str) -> Path:
        return self._output_dir / OUTPUT_FILES[key]

    def write_all(
        self,
        bundle: OutputBundle,
        *,
        sources: Sequence[SourceFile],
        county_fips: str,
        zip_count: int,
    ) -> dict[str, Path]:
        """
        Write every deliverable and return the written paths keyed by
        output name.
        """

        self._output_dir.mkdir(parents=True, exist_ok=True)
        written: dict[str, Path] = {}

        written["zip_to_tracts_json"] = write_json(
            self.path_for("zip_to_tracts_json"),
            [row.to_dict() for row in bundle.rows],
        )
        written["zip_to_tracts_csv"] = write_crosswalk_csv(
            self.path_for("zip_to_tracts_csv"),
            bundle.rows,
        )
        written["neighborhood_clusters_json"] = write_json(
            self.path_for("neighborhood_clusters_json"),
            [cluster.to_dict() for cluster in bundle.clusters],
        )
        written["tract_to_nta_mapping"] = write_json(
            self.path_for("tract_to_nta_mapping"),
            [assignment.to_dict() for assignment in bundle.assignments],
        )
        written["zip_centroids"] = write_json(
            self.path_for("zip_centroids"),
            [centroid.to_dict() for centroid in bundle.centroids],
        )
        written["validation_report"] = write_json(
            self.path_for("validation_report"),
            bundle.report.to_dict(),
        )

        readme_path = self.path_for("readme")
        with readme_path.open("w", encoding="utf-8", newline="\n") as handle:
            handle.write(render_readme(sources=sources, county_fips=county_fips, zip_count=zip_count))
        written["readme"] = readme_path

        for key, path in written.items():
            logger.info("Output written name=%s path=%s bytes=%s", key, path, path.stat().st_size)
        return written
