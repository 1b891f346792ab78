"""
tests/test_pipeline.py

End-to-end runs of the five-phase pipeline over small cached fixtures.

No network: every source is pre-seeded in a fresh cache and the HTTP
session refuses all requests.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest
import requests
from shapely.geometry import box

from crosswalk.config import PipelineSettings
from crosswalk.connectors.file_cache import FileCache
from crosswalk.connectors.source_fetcher import SourceFetcher, SourceFetchError
from crosswalk.constants import CACHED_FILES, CROSSWALK_COLUMNS, OUTPUT_FILES
from crosswalk.domain.report import ValidationIssue, ValidationReport, ValidationSummary
from crosswalk.services.pipeline import (
    CrosswalkPipeline,
    PipelinePhaseError,
    PipelineRunResult,
    format_status_lines,
)
from scripts import run_pipeline

WEIGHT_TABLE = "\n".join(
    [
        "ZIP,TRACT,RES_RATIO,TOT_RATIO",
        "10456,36005012400,0.4,0.4",
        "10456,36005012300,0.6,0.6",
        "10456,36005012300,0.6,0.6",
        "10457,36005012400,1.5,0.5",
        "10457,36005099900,1.0,1.0",
        "10001,36061007600,1.0,1.0",
    ]
) + "\n"


def _collection(features: list[dict]) -> bytes:
    return json.dumps({"type": "FeatureCollection", "features": features}).encode("utf-8")


def _feature(properties: dict, geometry) -> dict:
    return {"type": "Feature", "properties": properties, "geometry": geometry.__geo_interface__}


TRACTS = _collection(
    [
        _feature({"GEOID": "36005012300"}, box(1, 1, 3, 3)),
        _feature({"GEOID": "36005012400"}, box(5, 5, 7, 7)),
        _feature({"GEOID": "36005099900"}, box(50, 50, 52, 52)),
        _feature({"GEOID": "36061007600"}, box(1, 1, 2, 2)),
    ]
)

NEIGHBORHOODS = _collection(
    [
        _feature({"NTACode": "BX35", "NTAName": "Morrisania-Melrose"}, box(0, 0, 10, 10)),
        _feature({"NTACode": "BX14", "NTAName": "East Concourse-Concourse Village"}, box(10, 0, 20, 10)),
    ]
)


class RefusingSession:
    max_redirects = 30

    def get(self, url, timeout, allow_redirects=True):
        raise requests.ConnectionError(f"network disabled: {url}")


def _settings(tmp_path: Path) -> PipelineSettings:
    return PipelineSettings(
        zips=("10456", "10457"),
        county_fips="36005",
        state_fips="36",
        cache_dir=tmp_path / "raw",
        output_dir=tmp_path / "geo",
    )


def _seed_cache(settings: PipelineSettings) -> None:
    cache = FileCache(cache_dir=settings.cache_dir)
    cache.save(CACHED_FILES["hud_zip_tract"], WEIGHT_TABLE.encode("utf-8"))
    cache.save(CACHED_FILES["census_tiger"], TRACTS)
    cache.save(CACHED_FILES["nta_geojson"], NEIGHBORHOODS)


def _pipeline(settings: PipelineSettings) -> CrosswalkPipeline:
    fetcher = SourceFetcher(
        cache=FileCache(cache_dir=settings.cache_dir, use_cache=settings.use_cache),
        http_settings=settings.http,
        session=RefusingSession(),
    )
    return CrosswalkPipeline(settings, fetcher=fetcher)


@pytest.fixture()
def settings(tmp_path) -> PipelineSettings:
    settings = _settings(tmp_path)
    _seed_cache(settings)
    return settings


def _read_json(settings: PipelineSettings, key: str):
    return json.loads((settings.output_dir / OUTPUT_FILES[key]).read_text(encoding="utf-8"))


class TestSuccessfulRun:
    def test_all_phases_complete(self, settings: PipelineSettings) -> None:
        result = _pipeline(settings).run()

        assert result.succeeded
        assert [phase.status for phase in result.phases] == ["complete"] * 5
        assert [phase.items_processed for phase in result.phases] == [3, 3, 3, 1, 7]
        assert result.failed_phase is None

    def test_writes_every_output(self, settings: PipelineSettings) -> None:
        result = _pipeline(settings).run()

        assert set(result.outputs) == set(OUTPUT_FILES)
        for filename in OUTPUT_FILES.values():
            assert (settings.output_dir / filename).is_file()

    def test_crosswalk_rows(self, settings: PipelineSettings) -> None:
        _pipeline(settings).run()

        rows = _read_json(settings, "zip_to_tracts_json")

        assert [(row["zip"], row["tract_geoid"], row["nta_code"]) for row in rows] == [
            ("10456", "36005012300", "BX35"),
            ("10456", "36005012400", "BX35"),
            ("10457", "36005099900", "UNASSIGNED"),
        ]
        assert list(rows[0]) == list(CROSSWALK_COLUMNS)
        for row in rows:
            assert 0.0 <= row["weight_res"] <= 1.0
            assert 0.0 <= row["weight_tot"] <= 1.0
            assert len(row["zip"]) == 5
            assert len(row["tract_geoid"]) == 11

    def test_single_cluster_for_shared_neighborhood(self, settings: PipelineSettings) -> None:
        _pipeline(settings).run()

        clusters = _read_json(settings, "neighborhood_clusters_json")

        assert clusters == [
            {
                "nta_code": "BX35",
                "nta_name": "Morrisania-Melrose",
                "tract_geoids": ["36005012300", "36005012400"],
                "zips": ["10456"],
                "tract_count": 2,
                "zip_count": 1,
            }
        ]

    def test_unmatched_tract_kept_in_rows_and_mapping(self, settings: PipelineSettings) -> None:
        _pipeline(settings).run()

        mapping = _read_json(settings, "tract_to_nta_mapping")
        by_geoid = {item["tract_geoid"]: item for item in mapping}

        assert by_geoid["36005099900"]["nta_code"] == "UNASSIGNED"
        assert by_geoid["36005099900"]["confidence"] == "low"
        assert by_geoid["36005012300"]["confidence"] == "high"
        assert "36061007600" not in by_geoid

    def test_report_folds_in_upstream_issues(self, settings: PipelineSettings) -> None:
        result = _pipeline(settings).run()

        report = _read_json(settings, "validation_report")

        assert report["isValid"] is True
        assert report["errors"] == []
        warning_types = {item["type"] for item in report["warnings"]}
        assert {"invalid_weight", "duplicate_collapsed", "unmatched_tract"} <= warning_types
        assert report["summary"] == {
            "total_zips": 2,
            "total_tracts": 3,
            "total_ntas": 1,
            "duplicate_rows": 1,
            "null_weights": 0,
        }
        assert result.report is not None
        assert result.report.to_dict() == report

    def test_malformed_tract_geometry_does_not_abort_join(self, settings: PipelineSettings) -> None:
        broken = {
            "type": "Feature",
            "properties": {"GEOID": "36005012400"},
            "geometry": {"type": "Polygon", "coordinates": [[[0, 0], [1, 1]]]},
        }
        tracts = _collection(
            [
                _feature({"GEOID": "36005012300"}, box(1, 1, 3, 3)),
                broken,
                _feature({"GEOID": "36005099900"}, box(50, 50, 52, 52)),
            ]
        )
        FileCache(cache_dir=settings.cache_dir).save(CACHED_FILES["census_tiger"], tracts)

        result = _pipeline(settings).run()

        assert result.succeeded
        mapping = {item["tract_geoid"]: item for item in _read_json(settings, "tract_to_nta_mapping")}
        assert mapping["36005012400"]["nta_code"] == "UNASSIGNED"
        assert mapping["36005012400"]["confidence"] == "low"
        assert mapping["36005012300"]["nta_code"] == "BX35"
        warnings = _read_json(settings, "validation_report")["warnings"]
        assert [item["location"] for item in warnings if item["type"] == "geometry_error"] == [
            "tract 36005012400"
        ]

    def test_csv_layout(self, settings: PipelineSettings) -> None:
        _pipeline(settings).run()

        raw = (settings.output_dir / OUTPUT_FILES["zip_to_tracts_csv"]).read_bytes()

        assert b"\r\n" not in raw
        lines = raw.decode("utf-8").splitlines()
        assert lines[0] == ",".join(CROSSWALK_COLUMNS)
        assert lines[1] == "10456,36005,36,36005012300,012300,0.6,0.6,BX35,Morrisania-Melrose"
        assert lines[3] == "10457,36005,36,36005099900,099900,1.0,1.0,UNASSIGNED,"

    def test_json_formatting(self, settings: PipelineSettings) -> None:
        _pipeline(settings).run()

        text = (settings.output_dir / OUTPUT_FILES["zip_centroids"]).read_text(encoding="utf-8")

        assert text.endswith("\n")
        assert text.startswith('[\n  {\n    "zip": "10456"')

    def test_reruns_are_byte_identical(self, settings: PipelineSettings) -> None:
        _pipeline(settings).run()
        first = {name: (settings.output_dir / name).read_bytes() for name in OUTPUT_FILES.values()}

        _pipeline(settings).run()
        second = {name: (settings.output_dir / name).read_bytes() for name in OUTPUT_FILES.values()}

        assert first == second

    def test_status_lines(self, settings: PipelineSettings) -> None:
        lines = format_status_lines(_pipeline(settings).run())

        assert len(lines) == 6
        assert lines[0].startswith("[complete] Phase 1: Download & Cache Sources")
        assert lines[-1].startswith("Total duration: ")


class TestFailedRun:
    def test_missing_source_aborts_in_phase_one(self, tmp_path) -> None:
        settings = _settings(tmp_path)

        result = _pipeline(settings).run()

        assert not result.succeeded
        assert isinstance(result.error, PipelinePhaseError)
        assert result.error.phase == 1
        assert isinstance(result.error.cause, SourceFetchError)
        assert [phase.status for phase in result.phases] == ["error", "pending", "pending", "pending", "pending"]
        assert result.failed_phase is not None and result.failed_phase.error
        assert not settings.output_dir.exists()

    def test_malformed_boundaries_abort_in_phase_three(self, settings: PipelineSettings) -> None:
        FileCache(cache_dir=settings.cache_dir).save(CACHED_FILES["nta_geojson"], b"not json")

        result = _pipeline(settings).run()

        assert result.error is not None and result.error.phase == 3
        assert [phase.status for phase in result.phases] == ["complete", "complete", "error", "pending", "pending"]


class TestCommandLine:
    def test_exit_zero_on_success(self, settings: PipelineSettings, tmp_path, monkeypatch, capsys) -> None:
        monkeypatch.setattr(run_pipeline, "get_pipeline_settings", lambda: settings)
        out_dir = tmp_path / "cli-out"

        code = run_pipeline.main(["--output-dir", str(out_dir)])

        assert code == 0
        assert (out_dir / OUTPUT_FILES["zip_to_tracts_json"]).is_file()
        assert "Total duration" in capsys.readouterr().out

    def test_exit_one_on_phase_failure(self, tmp_path, monkeypatch) -> None:
        settings = _settings(tmp_path)
        monkeypatch.setattr(run_pipeline, "get_pipeline_settings", lambda: settings)
        monkeypatch.setattr(run_pipeline, "CrosswalkPipeline", lambda cfg: _pipeline(cfg))

        assert run_pipeline.main([]) == 1

    def test_strict_mode_fails_on_invalid_report(self, settings: PipelineSettings, monkeypatch) -> None:
        report = ValidationReport(
            is_valid=False,
            errors=(ValidationIssue(type="unexpected_zip", message="bad zip", value="10001"),),
            summary=ValidationSummary(total_zips=1, total_tracts=1, total_ntas=0, duplicate_rows=0, null_weights=0),
        )
        stub_result = PipelineRunResult(
            phases=(),
            started_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            finished_at=datetime(2024, 1, 1, 0, 0, 5, tzinfo=timezone.utc),
            report=report,
        )

        class StubPipeline:
            def __init__(self, cfg) -> None:
                pass

            def run(self) -> PipelineRunResult:
                return stub_result

        monkeypatch.setattr(run_pipeline, "get_pipeline_settings", lambda: settings)
        monkeypatch.setattr(run_pipeline, "CrosswalkPipeline", StubPipeline)

        assert run_pipeline.main(["--strict"]) == 2
        assert run_pipeline.main([]) == 0
