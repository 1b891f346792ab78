"""
crosswalk/services/pipeline.py

Five-phase orchestrator for the Bronx ZIP / tract / NTA crosswalk.

Phases run strictly in sequence and hand their results to the next phase
as explicit arguments:

    1  acquire_sources        cached or downloaded raw bytes
    2  map_zip_tracts         filtered, normalised ZIP-to-tract rows
    3  join_neighborhoods     tract -> neighborhood assignments
    4  cluster_neighborhoods  enriched rows, clusters, ZIP centroids
    5  assemble_outputs       validation report and written files

A failure in any phase stops the run. Files written by earlier phases are
left in place; the run result records which phase failed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from crosswalk.config import PipelineSettings
from crosswalk.connectors.file_cache import FileCache
from crosswalk.connectors.source_fetcher import SourceFetcher
from crosswalk.constants import PHASE_NAMES
from crosswalk.domain.geo import (
    AcquiredSources,
    CrosswalkRow,
    NeighborhoodCluster,
    NeighborhoodGeometry,
    PhaseStatus,
    TractGeometry,
    ZipCentroid,
)
from crosswalk.domain.report import ValidationReport
from crosswalk.logging_utils import log_event
from crosswalk.mappers.zip_tract_mapper import MappingResult, MappingScope, ZipTractMapper
from crosswalk.services.output_writer import OutputBundle, OutputWriter
from crosswalk.validators.crosswalk_validator import CrosswalkValidator, log_report
from neighborhoods import build_clusters, compute_zip_centroids, merge_assignments
from spatial.join import SpatialJoiner, SpatialJoinResult
from spatial.loaders import load_neighborhood_geometries, load_tract_geometries

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_RUNNING = "running"
STATUS_COMPLETE = "complete"
STATUS_ERROR = "error"


class PipelinePhaseError(RuntimeError):
    """
    Raised when a phase fails; carries the phase number, name and cause.
    """

    def __init__(self, *, phase: int, name: str, cause: BaseException) -> None:
        self.phase = phase
        self.name = name
        self.cause = cause
        super().__init__(f"Phase {phase} ({name}) failed: {cause}")


@dataclass(frozen=True)
class NeighborhoodJoin:
    """Phase 3 output."""

    tracts: tuple[TractGeometry, ...]
    neighborhoods: tuple[NeighborhoodGeometry, ...]
    result: SpatialJoinResult


@dataclass(frozen=True)
class ClusteringOutcome:
    """Phase 4 output."""

    rows: tuple[CrosswalkRow, ...]
    clusters: tuple[NeighborhoodCluster, ...]
    centroids: tuple[ZipCentroid, ...]


@dataclass(frozen=True)
class AssemblyOutcome:
    """Phase 5 output."""

    report: ValidationReport
    outputs: Mapping[str, Path]


@dataclass(frozen=True)
class PipelineRunResult:
    phases: tuple[PhaseStatus, ...]
    started_at: datetime
    finished_at: datetime
    report: ValidationReport | None = None
    outputs: Mapping[str, Path] = field(default_factory=dict)
    error: PipelinePhaseError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def failed_phase(self) -> PhaseStatus | None:
        for phase in self.phases:
            if phase.status == STATUS_ERROR:
                return phase
        return None


# ---------------------------------------------------------------------------
# Phase functions
# ---------------------------------------------------------------------------


def acquire_sources(settings: PipelineSettings, fetcher: SourceFetcher) -> AcquiredSources:
    return fetcher.acquire_all(
        settings.source_files(),
        fail_on_error=settings.fail_on_fetch_error,
    )


def map_zip_tracts(
    sources: AcquiredSources,
    settings: PipelineSettings,
    mapper: ZipTractMapper,
) -> MappingResult:
    scope = MappingScope(
        county_fips=settings.county_fips,
        state_fips=settings.state_fips,
        zips=frozenset(settings.zips),
    )
    return mapper.map_weight_table(sources.weight_table, scope)


def join_neighborhoods(
    sources: AcquiredSources,
    settings: PipelineSettings,
    joiner: SpatialJoiner,
) -> NeighborhoodJoin:
    tracts = load_tract_geometries(
        sources.tract_boundaries,
        state_fips=settings.state_fips,
        county_fips=settings.county_fips,
    )
    neighborhoods = load_neighborhood_geometries(sources.neighborhood_boundaries)
    return NeighborhoodJoin(
        tracts=tracts,
        neighborhoods=neighborhoods,
        result=joiner.join(tracts, neighborhoods),
    )


def cluster_neighborhoods(mapping: MappingResult, joined: NeighborhoodJoin) -> ClusteringOutcome:
    rows = merge_assignments(mapping.rows, joined.result.lookup())
    return ClusteringOutcome(
        rows=rows,
        clusters=build_clusters(rows),
        centroids=compute_zip_centroids(rows, joined.tracts),
    )


def assemble_outputs(
    mapping: MappingResult,
    joined: NeighborhoodJoin,
    clustered: ClusteringOutcome,
    settings: PipelineSettings,
    writer: OutputWriter,
) -> AssemblyOutcome:
    """
    Validate the enriched rows, then write every deliverable.

    The report is written whether or not it is valid.
    """

    validator = CrosswalkValidator(
        expected_zips=settings.zips,
        weight_sum_tolerance=settings.weight_sum_tolerance,
    )
    report = validator.validate(
        clustered.rows,
        upstream_issues=mapping.issues + joined.result.issues,
    )
    log_report(report)

    outputs = writer.write_all(
        OutputBundle(
            rows=clustered.rows,
            clusters=clustered.clusters,
            assignments=joined.result.assignments,
            centroids=clustered.centroids,
            report=report,
        ),
        sources=settings.source_files(),
        county_fips=settings.county_fips,
        zip_count=len(settings.zips),
    )
    return AssemblyOutcome(report=report, outputs=outputs)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CrosswalkPipeline:
    """
    Runs phases 1-5 in order and tracks per-phase status.

    Collaborators can be injected; by default they are built from settings.
    """

    def __init__(
        self,
        settings: PipelineSettings,
        *,
        fetcher: SourceFetcher | None = None,
        mapper: ZipTractMapper | None = None,
        joiner: SpatialJoiner | None = None,
        writer: OutputWriter | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings
        self._fetcher = fetcher or SourceFetcher(
            cache=FileCache(cache_dir=settings.cache_dir, use_cache=settings.use_cache),
            http_settings=settings.http,
        )
        self._mapper = mapper or ZipTractMapper()
        self._joiner = joiner or SpatialJoiner()
        self._writer = writer or OutputWriter(output_dir=settings.output_dir)
        self._clock = clock
        self._phases: dict[int, PhaseStatus] = {}

    def run(self) -> PipelineRunResult:
        self._phases = {
            number: PhaseStatus(phase=number, name=name, status=STATUS_PENDING)
            for number, name in sorted(PHASE_NAMES.items())
        }
        started_at = self._clock()
        settings = self._settings

        try:
            sources = self._run_phase(
                1, acquire_sources, settings, self._fetcher,
                count=lambda _: 3,
            )
            mapping = self._run_phase(
                2, map_zip_tracts, sources, settings, self._mapper,
                count=lambda result: len(result.rows),
            )
            joined = self._run_phase(
                3, join_neighborhoods, sources, settings, self._joiner,
                count=lambda result: len(result.result.assignments),
            )
            clustered = self._run_phase(
                4, cluster_neighborhoods, mapping, joined,
                count=lambda result: len(result.clusters),
            )
            assembled = self._run_phase(
                5, assemble_outputs, mapping, joined, clustered, settings, self._writer,
                count=lambda result: len(result.outputs),
            )
        except PipelinePhaseError as exc:
            finished_at = self._clock()
            log_event(
                logger,
                logging.ERROR,
                "pipeline_failed",
                phase=exc.phase,
                name=exc.name,
                error=str(exc.cause),
                duration_seconds=(finished_at - started_at).total_seconds(),
            )
            return PipelineRunResult(
                phases=self._snapshot(),
                started_at=started_at,
                finished_at=finished_at,
                error=exc,
            )

        finished_at = self._clock()
        log_event(
            logger,
            logging.INFO,
            "pipeline_complete",
            duration_seconds=(finished_at - started_at).total_seconds(),
            is_valid=assembled.report.is_valid,
        )
        return PipelineRunResult(
            phases=self._snapshot(),
            started_at=started_at,
            finished_at=finished_at,
            report=assembled.report,
            outputs=assembled.outputs,
        )

    def _run_phase(
        self,
        number: int,
        func: Callable[..., Any],
        *args: Any,
        count: Callable[[Any], int],
    ) -> Any:
        status = replace(self._phases[number], status=STATUS_RUNNING, started_at=self._clock())
        self._phases[number] = status
        log_event(logger, logging.INFO, "phase_started", phase=number, name=status.name)

        try:
            result = func(*args)
        except Exception as exc:
            self._phases[number] = replace(
                status,
                status=STATUS_ERROR,
                finished_at=self._clock(),
                error=str(exc),
            )
            logger.exception("Phase failed phase=%s name=%s", number, status.name)
            raise PipelinePhaseError(phase=number, name=status.name, cause=exc) from exc

        self._phases[number] = replace(
            status,
            status=STATUS_COMPLETE,
            finished_at=self._clock(),
            items_processed=count(result),
        )
        log_event(
            logger,
            logging.INFO,
            "phase_complete",
            phase=number,
            name=status.name,
            items_processed=self._phases[number].items_processed,
            duration_seconds=self._phases[number].duration_seconds,
        )
        return result

    def _snapshot(self) -> tuple[PhaseStatus, ...]:
        return tuple(self._phases[number] for number in sorted(self._phases))


def format_status_lines(result: PipelineRunResult) -> list[str]:
    """
    One line per phase plus a closing total-duration line.
    """

    lines: list[str] = []
    for phase in result.phases:
        line = f"[{phase.status}] Phase {phase.phase}: {phase.name}"
        details: list[str] = []
        if phase.duration_seconds is not None:
            details.append(f"{phase.duration_seconds:.2f}s")
        if phase.items_processed is not None:
            details.append(f"items={phase.items_processed}")
        if details:
            line += f" ({', '.join(details)})"
        if phase.error:
            line += f" - {phase.error}"
        lines.append(line)
    lines.append(f"Total duration: {result.duration_seconds:.2f}s")
    return lines
