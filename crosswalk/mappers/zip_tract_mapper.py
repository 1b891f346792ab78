"""
crosswalk/mappers/zip_tract_mapper.py

Phase 2: turn the raw weight table into the sorted, deduplicated
ZIP-to-tract row set for one county.

Each input row is classified independently (out of scope, rejected,
accepted) and the classifications are folded into an immutable
accumulator. Deduplication and ordering happen after the fold so the
output depends only on the input bytes.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, replace
from functools import reduce
from typing import Mapping

from crosswalk.domain.geo import CrosswalkRow, RowIssue, WeightRow
from crosswalk.mappers.weight_table import iter_weight_table
from crosswalk.validators.row_validator import WeightRowValidator

logger = logging.getLogger(__name__)

_DECIMAL_TRACT = re.compile(r"^(\d{1,4})\.(\d{1,2})$")

OUTCOME_OUT_OF_SCOPE = "out_of_scope"
OUTCOME_REJECTED = "rejected"
OUTCOME_ACCEPTED = "accepted"


@dataclass(frozen=True)
class MappingScope:
    """
    Target county and ZIP set for one run.
    """

    county_fips: str
    state_fips: str
    zips: frozenset[str]


@dataclass(frozen=True)
class RowOutcome:
    kind: str
    row: CrosswalkRow | None = None
    issues: tuple[RowIssue, ...] = ()


@dataclass(frozen=True)
class MappingAccumulator:
    rows: tuple[CrosswalkRow, ...] = ()
    issues: tuple[RowIssue, ...] = ()
    rows_read: int = 0
    rows_out_of_scope: int = 0
    rows_rejected: int = 0
    null_weight_rows: int = 0


@dataclass(frozen=True)
class MappingResult:
    """
    Phase 2 output: crosswalk rows without neighborhood assignment.
    """

    rows: tuple[CrosswalkRow, ...]
    issues: tuple[RowIssue, ...]
    rows_read: int
    rows_out_of_scope: int
    rows_rejected: int
    duplicates_dropped: int
    null_weight_rows: int

    @property
    def unique_zips(self) -> tuple[str, ...]:
        return tuple(sorted({row.zip for row in self.rows}))

    @property
    def unique_tracts(self) -> tuple[str, ...]:
        return tuple(sorted({row.tract_geoid for row in self.rows}))


def normalize_zip(value: str | None) -> str:
    raw = (value or "").strip()
    if raw.isdigit() and len(raw) < 5:
        return raw.zfill(5)
    return raw


def normalize_tract_code(value: str | None) -> str:
    """
    Return the tract code as digits only.

    Accepts plain codes ("012300", "12300") and decimal tract
    numbers ("123.01" -> "012301").
    """

    raw = (value or "").strip()
    match = _DECIMAL_TRACT.match(raw)
    if match:
        whole, fraction = match.groups()
        return whole.zfill(4) + fraction.ljust(2, "0")
    return raw


def normalize_county_fips(county: str | None, state: str | None, tract: str | None) -> str:
    """
    Return a 5-digit state+county FIPS code, or "" when it cannot be derived.
    """

    county_raw = (county or "").strip()
    state_raw = (state or "").strip()
    if not county_raw:
        tract_raw = (tract or "").strip()
        if len(tract_raw) == 11 and tract_raw.isdigit():
            return tract_raw[:5]
        return ""
    if len(county_raw) == 5:
        return county_raw
    if county_raw.isdigit() and len(county_raw) <= 3 and state_raw:
        return state_raw.zfill(2) + county_raw.zfill(3)
    return county_raw


def build_tract_geoid(state_fips: str, county_fips: str, tract: str) -> str:
    """
    Build the 11-digit tract GEOID: SS + CCC + TTTTTT.

    A 5-digit county code carries its state prefix, which is stripped.
    A tract code longer than 6 digits keeps its last 6.
    """

    state = str(state_fips).strip().zfill(2)
    county = str(county_fips).strip()
    if len(county) == 5:
        county = county[2:]
    county = county.zfill(3)
    tract_code = str(tract).strip().zfill(6)
    if len(tract_code) > 6:
        tract_code = tract_code[-6:]
    return f"{state}{county}{tract_code}"


class ZipTractMapper:
    """
    Filters, validates, deduplicates, and orders weight-table rows.
    """

    def __init__(self, *, validator: WeightRowValidator | None = None) -> None:
        self._validator = validator or WeightRowValidator()

    def map_weight_table(self, content: bytes, scope: MappingScope) -> MappingResult:
        """
        Run phase 2 over raw weight-table CSV bytes.
        """

        return self.map_rows(iter_weight_table(content), scope)

    def map_rows(
        self,
        rows: Iterable[tuple[int, Mapping[str, str | None]]],
        scope: MappingScope,
    ) -> MappingResult:
        outcomes = (self.classify_row(row, row_number, scope) for row_number, row in rows)
        accumulated = reduce(fold_outcome, outcomes, MappingAccumulator())

        unique_rows, duplicate_issues = deduplicate_rows(accumulated.rows)
        ordered = tuple(sorted(unique_rows, key=lambda item: item.key))

        result = MappingResult(
            rows=ordered,
            issues=accumulated.issues + duplicate_issues,
            rows_read=accumulated.rows_read,
            rows_out_of_scope=accumulated.rows_out_of_scope,
            rows_rejected=accumulated.rows_rejected,
            duplicates_dropped=len(duplicate_issues),
            null_weight_rows=accumulated.null_weight_rows,
        )
        self._log_summary(result, scope)
        return result

    def classify_row(
        self,
        row: Mapping[str, str | None],
        row_number: int,
        scope: MappingScope,
    ) -> RowOutcome:
        """
        Decide what happens to one normalized weight-table row.
        """

        zip_code = normalize_zip(row.get("zip_code"))
        tract = normalize_tract_code(row.get("tract"))
        county = normalize_county_fips(
            row.get("county_fips"),
            row.get("state_fips") or scope.state_fips,
            tract,
        )

        if county != scope.county_fips or zip_code not in scope.zips:
            return RowOutcome(kind=OUTCOME_OUT_OF_SCOPE)

        candidate = {
            "zip_code": zip_code,
            "county_fips": county,
            "tract": tract,
            "state_fips": row.get("state_fips"),
            "res_ratio": row.get("res_ratio"),
            "tot_ratio": row.get("tot_ratio"),
        }
        parsed, issues = self._validator.validate_row(row=candidate, row_number=row_number)
        if parsed is None:
            return RowOutcome(kind=OUTCOME_REJECTED, issues=tuple(issues))

        if not parsed.tract.isdigit():
            return RowOutcome(
                kind=OUTCOME_REJECTED,
                issues=(
                    RowIssue(
                        code="invalid_tract",
                        message="Tract code is not numeric.",
                        location=f"row {row_number}",
                        value=parsed.tract,
                    ),
                ),
            )

        return RowOutcome(kind=OUTCOME_ACCEPTED, row=to_crosswalk_row(parsed))

    def _log_summary(self, result: MappingResult, scope: MappingScope) -> None:
        logger.info(
            "ZIP-to-tract mapping complete rows_read=%s out_of_scope=%s rejected=%s "
            "duplicates_dropped=%s rows=%s unique_zips=%s/%s unique_tracts=%s",
            result.rows_read,
            result.rows_out_of_scope,
            result.rows_rejected,
            result.duplicates_dropped,
            len(result.rows),
            len(result.unique_zips),
            len(scope.zips),
            len(result.unique_tracts),
        )
        for issue in result.issues:
            logger.warning("Weight row skipped code=%s location=%s value=%s", issue.code, issue.location, issue.value)

        missing = sorted(scope.zips - set(result.unique_zips))
        if missing:
            logger.warning("Missing ZIPs in weight table zips=%s", ",".join(missing))


def to_crosswalk_row(row: WeightRow) -> CrosswalkRow:
    county = row.county_fips
    state = row.state_fips.zfill(2) if row.state_fips else county[:2]
    return CrosswalkRow(
        zip=row.zip,
        county_fips=county,
        state_fips=state,
        tract_geoid=build_tract_geoid(state, county, row.tract),
        tract=row.tract.zfill(6)[-6:],
        weight_res=row.res_ratio,
        weight_tot=row.tot_ratio,
    )


def fold_outcome(acc: MappingAccumulator, outcome: RowOutcome) -> MappingAccumulator:
    """
    Fold one row outcome into the running totals.
    """

    acc = replace(acc, rows_read=acc.rows_read + 1)
    if outcome.kind == OUTCOME_OUT_OF_SCOPE:
        return replace(acc, rows_out_of_scope=acc.rows_out_of_scope + 1)
    if outcome.kind == OUTCOME_REJECTED:
        has_null_weight = any(issue.code == "null_weight" for issue in outcome.issues)
        return replace(
            acc,
            issues=acc.issues + outcome.issues,
            rows_rejected=acc.rows_rejected + 1,
            null_weight_rows=acc.null_weight_rows + (1 if has_null_weight else 0),
        )
    if outcome.kind == OUTCOME_ACCEPTED and outcome.row is not None:
        return replace(acc, rows=acc.rows + (outcome.row,))
    raise ValueError(f"Unknown row outcome: {outcome.kind!r}")


def deduplicate_rows(
    rows: Iterable[CrosswalkRow],
) -> tuple[tuple[CrosswalkRow, ...], tuple[RowIssue, ...]]:
    """
    Keep the first row for each (zip, tract_geoid) key.
    """

    seen: set[tuple[str, str]] = set()
    kept: list[CrosswalkRow] = []
    dropped: list[RowIssue] = []
    for row in rows:
        if row.key in seen:
            dropped.append(
                RowIssue(
                    code="duplicate_collapsed",
                    message="Duplicate ZIP-tract pair collapsed to a single row.",
                    location=f"{row.zip}-{row.tract_geoid}",
                    value=f"{row.zip}-{row.tract_geoid}",
                )
            )
            continue
        seen.add(row.key)
        kept.append(row)
    return tuple(kept), tuple(dropped)
