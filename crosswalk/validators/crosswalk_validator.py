"""
crosswalk/validators/crosswalk_validator.py

Data-quality validation of the final crosswalk row set.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from collections.abc import Iterable, Sequence

from crosswalk.constants import UNASSIGNED_NTA_CODE
from crosswalk.domain.geo import CrosswalkRow, RowIssue
from crosswalk.domain.report import ValidationIssue, ValidationReport, ValidationSummary
from crosswalk.validators.row_validator import is_valid_weight

logger = logging.getLogger(__name__)

ZIP_PATTERN = re.compile(r"^\d{5}$")
STATE_FIPS_PATTERN = re.compile(r"^\d{2}$")
COUNTY_FIPS_PATTERN = re.compile(r"^\d{5}$")
TRACT_PATTERN = re.compile(r"^\d{6}$")
TRACT_GEOID_PATTERN = re.compile(r"^\d{11}$")
NTA_CODE_PATTERN = re.compile(r"^[A-Z]{2}\d{2}(\d{2})?$")

# Upstream issue codes that count toward the summary figures.
DUPLICATE_COLLAPSED_CODE = "duplicate_collapsed"
NULL_WEIGHT_CODE = "null_weight"


def is_valid_zip(value: str | None) -> bool:
    return bool(value) and bool(ZIP_PATTERN.match(value))


def is_valid_nta_code(value: str | None) -> bool:
    return bool(value) and bool(NTA_CODE_PATTERN.match(value))


class CrosswalkValidator:
    """
    Builds the validation report for one run.

    Errors: malformed identifiers, out-of-range weights, duplicate keys,
    ZIPs outside the configured set.
    Warnings: missing expected ZIPs, null weights, unusual NTA codes,
    per-ZIP weight sums far from 1, and every upstream row or tract issue.
    """

    def __init__(
        self,
        *,
        expected_zips: Iterable[str],
        weight_sum_tolerance: float = 0.05,
    ) -> None:
        self._expected_zips = tuple(sorted(set(expected_zips)))
        self._expected_set = frozenset(self._expected_zips)
        self._weight_sum_tolerance = weight_sum_tolerance

    def validate(
        self,
        rows: Sequence[CrosswalkRow],
        *,
        upstream_issues: Sequence[RowIssue] = (),
    ) -> ValidationReport:
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []
        seen: set[tuple[str, str]] = set()
        duplicate_count = 0
        null_weight_count = 0
        weight_sums: dict[str, float] = defaultdict(float)

        for index, row in enumerate(rows):
            location = f"row {index + 1}"

            if row.key in seen:
                duplicate_count += 1
                errors.append(
                    ValidationIssue(
                        type="duplicate",
                        message="Duplicate ZIP-tract pair.",
                        location=location,
                        value=f"{row.zip}-{row.tract_geoid}",
                    )
                )
            seen.add(row.key)

            errors.extend(self._identifier_errors(row, location))

            has_null_weight = False
            for column, weight in (("weight_res", row.weight_res), ("weight_tot", row.weight_tot)):
                if weight is None:
                    has_null_weight = True
                    continue
                if not is_valid_weight(weight):
                    errors.append(
                        ValidationIssue(
                            type="invalid_weight",
                            message=f"{column} is outside [0, 1].",
                            location=location,
                            value=str(weight),
                        )
                    )
            if has_null_weight:
                null_weight_count += 1
                warnings.append(
                    ValidationIssue(
                        type="null_weight",
                        message="Null weight found.",
                        location=location,
                    )
                )

            if row.nta_code != UNASSIGNED_NTA_CODE and not is_valid_nta_code(row.nta_code):
                warnings.append(
                    ValidationIssue(
                        type="invalid_nta_code",
                        message="Neighborhood code does not match the expected pattern.",
                        location=location,
                        value=row.nta_code,
                    )
                )

            if row.weight_tot is not None:
                weight_sums[row.zip] += float(row.weight_tot)

        found_zips = {row.zip for row in rows}
        for expected_zip in self._expected_zips:
            if expected_zip not in found_zips:
                warnings.append(
                    ValidationIssue(
                        type="missing_zip",
                        message=f"Expected ZIP not found: {expected_zip}",
                        value=expected_zip,
                    )
                )

        for zip_code in sorted(weight_sums):
            total = weight_sums[zip_code]
            if abs(total - 1.0) > self._weight_sum_tolerance:
                warnings.append(
                    ValidationIssue(
                        type="weight_sum_deviation",
                        message=f"weight_tot for ZIP sums to {total:.4f}, not 1.",
                        location=f"zip {zip_code}",
                        value=f"{total:.4f}",
                    )
                )

        null_locations: set[str] = set()
        for issue in upstream_issues:
            warnings.append(
                ValidationIssue(
                    type=issue.code,
                    message=issue.message,
                    location=issue.location,
                    value=issue.value,
                )
            )
            if issue.code == DUPLICATE_COLLAPSED_CODE:
                duplicate_count += 1
            elif issue.code == NULL_WEIGHT_CODE:
                null_locations.add(issue.location or "")
        null_weight_count += len(null_locations)

        summary = ValidationSummary(
            total_zips=len(found_zips),
            total_tracts=len({row.tract_geoid for row in rows}),
            total_ntas=len({row.nta_code for row in rows if row.nta_code != UNASSIGNED_NTA_CODE}),
            duplicate_rows=duplicate_count,
            null_weights=null_weight_count,
        )
        return ValidationReport(
            is_valid=not errors,
            errors=tuple(errors),
            warnings=tuple(warnings),
            summary=summary,
        )

    def _identifier_errors(self, row: CrosswalkRow, location: str) -> list[ValidationIssue]:
        errors: list[ValidationIssue] = []
        checks = (
            ("invalid_zip", "zip", row.zip, ZIP_PATTERN),
            ("invalid_fips", "state_fips", row.state_fips, STATE_FIPS_PATTERN),
            ("invalid_fips", "county_fips", row.county_fips, COUNTY_FIPS_PATTERN),
            ("invalid_tract", "tract", row.tract, TRACT_PATTERN),
            ("invalid_geoid", "tract_geoid", row.tract_geoid, TRACT_GEOID_PATTERN),
        )
        malformed = False
        for code, column, value, pattern in checks:
            if not value or not pattern.match(value):
                malformed = True
                errors.append(
                    ValidationIssue(
                        type=code,
                        message=f"Invalid {column}.",
                        location=location,
                        value=value,
                    )
                )

        if not malformed:
            expected_geoid = f"{row.state_fips}{row.county_fips[2:]}{row.tract}"
            if row.county_fips[:2] != row.state_fips or row.tract_geoid != expected_geoid:
                errors.append(
                    ValidationIssue(
                        type="geoid_mismatch",
                        message="tract_geoid is inconsistent with state_fips/county_fips/tract.",
                        location=location,
                        value=row.tract_geoid,
                    )
                )

        if is_valid_zip(row.zip) and row.zip not in self._expected_set:
            errors.append(
                ValidationIssue(
                    type="unexpected_zip",
                    message="ZIP is not in the configured ZIP set.",
                    location=location,
                    value=row.zip,
                )
            )
        return errors


def log_report(report: ValidationReport, *, preview: int = 5) -> None:
    """
    Log the verdict, summary, and the first few errors and warnings.
    """

    summary = report.summary
    logger.log(
        logging.INFO if report.is_valid else logging.WARNING,
        "Validation %s errors=%s warnings=%s total_zips=%s total_tracts=%s total_ntas=%s "
        "duplicate_rows=%s null_weights=%s",
        "passed" if report.is_valid else "failed",
        len(report.errors),
        len(report.warnings),
        summary.total_zips,
        summary.total_tracts,
        summary.total_ntas,
        summary.duplicate_rows,
        summary.null_weights,
    )
    for label, items in (("error", report.errors), ("warning", report.warnings)):
        for item in items[:preview]:
            logger.warning("Validation %s type=%s location=%s message=%s", label, item.type, item.location, item.message)
        if len(items) > preview:
            logger.warning("Validation %s list truncated remaining=%s", label, len(items) - preview)
