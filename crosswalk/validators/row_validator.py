"""
crosswalk/validators/row_validator.py

Row-level validation and type parsing for the ZIP-to-tract weight table.
"""

from __future__ import annotations

import math
from typing import Any, Mapping

from crosswalk.domain.geo import RowIssue, WeightRow

REQUIRED_FIELDS: tuple[str, ...] = ("zip_code", "county_fips", "tract")
WEIGHT_FIELDS: tuple[str, ...] = ("res_ratio", "tot_ratio")


def is_valid_weight(value: Any) -> bool:
    """
    Return True for a finite number in [0, 1].
    """

    if value is None or isinstance(value, bool):
        return False
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(number) and 0.0 <= number <= 1.0


class WeightRowValidator:
    """
    Validates and parses one normalized, in-scope weight-table row.
    """

    def validate_row(
        self,
        *,
        row: Mapping[str, str | None],
        row_number: int,
    ) -> tuple[WeightRow | None, list[RowIssue]]:
        """
        Return the parsed row, or None with the reasons it was rejected.
        """

        issues: list[RowIssue] = []
        location = f"row {row_number}"

        for column in REQUIRED_FIELDS:
            if self._is_blank(row.get(column)):
                issues.append(
                    RowIssue(
                        code="missing_field",
                        message=f"Required value '{column}' is missing.",
                        location=location,
                        value=None,
                    )
                )

        weights: dict[str, float] = {}
        for column in WEIGHT_FIELDS:
            parsed = self._parse_weight(
                value=row.get(column),
                column=column,
                location=location,
                issues=issues,
            )
            if parsed is not None:
                weights[column] = parsed

        if issues:
            return None, issues

        return (
            WeightRow(
                zip=str(row["zip_code"]).strip(),
                county_fips=str(row["county_fips"]).strip(),
                tract=str(row["tract"]).strip(),
                state_fips=str(row.get("state_fips") or "").strip(),
                res_ratio=weights["res_ratio"],
                tot_ratio=weights["tot_ratio"],
            ),
            [],
        )

    def _parse_weight(
        self,
        *,
        value: str | None,
        column: str,
        location: str,
        issues: list[RowIssue],
    ) -> float | None:
        if self._is_blank(value):
            issues.append(
                RowIssue(
                    code="null_weight",
                    message=f"Weight '{column}' is missing; row excluded.",
                    location=location,
                    value=None,
                )
            )
            return None

        raw = str(value).strip()
        try:
            number = float(raw)
        except ValueError:
            issues.append(
                RowIssue(
                    code="invalid_weight",
                    message=f"Weight '{column}' is not numeric.",
                    location=location,
                    value=raw,
                )
            )
            return None

        if not is_valid_weight(number):
            issues.append(
                RowIssue(
                    code="invalid_weight",
                    message=f"Weight '{column}' is outside [0, 1].",
                    location=location,
                    value=raw,
                )
            )
            return None

        return number

    @staticmethod
    def _is_blank(value: Any) -> bool:
        if value is None:
            return True
        return str(value).strip() == ""
