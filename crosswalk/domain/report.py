"""Validation report output contract."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ValidationIssue(BaseModel):
    """One itemized validation error or warning."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: str = Field(min_length=1)
    message: str = Field(min_length=1)
    location: Optional[str] = None
    value: Optional[str] = None


class ValidationSummary(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    total_zips: int = Field(ge=0)
    total_tracts: int = Field(ge=0)
    total_ntas: int = Field(ge=0)
    duplicate_rows: int = Field(ge=0)
    null_weights: int = Field(ge=0)


class ValidationReport(BaseModel):
    """Data-quality verdict for one pipeline run.

    Errors mean the output must not be published; warnings flag data that is
    unusual but usable. ``isValid`` is derived from the error list.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    is_valid: bool = Field(alias="isValid")
    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[ValidationIssue, ...] = ()
    summary: ValidationSummary

    @model_validator(mode="after")
    def _check_validity_flag(self) -> "ValidationReport":
        if self.is_valid != (len(self.errors) == 0):
            raise ValueError("isValid must be true exactly when there are no errors.")
        return self

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
