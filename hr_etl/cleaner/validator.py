"""
Cleaner Validation - quality checks for the cleaned employees table
before it is normalized.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List

import pandas as pd

from hr_etl.common.date_math import subtract_years, years_between

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Single validation check result."""
    check_name: str
    passed: bool
    message: str
    severity: str = "ERROR"  # ERROR, WARNING, INFO


@dataclass
class ValidationReport:
    """Collection of validation results."""
    layer: str
    results: List[ValidationResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results if r.severity == "ERROR")

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.results if not r.passed and r.severity == "ERROR")

    @property
    def warning_count(self) -> int:
        return sum(1 for r in self.results if not r.passed and r.severity == "WARNING")

    def add(self, result: ValidationResult):
        self.results.append(result)
        status = "✓" if result.passed else "✗"
        log_fn = logger.info if result.passed else (logger.error if result.severity == "ERROR" else logger.warning)
        log_fn(f"  [{status}] {result.check_name}: {result.message}")


def _as_date(value):
    if value is None or (not isinstance(value, date) and pd.isna(value)):
        return None
    if isinstance(value, pd.Timestamp):
        return value.date()
    return value


def validate_cleaned_employees(df: pd.DataFrame, as_of: date, min_age: int = 18) -> ValidationReport:
    """
    Validate the cleaned employees table.

    Checks:
    - Row count > 0
    - Every birthdate is NULL or at least `min_age` years before as_of
    - age is NULL exactly when birthdate is NULL
    - age equals the whole-year difference to as_of
    - No termdate on/after the latest hire_date
    - hire_date present
    """
    report = ValidationReport(layer="Cleaner - Employees")
    logger.info("Validating cleaned employee data...")

    row_count = len(df)
    report.add(ValidationResult(
        check_name="Row Count",
        passed=row_count > 0,
        message=f"{row_count} records"
    ))

    birthdates = df["birthdate"].map(_as_date)
    cutoff = subtract_years(as_of, min_age)
    too_young = sum(1 for b in birthdates if isinstance(b, date) and b > cutoff)
    report.add(ValidationResult(
        check_name=f"Minimum Working Age ({min_age})",
        passed=too_young == 0,
        message=f"{too_young} birthdates after {cutoff}"
    ))

    if "age" in df.columns:
        age_null = df["age"].isna()
        birth_null = birthdates.isna()
        mismatched = int((age_null != birth_null).sum())
        report.add(ValidationResult(
            check_name="Age Null Consistency",
            passed=mismatched == 0,
            message=f"{mismatched} rows where age and birthdate disagree on NULL"
        ))

        wrong_age = sum(
            1 for b, a in zip(birthdates, df["age"])
            if isinstance(b, date) and not pd.isna(a) and int(a) != years_between(b, as_of)
        )
        report.add(ValidationResult(
            check_name="Age Value",
            passed=wrong_age == 0,
            message=f"{wrong_age} ages differ from the whole-year difference to {as_of}",
            severity="WARNING"
        ))

    hire_dates = df["hire_date"].map(_as_date)
    missing_hire = int(hire_dates.isna().sum())
    report.add(ValidationResult(
        check_name="Null Hire Date",
        passed=missing_hire == 0,
        message=f"{missing_hire} null values found",
        severity="WARNING"
    ))

    max_hire = hire_dates.dropna().max() if missing_hire < row_count else None
    if max_hire is not None:
        termdates = df["termdate"].map(_as_date)
        late = sum(1 for t in termdates if isinstance(t, date) and t >= max_hire)
        report.add(ValidationResult(
            check_name="Termdate Upper Bound",
            passed=late == 0,
            message=f"{late} termdates on/after latest hire date {max_hire}"
        ))

    return report


def run_cleaner_validation(df: pd.DataFrame, as_of: date) -> ValidationReport:
    """Run all cleaner validations and log a summary."""
    logger.info("=" * 60)
    logger.info("CLEANER VALIDATION")
    logger.info("=" * 60)

    report = validate_cleaned_employees(df, as_of)

    logger.info("=" * 60)
    if report.error_count > 0:
        logger.error(f"VALIDATION FAILED: {report.error_count} errors, {report.warning_count} warnings")
    else:
        logger.info(f"VALIDATION PASSED: {report.warning_count} warnings")
    logger.info("=" * 60)

    return report
