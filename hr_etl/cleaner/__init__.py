"""
Cleaner - repairs malformed date columns, derives age and applies the
birthdate / termdate outlier rules.
"""

from hr_etl.cleaner.transformer import (
    run_cleaner,
    cleaner_migrations,
    normalize_delimited_dates,
    normalize_termdate,
    add_age,
    compute_age,
    correct_birthdate_outliers,
    correct_termdate_outliers,
    MIN_WORKING_AGE,
    TERMDATE_SENTINEL,
)
from hr_etl.cleaner.refresh import refresh_age
from hr_etl.cleaner.validator import run_cleaner_validation, ValidationReport, ValidationResult
from hr_etl.cleaner.dates import (
    DateOrder,
    MONTH_DAY_YEAR,
    discover_separators,
    infer_date_order,
    parse_delimited_date,
    parse_termdate,
    split_date_components,
    subtract_years,
    years_between,
)

__all__ = [
    "run_cleaner",
    "cleaner_migrations",
    "normalize_delimited_dates",
    "normalize_termdate",
    "add_age",
    "compute_age",
    "correct_birthdate_outliers",
    "correct_termdate_outliers",
    "MIN_WORKING_AGE",
    "TERMDATE_SENTINEL",
    "refresh_age",
    "run_cleaner_validation",
    "ValidationReport",
    "ValidationResult",
    "DateOrder",
    "MONTH_DAY_YEAR",
    "discover_separators",
    "infer_date_order",
    "parse_delimited_date",
    "parse_termdate",
    "split_date_components",
    "subtract_years",
    "years_between",
]
