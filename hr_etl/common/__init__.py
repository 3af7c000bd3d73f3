# hr_etl/common/__init__.py
"""
Common utilities shared across pipeline stages.
Includes quality checks, the migration ledger, logging, and custom exceptions.
"""

from hr_etl.common.quality_checks import (
    QCResult,
    QCReport,
    run_quality_checks,
    validate_post_load,
    check_row_count,
    check_natural_key,
    check_referential_integrity,
    check_not_after,
    check_min_age,
    check_age_consistency,
    check_sentinel_bound,
    check_round_trip,
)
from hr_etl.common.exceptions import (
    ETLError,
    RawLoadError,
    CleanerError,
    DateFormatError,
    NormalizerError,
    MigrationPreconditionError,
    ValidationError,
)
from hr_etl.common.migrations import (
    Migration,
    MigrationOutcome,
    MigrationRunner,
    applied_migrations,
    reset_ledger,
)
from hr_etl.common.logging import configure_logging, create_run_log_file, log_banner

__all__ = [
    # Quality Checks
    "QCResult",
    "QCReport",
    "run_quality_checks",
    "validate_post_load",
    "check_row_count",
    "check_natural_key",
    "check_referential_integrity",
    "check_not_after",
    "check_min_age",
    "check_age_consistency",
    "check_sentinel_bound",
    "check_round_trip",
    # Exceptions
    "ETLError",
    "RawLoadError",
    "CleanerError",
    "DateFormatError",
    "NormalizerError",
    "MigrationPreconditionError",
    "ValidationError",
    # Migrations
    "Migration",
    "MigrationOutcome",
    "MigrationRunner",
    "applied_migrations",
    "reset_ledger",
    # Logging
    "configure_logging",
    "create_run_log_file",
    "log_banner",
]
