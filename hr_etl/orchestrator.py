# hr_etl/orchestrator.py
"""
HR Snowflake ETL Orchestrator.
Runs Raw load → Cleaner → Normalizer with quality checks.
"""

import argparse
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Engine

from db.db_utils import column_names, get_engine, get_session, read_table, table_exists
from db.models import reconstruct_employees
from hr_etl.cleaner import run_cleaner, refresh_age, TERMDATE_SENTINEL
from hr_etl.common import (
    ValidationError,
    applied_migrations,
    check_round_trip,
    run_quality_checks,
    validate_post_load,
)
from hr_etl.common.logging import configure_logging, create_run_log_file, log_banner
from hr_etl.common.quality_checks import TEXT_FOREIGN_KEYS
from hr_etl.normalizer import run_normalizer
from hr_etl.normalizer.dimensions import EMPLOYEES
from hr_etl.raw import run_raw_load

logger = logging.getLogger(__name__)

SCHEMA_TABLES = [
    "employees", "ethnicities", "genders", "locations",
    "departments", "jobtitles", "states", "cities",
]

NORMALIZED_TEXT_COLUMNS = [
    "race", "gender", "location", "department",
    "jobtitle", "location_city", "location_state",
]


def snapshot_text_attributes(engine: Engine):
    """Keep the text columns about to be normalized, for the round-trip check."""
    with engine.connect() as conn:
        if not table_exists(conn, EMPLOYEES):
            return None
        columns = column_names(conn, EMPLOYEES)
        wanted = ["id"] + NORMALIZED_TEXT_COLUMNS
        if not all(c in columns for c in wanted):
            return None
        return read_table(conn, EMPLOYEES, wanted)


def read_schema_frames(engine: Engine, tables: List[str] = SCHEMA_TABLES):
    frames = {}
    with engine.connect() as conn:
        for table in tables:
            if table_exists(conn, table):
                frames[table] = read_table(conn, table)
    return frames


def run_snowflake_etl(
    csv_path: Optional[str] = None,
    engine: Optional[Engine] = None,
    as_of: Optional[date] = None,
    fail_on_validation: bool = False,
) -> Dict[str, Any]:
    """
    Run the complete HR snowflake ETL.

    Pipeline Flow:
        Raw (CSV) → Cleaner (dates, age) → Normalizer (dimensions) → QC

    Args:
        csv_path: HR export to load first; omit when employees is already loaded
        engine: Database engine (created from the environment if not provided)
        as_of: Processing date for age and outlier rules (default: today)
        fail_on_validation: If True, raise when validation or QC fails

    Returns:
        dict: Results from each stage
    """
    engine = engine or get_engine()
    as_of = as_of or date.today()

    results: Dict[str, Any] = {
        "raw": None,
        "cleaner": None,
        "normalizer": None,
        "quality_checks": None,
        "post_load_validation": None,
    }

    try:
        # STEP 1: RAW LOAD
        log_banner(logger, "STEP 1: RAW LOAD - Loading employee export")
        if csv_path is None:
            logger.info("No file given, using the existing employees table")
        elif applied_migrations(engine):
            logger.warning("Ledger already has applied steps; resuming without reloading "
                           f"{csv_path}")
        else:
            results["raw"] = run_raw_load(csv_path, engine)

        # STEP 2: CLEANER
        log_banner(logger, "STEP 2: CLEANER - Normalizing dates")
        cleaner_result = run_cleaner(engine, as_of=as_of)
        results["cleaner"] = cleaner_result

        validation = cleaner_result["validation"]
        if validation is not None and not validation.passed:
            logger.warning("Cleaner validation found issues")
            if fail_on_validation:
                raise ValidationError(
                    "ETL aborted due to cleaner validation failures",
                    validation_type="cleaner",
                    failed_checks=validation.error_count,
                )
            logger.warning("Proceeding with normalization despite validation issues...")

        # STEP 3: NORMALIZER
        log_banner(logger, "STEP 3: NORMALIZER - Building snowflake schema")
        before = snapshot_text_attributes(engine)
        results["normalizer"] = run_normalizer(engine)

        # STEP 4: QUALITY CHECKS
        log_banner(logger, "STEP 4: QUALITY CHECKS")
        qc_report = run_quality_checks(read_schema_frames(engine), as_of, TERMDATE_SENTINEL)
        if before is not None:
            session = get_session(engine)
            try:
                after = reconstruct_employees(session, with_keys=True)
            finally:
                session.close()
            qc_report.add(check_round_trip(
                before, after, EMPLOYEES, "id", NORMALIZED_TEXT_COLUMNS, TEXT_FOREIGN_KEYS
            ))
        results["quality_checks"] = qc_report

        if not qc_report.passed:
            logger.error(f"Quality checks failed: {qc_report.failed_count} issues found")
            if fail_on_validation:
                raise ValidationError(
                    "Normalized schema failed quality checks",
                    validation_type="post_normalize",
                    failed_checks=qc_report.failed_count,
                )

        # STEP 5: POST-LOAD VALIDATION
        log_banner(logger, "STEP 5: POST-LOAD VALIDATION")
        post_load_report = validate_post_load(engine, SCHEMA_TABLES)
        results["post_load_validation"] = post_load_report
        if not post_load_report.passed:
            logger.error("Post-load validation failed!")
        else:
            logger.info("Post-load validation passed!")

        logger.info("")
        logger.info("=" * 70)
        logger.info("HR SNOWFLAKE ETL COMPLETED SUCCESSFULLY")
        logger.info("=" * 70)
        logger.info("")
        logger.info("Summary:")
        if results["raw"]:
            logger.info(f"  Raw: {results['raw']['employees']} employees from {results['raw']['file']}")
        stats = cleaner_result["stats"]
        logger.info(f"  Cleaner: as of {as_of}, "
                    f"{stats.get('birthdate_outliers', 0)} birthdate outliers, "
                    f"{stats.get('termdate_outliers', 0)} termdate outliers")
        logger.info("  Normalizer: " + ", ".join(
            f"{t}={n}" for t, n in results["normalizer"]["dimensions"].items()))
        logger.info("")

        return results

    except Exception as e:
        logger.error(f"ETL FAILED: {e}")
        raise


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Clean the HR employee export and normalize it into a snowflake schema"
    )
    parser.add_argument("--csv", help="Path to the HR export (omit if employees is already loaded)")
    parser.add_argument("--database-url", help="SQLAlchemy URL (default: HR_ETL_DATABASE_URL / DB_* env)")
    parser.add_argument("--as-of", type=date.fromisoformat,
                        help="Processing date YYYY-MM-DD for age and outlier rules (default: today)")
    parser.add_argument("--log-file", help="Write the log to this file as well")
    parser.add_argument("--log-dir", help="Write a timestamped log file into this directory")
    parser.add_argument("--log-level", help="Logging level name (default: HR_ETL_LOG_LEVEL or INFO)")
    parser.add_argument("--echo-sql", action="store_true", help="Log every SQL statement")
    parser.add_argument("--strict", action="store_true",
                        help="Abort when validation or quality checks fail")
    parser.add_argument("--refresh-age", action="store_true",
                        help="Only recompute age for the processing date")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    log_file = args.log_file or (create_run_log_file(args.log_dir) if args.log_dir else None)
    configure_logging(level=args.log_level, log_file=log_file, echo_sql=args.echo_sql)

    engine = get_engine(args.database_url)
    if args.refresh_age:
        refresh_age(engine, as_of=args.as_of)
        return 0

    results = run_snowflake_etl(
        csv_path=args.csv,
        engine=engine,
        as_of=args.as_of,
        fail_on_validation=args.strict,
    )
    return 0 if results["quality_checks"].passed else 1


if __name__ == "__main__":
    raise SystemExit(main())
