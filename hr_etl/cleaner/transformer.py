"""
Cleaner - repair the date columns of the employees table and derive age.

Each unit below is one ledger migration and one transaction:

    clean_birthdate -> clean_hire_date -> clean_termdate
    -> add_age -> correct_birthdate_outliers -> correct_termdate_outliers

Columns only move forward (text -> date -> corrected date); a column that
is already typed as DATE is never parsed again.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import Date, Integer, bindparam, func, select, update
from sqlalchemy.engine import Connection, Engine

from db.db_utils import (
    add_column,
    column_names,
    get_engine,
    read_table,
    rebuild_table,
    reflect_table,
)
from hr_etl.cleaner.dates import (
    discover_separators,
    infer_date_order,
    parse_delimited_date,
    parse_termdate,
)
from hr_etl.cleaner.validator import run_cleaner_validation
from hr_etl.common.date_math import subtract_years, years_between
from hr_etl.common.exceptions import CleanerError, MigrationPreconditionError
from hr_etl.common.migrations import Migration, MigrationRunner

logger = logging.getLogger(__name__)

STAGE = "clean"
EMPLOYEES = "employees"

MIN_WORKING_AGE = 18

# "known invalid" termdate, as opposed to NULL meaning still employed
TERMDATE_SENTINEL = date(1900, 1, 1)


# =============================================================================
# COLUMN STATE
# =============================================================================

def is_date_column(conn: Connection, column: str) -> bool:
    table = reflect_table(conn, EMPLOYEES)
    if column not in table.c:
        raise CleanerError(f"Column '{column}' not found in {EMPLOYEES}", column=column)
    return isinstance(table.c[column].type, Date)


def require_date_columns(*columns: str):
    """Precondition factory: the given columns must already be typed DATE."""
    def check(conn: Connection) -> None:
        pending = [c for c in columns if not is_date_column(conn, c)]
        if pending:
            raise MigrationPreconditionError(
                f"Columns still stored as text: {pending}",
                details={"columns": pending},
            )
    return check


# =============================================================================
# DATE NORMALIZATION
# =============================================================================

def normalize_delimited_dates(conn: Connection, column: str, stats: Dict[str, Any]) -> int:
    """
    Parse a mixed-separator text date column and retype it to DATE.

    Values matching neither separator (or an impossible date) become NULL.
    The update and the retype happen in one table rewrite.
    """
    if is_date_column(conn, column):
        logger.info(f"{column} is already a DATE column, nothing to do")
        return 0

    df = read_table(conn, EMPLOYEES)
    raw = df[column]

    separators = discover_separators(raw)
    logger.info(f"{column}: separators found {sorted(separators)}")
    try:
        order = infer_date_order(raw, separators)
    except CleanerError as e:
        e.details["column"] = column
        raise

    parsed = raw.map(lambda v: parse_delimited_date(v, order, separators))
    nulled = int((parsed.isna() & raw.notna() & (raw.astype(str).str.strip() != "")).sum())
    if nulled:
        logger.warning(f"{column}: {nulled} values did not match a known layout, set to NULL")

    df[column] = parsed
    rows = rebuild_table(conn, EMPLOYEES, df, {column: Date()})

    stats[column] = {
        "separators": sorted(separators),
        "order": str(order),
        "unparsed_to_null": nulled,
    }
    return rows


def normalize_termdate(conn: Connection, stats: Dict[str, Any]) -> int:
    """Blank termdate -> NULL, UTC timestamps -> their date, then retype to DATE."""
    if is_date_column(conn, "termdate"):
        logger.info("termdate is already a DATE column, nothing to do")
        return 0

    df = read_table(conn, EMPLOYEES)
    raw = df["termdate"]
    blank = raw.isna() | (raw.astype(str).str.strip() == "")

    parsed = raw.map(parse_termdate)
    unparsed = int((parsed.isna() & ~blank).sum())
    if unparsed:
        logger.warning(f"termdate: {unparsed} values did not match the timestamp layout, set to NULL")

    df["termdate"] = parsed
    rows = rebuild_table(conn, EMPLOYEES, df, {"termdate": Date()})

    stats["termdate"] = {
        "blank_to_null": int(blank.sum()),
        "unparsed_to_null": unparsed,
    }
    return rows


# =============================================================================
# DERIVED AGE
# =============================================================================

def compute_age(conn: Connection, as_of: date) -> int:
    """
    Set age to the whole-year difference between birthdate and as_of.

    Rows sharing a birthdate share an age, so one UPDATE per distinct
    birthdate is enough and no row key is needed.
    """
    employees = reflect_table(conn, EMPLOYEES)
    if "age" not in employees.c:
        raise CleanerError("age column does not exist yet", column="age")

    conn.execute(
        update(employees).where(employees.c.birthdate.is_(None)).values(age=None)
    )

    birthdates = conn.execute(
        select(employees.c.birthdate).where(employees.c.birthdate.is_not(None)).distinct()
    ).scalars().all()
    if not birthdates:
        return 0

    stmt = (
        update(employees)
        .where(employees.c.birthdate == bindparam("b_birthdate"))
        .values(age=bindparam("b_age"))
    )
    conn.execute(stmt, [
        {"b_birthdate": b, "b_age": years_between(b, as_of)} for b in birthdates
    ])

    return conn.execute(
        select(func.count()).select_from(employees).where(employees.c.age.is_not(None))
    ).scalar()


def add_age(conn: Connection, as_of: date) -> int:
    if "age" not in column_names(conn, EMPLOYEES):
        add_column(conn, EMPLOYEES, "age", "INTEGER")
    return compute_age(conn, as_of)


# =============================================================================
# OUTLIER CORRECTION
# =============================================================================

def correct_birthdate_outliers(
    conn: Connection,
    as_of: date,
    min_age: int = MIN_WORKING_AGE,
    stats: Optional[Dict[str, Any]] = None,
) -> int:
    """
    NULL every birthdate less than `min_age` years before as_of, and its age.

    Unknown beats wrong: the record is kept, only the value is dropped.
    """
    employees = reflect_table(conn, EMPLOYEES)
    cutoff = subtract_years(as_of, min_age)

    result = conn.execute(
        update(employees).where(employees.c.birthdate > cutoff).values(birthdate=None)
    )
    corrected = result.rowcount

    if "age" in employees.c:
        conn.execute(
            update(employees).where(employees.c.birthdate.is_(None)).values(age=None)
        )

    logger.info(f"Birthdates after {cutoff} set to NULL: {corrected}")
    if stats is not None:
        stats["birthdate_outliers"] = corrected
    return corrected


def correct_termdate_outliers(
    conn: Connection,
    sentinel: date = TERMDATE_SENTINEL,
    stats: Optional[Dict[str, Any]] = None,
) -> int:
    """Replace every termdate on/after the latest hire_date with the sentinel date."""
    employees = reflect_table(conn, EMPLOYEES)
    max_hire = conn.execute(select(func.max(employees.c.hire_date))).scalar()
    if max_hire is None:
        logger.warning("No hire_date values, termdate bound not applied")
        return 0

    result = conn.execute(
        update(employees).where(employees.c.termdate >= max_hire).values(termdate=sentinel)
    )
    corrected = result.rowcount
    logger.info(f"Termdates on/after {max_hire} set to {sentinel}: {corrected}")
    if stats is not None:
        stats["termdate_outliers"] = corrected
        stats["max_hire_date"] = max_hire
    return corrected


# =============================================================================
# MAIN CLEANER FUNCTION
# =============================================================================

def cleaner_migrations(as_of: date, stats: Dict[str, Any]) -> List[Migration]:
    """The ordered cleaning units."""
    return [
        Migration(
            name="clean_birthdate",
            stage=STAGE,
            apply=lambda conn: normalize_delimited_dates(conn, "birthdate", stats),
        ),
        Migration(
            name="clean_hire_date",
            stage=STAGE,
            apply=lambda conn: normalize_delimited_dates(conn, "hire_date", stats),
        ),
        Migration(
            name="clean_termdate",
            stage=STAGE,
            apply=lambda conn: normalize_termdate(conn, stats),
        ),
        Migration(
            name="add_age",
            stage=STAGE,
            apply=lambda conn: add_age(conn, as_of),
            precondition=require_date_columns("birthdate"),
        ),
        Migration(
            name="correct_birthdate_outliers",
            stage=STAGE,
            apply=lambda conn: correct_birthdate_outliers(conn, as_of, stats=stats),
            precondition=require_date_columns("birthdate"),
        ),
        Migration(
            name="correct_termdate_outliers",
            stage=STAGE,
            apply=lambda conn: correct_termdate_outliers(conn, stats=stats),
            precondition=require_date_columns("hire_date", "termdate"),
        ),
    ]


def run_cleaner(
    engine: Optional[Engine] = None,
    as_of: Optional[date] = None,
    validate: bool = True,
) -> Dict[str, Any]:
    """
    Run the complete cleaning stage.

    Args:
        engine: Database engine (created if not provided)
        as_of: Processing date for age and the minimum-age rule (default: today)
        validate: If True, run validation checks on the cleaned table

    Returns:
        dict: Per-column statistics, migration outcomes and validation report
    """
    logger.info("=" * 60)
    logger.info("CLEANER: Normalizing dates and deriving age")
    logger.info("=" * 60)

    engine = engine or get_engine()
    as_of = as_of or date.today()
    stats: Dict[str, Any] = {"as_of": as_of}

    outcomes = MigrationRunner(engine).run(cleaner_migrations(as_of, stats))

    validation = None
    if validate:
        with engine.connect() as conn:
            df = read_table(conn, EMPLOYEES)
        validation = run_cleaner_validation(df, as_of)

    logger.info("=" * 60)
    logger.info(f"CLEANER COMPLETE: {sum(o.status == 'applied' for o in outcomes)} units applied")
    logger.info("=" * 60)

    return {
        "stats": stats,
        "migrations": outcomes,
        "validation": validation,
    }
