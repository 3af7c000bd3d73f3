# hr_etl/cleaner/refresh.py
"""
Recompute the derived age column for a new processing date.

age is a point-in-time value: it is not kept in sync by the database, so a
later run has to recompute it. The minimum-age rule is re-applied at the same
time because its cutoff moves with the processing date.
"""

import logging
from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy.engine import Connection, Engine

from db.db_utils import column_names, get_engine
from hr_etl.cleaner.transformer import (
    EMPLOYEES,
    STAGE,
    compute_age,
    correct_birthdate_outliers,
    require_date_columns,
)
from hr_etl.common.exceptions import MigrationPreconditionError
from hr_etl.common.migrations import Migration, MigrationRunner

logger = logging.getLogger(__name__)


def _require_age_column(conn: Connection) -> None:
    require_date_columns("birthdate")(conn)
    if "age" not in column_names(conn, EMPLOYEES):
        raise MigrationPreconditionError(
            "age column missing, run the cleaner first", migration="refresh_age"
        )


def refresh_age(engine: Optional[Engine] = None, as_of: Optional[date] = None) -> Dict[str, Any]:
    """
    Recompute age (and re-null underage birthdates) as of a processing date.
    
    Runs every time it is called; the ledger keeps the latest run.
    
    Returns:
        dict: Processing date, rows with an age, birthdates corrected
    """
    logger.info("=" * 60)
    logger.info("REFRESHING DERIVED AGE")
    logger.info("=" * 60)
    
    engine = engine or get_engine()
    as_of = as_of or date.today()
    stats: Dict[str, Any] = {}
    
    def apply(conn: Connection) -> int:
        corrected = correct_birthdate_outliers(conn, as_of, stats=stats)
        aged = compute_age(conn, as_of)
        stats["aged_rows"] = aged
        return aged + corrected
    
    MigrationRunner(engine).run([
        Migration(
            name="refresh_age",
            stage=STAGE,
            apply=apply,
            precondition=_require_age_column,
            always_run=True,
        )
    ])
    
    logger.info(f"REFRESH COMPLETE: {stats.get('aged_rows', 0)} ages as of {as_of}, "
                f"{stats.get('birthdate_outliers', 0)} birthdates corrected")
    
    return {
        "as_of": as_of,
        "aged_rows": stats.get("aged_rows", 0),
        "birthdate_outliers": stats.get("birthdate_outliers", 0),
    }
