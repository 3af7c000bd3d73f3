"""
Post-Processing & Quality Control Module
- Row counts per table
- Natural keys of every dimension present and unique
- Every fact foreign key resolving to exactly one dimension row
- Cleaned-date rules (minimum working age, age consistency, termdate bound,
  no hire date after the processing date)
- Round trip of the normalized text attributes
"""

import logging
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional
from datetime import date, datetime
import pandas as pd
from sqlalchemy import func, select
from sqlalchemy.engine import Engine

from db.db_utils import reflect_table, table_exists
from hr_etl.common.date_math import subtract_years, years_between

logger = logging.getLogger(__name__)


@dataclass
class QCResult:
    """Single quality check result."""
    check_name: str
    table_name: str
    passed: bool
    message: str
    details: Optional[Dict[str, Any]] = None


@dataclass
class QCReport:
    """Aggregated QC report for an ETL run."""
    timestamp: datetime = field(default_factory=datetime.now)
    results: List[QCResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results)

    @property
    def failures(self) -> List[QCResult]:
        return [r for r in self.results if not r.passed]

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    def add(self, result: QCResult) -> None:
        self.results.append(result)
        log_fn = logger.info if result.passed else logger.warning
        log_fn(f"[QC {'PASS' if result.passed else 'FAIL'}] "
               f"{result.table_name}: {result.check_name} - {result.message}")

    def summary(self) -> str:
        lines = [
            "=" * 60,
            f"QC REPORT - {self.timestamp.strftime('%Y-%m-%d %H:%M:%S')}",
            f"{len(self.results)} checks, {self.failed_count} failed",
            "-" * 60,
        ]
        lines += [
            f"[{'PASS' if r.passed else 'FAIL'}] {r.table_name}.{r.check_name}: {r.message}"
            for r in self.results
        ]
        lines.append("=" * 60)
        return "\n".join(lines)


# INDIVIDUAL CHECK FUNCTIONS

def check_row_count(df: pd.DataFrame, table_name: str, min_rows: int = 1) -> QCResult:
    return QCResult(
        check_name="row_count",
        table_name=table_name,
        passed=len(df) >= min_rows,
        message=f"{len(df)} rows (min: {min_rows})",
        details={"row_count": len(df)}
    )


def check_natural_key(df: pd.DataFrame, table_name: str, key_columns: List[str]) -> QCResult:
    """
    Dimension rows must have an id and a complete natural key, and neither
    may repeat. For composite dimensions the key is the (parent id, child)
    pair, so the same child text under two parents is fine.
    """
    missing = [c for c in ["id"] + key_columns if c not in df.columns]
    if missing:
        return QCResult(
            check_name="natural_key",
            table_name=table_name,
            passed=False,
            message=f"Columns missing: {missing}"
        )

    incomplete = int(df[["id"] + key_columns].isna().any(axis=1).sum())
    duplicate_ids = int(df["id"].duplicated().sum())
    duplicate_keys = int(df.duplicated(subset=key_columns).sum())
    passed = incomplete == duplicate_ids == duplicate_keys == 0

    return QCResult(
        check_name="natural_key",
        table_name=table_name,
        passed=passed,
        message=f"Key {key_columns}: {incomplete} incomplete, "
                f"{duplicate_ids} repeated ids, {duplicate_keys} repeated keys",
        details={"incomplete": incomplete, "duplicate_ids": duplicate_ids,
                 "duplicate_keys": duplicate_keys}
    )


def check_referential_integrity(
    child_df: pd.DataFrame,
    parent_df: pd.DataFrame,
    child_table: str,
    parent_table: str,
    child_key: str,
    parent_key: str
) -> QCResult:
    """Check that all foreign keys in child table exist exactly once in parent table."""
    if child_key not in child_df.columns or parent_key not in parent_df.columns:
        return QCResult(
            check_name=f"ref_integrity_{child_key}",
            table_name=child_table,
            passed=True,
            message="Key columns not found for check"
        )

    child_keys = set(child_df[child_key].dropna().astype(int).unique())
    parent_counts = parent_df[parent_key].dropna().astype(int).value_counts()

    orphans = child_keys - set(parent_counts.index)
    ambiguous = {k for k in child_keys if parent_counts.get(k, 0) > 1}
    passed = not orphans and not ambiguous

    message = f"Orphan keys: {len(orphans)}" + (f" (missing in {parent_table})" if orphans else "")
    if ambiguous:
        message += f", keys matching several {parent_table} rows: {len(ambiguous)}"

    return QCResult(
        check_name=f"ref_integrity_{child_key}",
        table_name=child_table,
        passed=passed,
        message=message,
        details={"orphan_count": len(orphans), "sample_orphans": sorted(orphans)[:10],
                 "ambiguous_count": len(ambiguous)}
    )


def check_not_after(df: pd.DataFrame, table_name: str, column: str, as_of: date) -> QCResult:
    """No value of a date column may lie after the processing date."""
    values = pd.to_datetime(df[column], errors="coerce")
    future = int((values > pd.Timestamp(as_of)).sum())
    return QCResult(
        check_name=f"not_after_as_of_{column}",
        table_name=table_name,
        passed=future == 0,
        message=f"Values after {as_of}: {future}",
        details={"violations": future}
    )


def check_min_age(df: pd.DataFrame, table_name: str, as_of: date, min_age: int = 18) -> QCResult:
    """Birthdates must be NULL or at least `min_age` years before as_of."""
    cutoff = pd.Timestamp(subtract_years(as_of, min_age))
    birthdates = pd.to_datetime(df["birthdate"], errors="coerce")
    too_young = int((birthdates > cutoff).sum())
    return QCResult(
        check_name="min_working_age",
        table_name=table_name,
        passed=too_young == 0,
        message=f"Birthdates after {cutoff.date()}: {too_young}",
        details={"violations": too_young, "cutoff": str(cutoff.date())}
    )


def check_age_consistency(df: pd.DataFrame, table_name: str, as_of: date) -> QCResult:
    """age is NULL iff birthdate is NULL, otherwise the whole-year difference to as_of."""
    birthdates = pd.to_datetime(df["birthdate"], errors="coerce")
    null_mismatch = int((birthdates.isna() != df["age"].isna()).sum())

    wrong = 0
    for b, age in zip(birthdates, df["age"]):
        if pd.notna(b) and pd.notna(age) and years_between(b.date(), as_of) != int(age):
            wrong += 1

    return QCResult(
        check_name="age_consistency",
        table_name=table_name,
        passed=null_mismatch == 0 and wrong == 0,
        message=f"NULL mismatches: {null_mismatch}, wrong ages: {wrong}",
        details={"null_mismatch": null_mismatch, "wrong_age": wrong}
    )


def check_sentinel_bound(
    df: pd.DataFrame,
    table_name: str,
    column: str,
    bound_column: str,
    sentinel: date,
) -> QCResult:
    """Every value of `column` must be below max(`bound_column`), or be the sentinel."""
    values = pd.to_datetime(df[column], errors="coerce")
    bound = pd.to_datetime(df[bound_column], errors="coerce").max()
    if pd.isna(bound):
        return QCResult(
            check_name=f"upper_bound_{column}",
            table_name=table_name,
            passed=True,
            message=f"No {bound_column} values to bound against"
        )

    violations = int(((values >= bound) & (values != pd.Timestamp(sentinel))).sum())
    sentinels = int((values == pd.Timestamp(sentinel)).sum())
    return QCResult(
        check_name=f"upper_bound_{column}",
        table_name=table_name,
        passed=violations == 0,
        message=f"Values on/after {bound.date()}: {violations} (sentinel rows: {sentinels})",
        details={"violations": violations, "sentinel_rows": sentinels}
    )


def check_round_trip(
    original_df: pd.DataFrame,
    reconstructed_df: pd.DataFrame,
    table_name: str,
    key_column: str,
    columns: List[str],
    foreign_keys: Optional[Dict[str, str]] = None,
) -> QCResult:
    """
    Text rebuilt from the dimensions must equal the pre-normalization text.

    With `foreign_keys` (attribute -> FK column of reconstructed_df), an
    attribute is only compared on rows whose FK is set. A NULL FK carries no
    text, so the row has nothing to round-trip.
    """
    foreign_keys = foreign_keys or {}
    key_columns = sorted(set(foreign_keys[c] for c in columns if c in foreign_keys))
    merged = original_df[[key_column] + columns].merge(
        reconstructed_df[[key_column] + columns + key_columns],
        on=key_column,
        how="left",
        suffixes=("_before", "_after"),
    )
    mismatches = {}
    skipped = {}
    for col in columns:
        before = merged[f"{col}_before"]
        after = merged[f"{col}_after"]
        differs = ~((before == after) | (before.isna() & after.isna()))
        if col in foreign_keys:
            unlinked = merged[foreign_keys[col]].isna()
            if (differs & unlinked).any():
                skipped[col] = int((differs & unlinked).sum())
            differs &= ~unlinked
        if differs.any():
            mismatches[col] = int(differs.sum())

    message = f"Mismatched attributes: {mismatches or 'none'}"
    if skipped:
        message += f", rows without a foreign key: {skipped}"
    return QCResult(
        check_name="round_trip",
        table_name=table_name,
        passed=not mismatches,
        message=message,
        details={"mismatches": mismatches, "unlinked": skipped}
    )


# AGGREGATE VALIDATION FUNCTIONS

DIMENSION_KEYS = {
    "ethnicities": ["name"],
    "genders": ["name"],
    "locations": ["name"],
    "departments": ["name"],
    "jobtitles": ["department_id", "jobtitle"],
    "states": ["name"],
    "cities": ["state_id", "name"],
}

FOREIGN_KEYS = [
    # (child table, child key, parent table)
    ("employees", "ethnicity_id", "ethnicities"),
    ("employees", "gender_id", "genders"),
    ("employees", "location_id", "locations"),
    ("employees", "jobtitle_id", "jobtitles"),
    ("employees", "city_id", "cities"),
    ("jobtitles", "department_id", "departments"),
    ("cities", "state_id", "states"),
]

# fact text attribute -> fact foreign key that carries it after normalization
TEXT_FOREIGN_KEYS = {
    "race": "ethnicity_id",
    "gender": "gender_id",
    "location": "location_id",
    "department": "jobtitle_id",
    "jobtitle": "jobtitle_id",
    "location_city": "city_id",
    "location_state": "city_id",
}


def run_quality_checks(
    frames: Dict[str, pd.DataFrame],
    as_of: date,
    termdate_sentinel: date,
) -> QCReport:
    """Run all quality checks on the normalized schema and return report."""
    report = QCReport()

    logger.info("=" * 60)
    logger.info("RUNNING QUALITY CHECKS")
    logger.info("=" * 60)

    # ---- DIMENSIONS ----
    for table_name, key_columns in DIMENSION_KEYS.items():
        if table_name not in frames:
            continue
        df = frames[table_name]
        report.add(check_row_count(df, table_name))
        report.add(check_natural_key(df, table_name, key_columns))

    # ---- FACT: EMPLOYEES ----
    employees = frames["employees"]
    report.add(check_row_count(employees, "employees"))
    report.add(check_min_age(employees, "employees", as_of))
    report.add(check_age_consistency(employees, "employees", as_of))
    report.add(check_sentinel_bound(employees, "employees", "termdate", "hire_date", termdate_sentinel))
    report.add(check_not_after(employees, "employees", "hire_date", as_of))

    # ---- REFERENTIAL INTEGRITY ----
    for child_table, child_key, parent_table in FOREIGN_KEYS:
        if child_table in frames and parent_table in frames:
            report.add(check_referential_integrity(
                frames[child_table], frames[parent_table],
                child_table, parent_table,
                child_key, "id"
            ))

    logger.info(report.summary())

    return report


def validate_post_load(engine: Engine, table_names: List[str]) -> QCReport:
    """
    Post-load validation: verify every table of the schema exists and has rows.

    Args:
        engine: Database engine
        table_names: Tables to count

    Returns:
        QCReport with validation results
    """
    report = QCReport()
    logger.info("=" * 60)
    logger.info("POST-LOAD VALIDATION")
    logger.info("=" * 60)

    with engine.connect() as conn:
        for table_name in table_names:
            if not table_exists(conn, table_name):
                report.add(QCResult(
                    check_name="post_load_count",
                    table_name=table_name,
                    passed=False,
                    message="Table does not exist"
                ))
                continue
            table = reflect_table(conn, table_name)
            count = conn.execute(select(func.count()).select_from(table)).scalar()
            report.add(QCResult(
                check_name="post_load_count",
                table_name=table_name,
                passed=count > 0,
                message=f"Records in database: {count}",
                details={"db_row_count": count}
            ))

    logger.info(report.summary())
    return report
