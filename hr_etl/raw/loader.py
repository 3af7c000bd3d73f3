# hr_etl/raw/loader.py
"""
Raw load - put the HR export into an all-text employees table.

No type conversion happens here; the cleaner works on the text as exported.
"""

import os
import logging
from typing import Any, Dict, Optional

import pandas as pd
from sqlalchemy import Text
from sqlalchemy.engine import Engine

from db.db_utils import get_engine
from hr_etl.common.exceptions import RawLoadError

logger = logging.getLogger(__name__)

EMPLOYEES = "employees"

REQUIRED_COLUMNS = [
    "race", "gender", "location", "location_city", "location_state",
    "department", "jobtitle", "birthdate", "hire_date", "termdate",
]


def check_required_columns(df: pd.DataFrame, file_path: Optional[str] = None) -> None:
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise RawLoadError(
            f"Employee data is missing columns: {missing}",
            file_path=file_path,
            details={"missing_columns": missing},
        )


def read_employee_csv(file_path: str, sep: str = ",") -> pd.DataFrame:
    """
    Read the HR export with every column as a string.
    
    Empty cells stay empty strings: an empty termdate means "still employed"
    and is turned into NULL by the cleaner, not here.
    
    Raises:
        RawLoadError: if the file cannot be read or lacks required columns
    """
    file_name = os.path.basename(file_path)
    logger.info(f"Reading file: {file_name}")
    
    try:
        df = pd.read_csv(
            file_path,
            sep=sep,
            dtype=str,
            keep_default_na=False,
            encoding="utf-8-sig",
        )
    except (OSError, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise RawLoadError(f"Failed to read {file_name}", file_path=file_path, original_error=e) from e
    
    df.columns = df.columns.str.strip().str.replace('"', '')
    check_required_columns(df, file_path)
    logger.info(f"  {len(df)} records, columns: {list(df.columns)}")
    return df


def load_raw_employees(df: pd.DataFrame, engine: Optional[Engine] = None, table: str = EMPLOYEES) -> int:
    """
    Replace the employees table with the given frame, every column as TEXT.
    
    Args:
        df: Raw employee records
        engine: Database engine (created if not provided)
        table: Target table name
    
    Returns:
        Number of records loaded
    """
    check_required_columns(df)
    engine = engine or get_engine()
    
    with engine.begin() as conn:
        df.to_sql(
            name=table,
            con=conn,
            if_exists="replace",
            index=False,
            dtype={c: Text() for c in df.columns},
            chunksize=1000,
        )
    
    logger.info(f"  Loaded {len(df)} records into {table}")
    return len(df)


def run_raw_load(file_path: str, engine: Optional[Engine] = None) -> Dict[str, Any]:
    """
    Run the raw load: CSV file -> employees table.
    
    Returns:
        dict: Source file and record count
    """
    logger.info("=" * 60)
    logger.info("RAW LOAD: Loading employee export")
    logger.info("=" * 60)
    
    df = read_employee_csv(file_path)
    count = load_raw_employees(df, engine)
    
    logger.info("=" * 60)
    logger.info(f"RAW LOAD COMPLETE: {count} employees loaded")
    logger.info("=" * 60)
    
    return {"file": os.path.basename(file_path), "employees": count}
