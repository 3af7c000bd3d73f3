# hr_etl/__init__.py
"""
HR Snowflake ETL.

Cleans the flat employees export and normalizes it into a snowflake schema
for BI reporting:
- Raw: load the export as text into an employees table
- Cleaner: repair date columns, derive age, correct outliers
- Normalizer: extract dimension tables and rewire the fact table to them

Usage:
    from hr_etl import run_snowflake_etl
    results = run_snowflake_etl("Human Resources.csv")
    
    # Or run individual stages:
    from hr_etl.raw import run_raw_load
    from hr_etl.cleaner import run_cleaner
    from hr_etl.normalizer import run_normalizer
"""

__version__ = "1.0.0"
__author__ = "ETL Team"

# Main entry point
from hr_etl.orchestrator import run_snowflake_etl

# Stage-specific exports
from hr_etl.raw import run_raw_load
from hr_etl.cleaner import run_cleaner, refresh_age
from hr_etl.normalizer import run_normalizer
from hr_etl.common import validate_post_load, QCReport, QCResult

__all__ = [
    # Version
    "__version__",
    # Main orchestrator
    "run_snowflake_etl",
    # Raw stage
    "run_raw_load",
    # Cleaner stage
    "run_cleaner",
    "refresh_age",
    # Normalizer stage
    "run_normalizer",
    # Common utilities
    "validate_post_load",
    "QCReport",
    "QCResult",
]
