from hr_etl.raw.loader import (
    run_raw_load,
    read_employee_csv,
    load_raw_employees,
    REQUIRED_COLUMNS,
)

__all__ = [
    "run_raw_load",
    "read_employee_csv",
    "load_raw_employees",
    "REQUIRED_COLUMNS",
]
