"""
Logging setup for HR ETL runs.

One console handler (stdout) and, optionally, a per-run log file. The level
comes from the caller, else from HR_ETL_LOG_LEVEL, else INFO.
"""

import logging
import os
import sys
from pathlib import Path
from datetime import datetime
from typing import Optional, Union


DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_LEVEL_ENV = "HR_ETL_LOG_LEVEL"


def resolve_level(level: Optional[Union[int, str]] = None) -> int:
    """Accept a logging constant or a level name such as "debug"."""
    if level is None:
        level = os.getenv(LOG_LEVEL_ENV, "INFO")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def configure_logging(
    level: Optional[Union[int, str]] = None,
    log_file: Optional[str] = None,
    echo_sql: bool = False,
    log_format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> None:
    """
    Configure the root logger for an ETL run.

    Args:
        level: Logging level or its name (default: HR_ETL_LOG_LEVEL or INFO)
        log_file: Optional path to a log file, parent directories are created
        echo_sql: Log every SQL statement (sqlalchemy.engine at INFO)
        log_format: Log message format
        date_format: Date format in log messages
    """
    level = resolve_level(level)
    formatter = logging.Formatter(log_format, date_format)
    handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if echo_sql else logging.WARNING)


def create_run_log_file(base_dir: str = "logs", prefix: str = "hr_etl_run") -> str:
    """
    Build a timestamped log file path for one run, creating base_dir.

    Returns:
        e.g. logs/hr_etl_run_20250101_093000.log
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_dir = Path(base_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    return str(log_dir / f"{prefix}_{timestamp}.log")


def log_banner(logger: logging.Logger, title: str, width: int = 70) -> None:
    logger.info("")
    logger.info("=" * width)
    logger.info(f"  {title}")
    logger.info("=" * width)
