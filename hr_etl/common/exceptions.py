# hr_etl/common/exceptions.py
"""
Custom exceptions for the HR snowflake ETL.
Provides specific error types for each stage and common error scenarios.
"""

from typing import Optional, Dict, Any


class ETLError(Exception):
    """Base exception for all ETL errors."""
    
    def __init__(
        self, 
        message: str, 
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error
    
    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class RawLoadError(ETLError):
    """Exception raised while loading the raw employee file."""
    
    def __init__(
        self, 
        message: str, 
        file_path: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if file_path:
            details["file_path"] = file_path
        super().__init__(message, details=details, **kwargs)


class CleanerError(ETLError):
    """Exception raised when a cleaning unit cannot complete."""
    
    def __init__(
        self, 
        message: str, 
        column: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if column:
            details["column"] = column
        super().__init__(message, details=details, **kwargs)


class DateFormatError(CleanerError):
    """Exception raised when the layout of a date column cannot be inferred."""


class NormalizerError(ETLError):
    """Exception raised while building or backfilling a dimension."""
    
    def __init__(
        self, 
        message: str, 
        dimension_table: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if dimension_table:
            details["dimension_table"] = dimension_table
        super().__init__(message, details=details, **kwargs)


class MigrationPreconditionError(ETLError):
    """Exception raised when a migration step is not allowed to run yet."""
    
    def __init__(
        self, 
        message: str, 
        migration: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if migration:
            details["migration"] = migration
        super().__init__(message, details=details, **kwargs)


class ValidationError(ETLError):
    """Exception raised when data validation fails."""
    
    def __init__(
        self, 
        message: str, 
        validation_type: Optional[str] = None,
        failed_checks: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if validation_type:
            details["validation_type"] = validation_type
        if failed_checks:
            details["failed_checks"] = failed_checks
        super().__init__(message, details=details, **kwargs)
