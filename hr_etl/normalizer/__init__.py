"""
Normalizer - dimension extraction, foreign key backfill and removal of the
redundant text columns from the employees fact table.
"""

from hr_etl.normalizer.dimensions import (
    Dimension,
    SimpleDimension,
    CompositeDimension,
    find_ambiguous_children,
    natural_key_report,
)
from hr_etl.normalizer.loader import (
    run_normalizer,
    default_dimensions,
    normalizer_migrations,
    dimension_row_counts,
)

__all__ = [
    "Dimension",
    "SimpleDimension",
    "CompositeDimension",
    "find_ambiguous_children",
    "natural_key_report",
    "run_normalizer",
    "default_dimensions",
    "normalizer_migrations",
    "dimension_row_counts",
]
