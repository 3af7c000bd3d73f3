"""
Normalizer - split the employees table into a snowflake schema.

    ethnicities, genders, locations          -> employees.<x>_id
    departments -> jobtitles                 -> employees.jobtitle_id
    states      -> cities                    -> employees.city_id
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Engine

from db.db_utils import get_engine, reflect_table, table_exists
from hr_etl.common.migrations import Migration, MigrationRunner
from hr_etl.normalizer.dimensions import (
    CompositeDimension,
    Dimension,
    SimpleDimension,
    natural_key_report,
)

logger = logging.getLogger(__name__)


def default_dimensions() -> List[Dimension]:
    """The dimensions of the HR schema, parents before their children."""
    departments = SimpleDimension(table="departments", source_column="department")
    states = SimpleDimension(table="states", source_column="location_state")
    return [
        SimpleDimension(table="ethnicities", source_column="race", fk_column="ethnicity_id"),
        SimpleDimension(table="genders", source_column="gender", fk_column="gender_id"),
        SimpleDimension(table="locations", source_column="location", fk_column="location_id"),
        departments,
        CompositeDimension(
            table="jobtitles",
            parent=departments,
            child_column="jobtitle",
            fk_column="jobtitle_id",
            parent_key_column="department_id",
            child_attribute="jobtitle",
        ),
        states,
        CompositeDimension(
            table="cities",
            parent=states,
            child_column="location_city",
            fk_column="city_id",
            parent_key_column="state_id",
        ),
    ]


def normalizer_migrations(dimensions: List[Dimension]) -> List[Migration]:
    steps = []
    for dimension in dimensions:
        steps.extend(dimension.migrations())
    return steps


def dimension_row_counts(engine: Engine, dimensions: List[Dimension]) -> Dict[str, int]:
    counts = {}
    with engine.connect() as conn:
        for dimension in dimensions:
            if not table_exists(conn, dimension.table):
                counts[dimension.table] = 0
                continue
            table = reflect_table(conn, dimension.table)
            counts[dimension.table] = conn.execute(
                select(func.count()).select_from(table)
            ).scalar()
    return counts


def run_normalizer(
    engine: Optional[Engine] = None,
    dimensions: Optional[List[Dimension]] = None,
) -> Dict[str, Any]:
    """
    Run the complete normalization stage.
    
    Args:
        engine: Database engine (created if not provided)
        dimensions: Dimension builders in dependency order (default: HR schema)
    
    Returns:
        dict: Rows per dimension table, ambiguous child values, migration outcomes
    """
    logger.info("=" * 60)
    logger.info("NORMALIZER: Building snowflake schema")
    logger.info("=" * 60)
    
    engine = engine or get_engine()
    dimensions = dimensions if dimensions is not None else default_dimensions()
    
    outcomes = MigrationRunner(engine).run(normalizer_migrations(dimensions))
    
    ambiguous = natural_key_report(dimensions)
    counts = dimension_row_counts(engine, dimensions)
    
    logger.info("=" * 60)
    logger.info("NORMALIZER COMPLETE: " + ", ".join(f"{t}={n}" for t, n in counts.items()))
    logger.info("=" * 60)
    
    return {
        "dimensions": counts,
        "ambiguous_children": ambiguous,
        "migrations": outcomes,
    }
