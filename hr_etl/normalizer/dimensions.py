"""
Dimension builders for the snowflake schema.

Two variants share one life cycle (build -> backfill -> drop source text):

* SimpleDimension: one source column, one row per distinct value.
* CompositeDimension: a child attribute that only has a meaning under a
  parent dimension (job title under department, city under state). Rows are
  distinct (parent, child) pairs and the fact table is matched on both.

Each builder turns its life cycle into ordered Migration steps so the
irreversible column drops only happen once the backfill is complete.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import pandas as pd
from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    func,
    select,
    update,
)
from sqlalchemy.engine import Connection

from db.db_utils import (
    add_column,
    clean_nulls,
    column_names,
    drop_columns,
    read_table,
    reflect_table,
    table_exists,
)
from hr_etl.common.exceptions import MigrationPreconditionError, NormalizerError
from hr_etl.common.migrations import Migration

logger = logging.getLogger(__name__)

STAGE = "normalize"
EMPLOYEES = "employees"


def find_ambiguous_children(frame: pd.DataFrame, parent_col: str, child_col: str) -> pd.DataFrame:
    """
    Find child values that occur under more than one parent.

    Groups by (parent, child), then groups those pairs by child alone.

    Args:
        frame: Fact rows holding both columns
        parent_col: e.g. "department"
        child_col: e.g. "jobtitle"

    Returns:
        The (parent, child) pairs of every ambiguous child, sorted by child
    """
    pairs = frame[[parent_col, child_col]].dropna().drop_duplicates()
    parents_per_child = pairs.groupby(child_col)[parent_col].nunique()
    ambiguous = parents_per_child[parents_per_child > 1].index
    return (
        pairs[pairs[child_col].isin(ambiguous)]
        .sort_values([child_col, parent_col])
        .reset_index(drop=True)
    )


class Dimension(ABC):
    """Shared backfill / verify / drop logic. Subclasses define build and lookup."""

    table: str
    fk_column: Optional[str]
    fact_table: str

    @property
    @abstractmethod
    def source_columns(self) -> List[str]:
        ...

    @property
    @abstractmethod
    def dropped_columns(self) -> List[str]:
        ...

    @abstractmethod
    def build(self, conn: Connection) -> int:
        ...

    @abstractmethod
    def lookup(self, conn: Connection, fact: Table):
        """Correlated scalar subquery returning the dimension id for a fact row."""

    # BUILD HELPERS

    def _create(self, conn: Connection, table: Table, rows: pd.DataFrame) -> int:
        if table_exists(conn, self.table):
            raise NormalizerError(
                "Dimension table already exists; reference data is never rebuilt in place",
                dimension_table=self.table,
            )
        table.create(conn)
        if not rows.empty:
            conn.execute(table.insert(), clean_nulls(rows).to_dict(orient="records"))
        logger.info(f"  {self.table}: {len(rows)} rows")
        return len(rows)

    def _require_source_columns(self, conn: Connection, migration: str) -> None:
        missing = [c for c in self.source_columns if c not in column_names(conn, self.fact_table)]
        if missing:
            raise MigrationPreconditionError(
                f"Source columns {missing} no longer exist on {self.fact_table}",
                migration=migration,
            )

    # BACKFILL

    def backfill(self, conn: Connection) -> int:
        """Add the foreign key column on the fact table and fill it from the source text."""
        if self.fk_column not in column_names(conn, self.fact_table):
            add_column(conn, self.fact_table, self.fk_column, "INTEGER", references=self.table)

        fact = reflect_table(conn, self.fact_table)
        conn.execute(update(fact).values({self.fk_column: self.lookup(conn, fact)}))

        has_source = [fact.c[c].is_not(None) for c in self.source_columns]
        unmatched = conn.execute(
            select(func.count()).select_from(fact)
            .where(fact.c[self.fk_column].is_(None), *has_source)
        ).scalar()
        if unmatched:
            logger.warning(f"  {self.fk_column}: {unmatched} rows have no matching {self.table} row, left NULL")

        return conn.execute(
            select(func.count()).select_from(fact).where(fact.c[self.fk_column].is_not(None))
        ).scalar()

    def check_backfill_complete(self, conn: Connection) -> None:
        """
        Precondition for dropping the source text.

        The foreign key must exist and be set on every row whose text has a
        dimension match. Rows left NULL must be rows without any match.
        """
        migration = f"drop_{'_'.join(self.dropped_columns)}"
        columns = column_names(conn, self.fact_table)
        if self.fk_column not in columns:
            raise MigrationPreconditionError(
                f"{self.fk_column} has not been added to {self.fact_table}", migration=migration
            )
        missing = [c for c in self.dropped_columns if c not in columns]
        if missing:
            raise MigrationPreconditionError(
                f"Columns {missing} already dropped", migration=migration
            )

        fact = reflect_table(conn, self.fact_table)
        pending = conn.execute(
            select(func.count()).select_from(fact).where(
                fact.c[self.fk_column].is_(None),
                self.lookup(conn, fact).is_not(None),
            )
        ).scalar()
        if pending:
            raise MigrationPreconditionError(
                f"{pending} rows of {self.fact_table} have a {self.table} match but no {self.fk_column}",
                migration=migration,
                details={"pending_rows": pending},
            )

    def unlinked_text_counts(self, conn: Connection) -> Dict[str, int]:
        """Rows whose text in each dropped column is not carried by the foreign key."""
        fact = reflect_table(conn, self.fact_table)
        counts = {}
        for column in self.dropped_columns:
            lost = conn.execute(
                select(func.count()).select_from(fact)
                .where(fact.c[self.fk_column].is_(None), fact.c[column].is_not(None))
            ).scalar()
            if lost:
                counts[column] = lost
        return counts

    def drop_source(self, conn: Connection) -> int:
        for column, lost in self.unlinked_text_counts(conn).items():
            logger.warning(
                f"  {self.fact_table}.{column}: {lost} rows lose their text, "
                f"{self.fk_column} is NULL there"
            )
        drop_columns(conn, self.fact_table, self.dropped_columns)
        logger.info(f"  Dropped {self.dropped_columns} from {self.fact_table}")
        return len(self.dropped_columns)

    # MIGRATIONS

    def build_precondition(self, conn: Connection) -> None:
        self._require_source_columns(conn, f"build_{self.table}")

    def migrations(self) -> List[Migration]:
        steps = [Migration(
            name=f"build_{self.table}",
            stage=STAGE,
            apply=self.build,
            precondition=self.build_precondition,
        )]
        if self.fk_column:
            steps.append(Migration(
                name=f"backfill_{self.fk_column}",
                stage=STAGE,
                apply=self.backfill,
                precondition=lambda conn: self._require_source_columns(conn, f"backfill_{self.fk_column}"),
            ))
            steps.append(Migration(
                name=f"drop_{'_'.join(self.dropped_columns)}",
                stage=STAGE,
                apply=self.drop_source,
                precondition=self.check_backfill_complete,
            ))
        return steps


@dataclass
class SimpleDimension(Dimension):
    """
    One-column dimension: (id, name).

    With a fk_column the fact table gets a foreign key and loses the source
    column. Without one (departments, states) the table only serves as the
    parent of a CompositeDimension, which drops the source column itself.
    """
    table: str
    source_column: str
    fk_column: Optional[str] = None
    fact_table: str = EMPLOYEES

    @property
    def source_columns(self) -> List[str]:
        return [self.source_column]

    @property
    def dropped_columns(self) -> List[str]:
        return [self.source_column]

    def definition(self, metadata: MetaData) -> Table:
        return Table(
            self.table, metadata,
            Column("id", Integer, primary_key=True, autoincrement=False),
            Column("name", String, nullable=False),
            UniqueConstraint("name", name=f"uq_{self.table}_name"),
        )

    def extract(self, frame: pd.DataFrame) -> pd.DataFrame:
        """Distinct non-null values, alphabetical, with ids 1..n."""
        df = frame[[self.source_column]].dropna().drop_duplicates()
        df = df.sort_values(self.source_column).reset_index(drop=True).reset_index()
        df.rename(columns={"index": "id", self.source_column: "name"}, inplace=True)
        df["id"] += 1
        return df[["id", "name"]]

    def build(self, conn: Connection) -> int:
        frame = read_table(conn, self.fact_table, self.source_columns)
        return self._create(conn, self.definition(MetaData()), self.extract(frame))

    def lookup(self, conn: Connection, fact: Table):
        dim = reflect_table(conn, self.table)
        return (
            select(dim.c.id)
            .where(dim.c.name == fact.c[self.source_column])
            .scalar_subquery()
        )


@dataclass
class CompositeDimension(Dimension):
    """
    Child dimension keyed under a parent dimension: (id, <parent>_id, <child>).

    Before building, the child values are checked for ambiguity. If some
    child occurs under several parents, the natural key is the pair and the
    table carries a UNIQUE (parent_key, child) constraint; otherwise the
    child alone is unique. Fact rows are always matched on parent text and
    child text together.
    """
    table: str
    parent: SimpleDimension
    child_column: str
    fk_column: str
    parent_key_column: str
    child_attribute: str = "name"
    fact_table: str = EMPLOYEES
    natural_key: Optional[Tuple[str, ...]] = field(default=None, init=False, compare=False)
    ambiguous_children: Optional[pd.DataFrame] = field(default=None, init=False, repr=False, compare=False)

    @property
    def source_columns(self) -> List[str]:
        return [self.parent.source_column, self.child_column]

    @property
    def dropped_columns(self) -> List[str]:
        return [self.parent.source_column, self.child_column]

    def resolve_natural_key(self, frame: pd.DataFrame) -> Tuple[str, ...]:
        """Decide between a child-only and a (parent, child) natural key."""
        self.ambiguous_children = find_ambiguous_children(
            frame, self.parent.source_column, self.child_column
        )
        count = self.ambiguous_children[self.child_column].nunique()
        if count:
            logger.info(
                f"  {count} {self.child_column} values occur under more than one "
                f"{self.parent.source_column}; keying {self.table} by the pair"
            )
            self.natural_key = (self.parent_key_column, self.child_attribute)
        else:
            logger.info(f"  {self.child_column} is unique on its own")
            self.natural_key = (self.child_attribute,)
        return self.natural_key

    def definition(self, metadata: MetaData, natural_key: Tuple[str, ...]) -> Table:
        # registers the parent in the same MetaData so the FK resolves
        self.parent.definition(metadata)
        return Table(
            self.table, metadata,
            Column("id", Integer, primary_key=True, autoincrement=False),
            Column(
                self.parent_key_column, Integer,
                ForeignKey(f"{self.parent.table}.id"), nullable=False,
            ),
            Column(self.child_attribute, String, nullable=False),
            UniqueConstraint(*natural_key, name=f"uq_{self.table}_natural_key"),
        )

    def extract(self, frame: pd.DataFrame, parent_rows: pd.DataFrame) -> pd.DataFrame:
        """
        Distinct (parent, child) pairs sorted by parent then child, ids 1..n,
        with the parent text replaced by the parent's surrogate key.
        """
        parent_col = self.parent.source_column
        df = frame[[parent_col, self.child_column]].dropna().drop_duplicates()
        df = df.sort_values([parent_col, self.child_column]).reset_index(drop=True).reset_index()
        df.rename(columns={"index": "id"}, inplace=True)
        df["id"] += 1

        df = df.merge(
            parent_rows.rename(columns={"id": self.parent_key_column, "name": parent_col}),
            on=parent_col,
            how="left",
        )
        orphans = df[self.parent_key_column].isna().sum()
        if orphans:
            raise NormalizerError(
                f"{orphans} {parent_col} values missing from {self.parent.table}",
                dimension_table=self.table,
            )

        df.rename(columns={self.child_column: self.child_attribute}, inplace=True)
        df[self.parent_key_column] = df[self.parent_key_column].astype(int)
        return df[["id", self.parent_key_column, self.child_attribute]]

    def build_precondition(self, conn: Connection) -> None:
        if not table_exists(conn, self.parent.table):
            raise MigrationPreconditionError(
                f"Parent dimension {self.parent.table} must be built first",
                migration=f"build_{self.table}",
            )
        self._require_source_columns(conn, f"build_{self.table}")

    def build(self, conn: Connection) -> int:
        frame = read_table(conn, self.fact_table, self.source_columns)
        natural_key = self.resolve_natural_key(frame)
        parent_rows = read_table(conn, self.parent.table, ["id", "name"])
        rows = self.extract(frame, parent_rows)
        return self._create(conn, self.definition(MetaData(), natural_key), rows)

    def lookup(self, conn: Connection, fact: Table):
        dim = reflect_table(conn, self.table)
        parent = reflect_table(conn, self.parent.table)
        return (
            select(dim.c.id)
            .select_from(dim.join(parent, parent.c.id == dim.c[self.parent_key_column]))
            .where(
                dim.c[self.child_attribute] == fact.c[self.child_column],
                parent.c.name == fact.c[self.parent.source_column],
            )
            .scalar_subquery()
        )


def natural_key_report(dimensions: List[Dimension]) -> Dict[str, pd.DataFrame]:
    """
    Ambiguous child values found while building each composite dimension.

    Only dimensions built in this process appear; a build skipped by the
    ledger has nothing to report.
    """
    return {
        d.table: d.ambiguous_children
        for d in dimensions
        if isinstance(d, CompositeDimension) and d.ambiguous_children is not None
    }
