"""
Ordered migration list with a ledger.

Every schema or data change of the pipeline is a named Migration. The runner
applies them strictly in order, each inside its own transaction together with
its ledger row, so a run that fails part way can simply be started again: the
committed steps are skipped and the failed one is retried.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Set

from sqlalchemy import delete, insert, select
from sqlalchemy.engine import Connection, Engine

from db.db_utils import create_all_tables
from db.models_ledger import MigrationRecord
from hr_etl.common.exceptions import ETLError, MigrationPreconditionError

logger = logging.getLogger(__name__)

LEDGER = MigrationRecord.__table__


@dataclass
class Migration:
    """A single atomic unit of the pipeline."""
    name: str
    stage: str
    apply: Callable[[Connection], Optional[int]]
    precondition: Optional[Callable[[Connection], None]] = None
    always_run: bool = False
    description: str = ""


@dataclass
class MigrationOutcome:
    name: str
    status: str  # applied, skipped
    rows_affected: Optional[int] = None


def applied_migrations(engine: Engine) -> Set[str]:
    """Names of all migration steps already committed."""
    create_all_tables(engine)
    with engine.connect() as conn:
        return set(conn.execute(select(LEDGER.c.name)).scalars())


def reset_ledger(engine: Engine, stage: Optional[str] = None) -> int:
    """Forget applied steps (all, or one stage) so they run again."""
    create_all_tables(engine)
    stmt = delete(LEDGER)
    if stage:
        stmt = stmt.where(LEDGER.c.stage == stage)
    with engine.begin() as conn:
        result = conn.execute(stmt)
    logger.info(f"Ledger reset ({stage or 'all stages'}): {result.rowcount} entries removed")
    return result.rowcount


class MigrationRunner:
    """Applies migrations in order, recording each in the etl_migrations ledger."""

    def __init__(self, engine: Engine):
        self.engine = engine
        create_all_tables(engine)

    def run(self, migrations: Iterable[Migration]) -> List[MigrationOutcome]:
        outcomes = []
        done = applied_migrations(self.engine)

        for migration in migrations:
            if migration.name in done and not migration.always_run:
                logger.info(f"  [skip] {migration.name} (already applied)")
                outcomes.append(MigrationOutcome(migration.name, "skipped"))
                continue

            rows = self._apply(migration)
            done.add(migration.name)
            outcomes.append(MigrationOutcome(migration.name, "applied", rows))

        return outcomes

    def _apply(self, migration: Migration) -> Optional[int]:
        logger.info(f"  [run ] {migration.name}")
        try:
            with self.engine.begin() as conn:
                if migration.precondition is not None:
                    migration.precondition(conn)
                rows = migration.apply(conn)

                conn.execute(delete(LEDGER).where(LEDGER.c.name == migration.name))
                conn.execute(insert(LEDGER).values(
                    name=migration.name,
                    stage=migration.stage,
                    rows_affected=rows,
                    applied_at=datetime.utcnow(),
                ))
        except MigrationPreconditionError:
            logger.error(f"  [fail] {migration.name}: precondition not met, nothing changed")
            raise
        except ETLError as e:
            logger.error(f"  [fail] {migration.name}: {e} (rolled back)")
            raise
        except Exception as e:
            logger.error(f"  [fail] {migration.name}: {e} (rolled back)")
            raise ETLError(
                f"Migration '{migration.name}' failed",
                details={"stage": migration.stage},
                original_error=e,
            ) from e

        logger.info(f"  [done] {migration.name}: {rows if rows is not None else '-'} rows")
        return rows
