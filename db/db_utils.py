# db/db_utils.py
"""
Database connection helpers: engine and session factories, shared
reflection and DDL utilities used by every pipeline stage.
"""

import os
import logging
from typing import Dict, Iterable, Optional

import pandas as pd
from dotenv import load_dotenv
from sqlalchemy import (
    Column,
    ForeignKey,
    MetaData,
    Table,
    create_engine,
    event,
    inspect,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import sessionmaker, Session

from db.models_ledger import LedgerBase

logger = logging.getLogger(__name__)

load_dotenv()

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "5432")),
    "user": os.getenv("DB_USER", "postgres"),
    "password": os.getenv("DB_PASSWORD", "postgres"),
    "database": os.getenv("DB_NAME", "hr_dep"),
}


def get_database_url() -> str:
    """Resolve the connection string from the environment."""
    url = os.getenv("HR_ETL_DATABASE_URL")
    if url:
        return url
    return (
        f"postgresql+psycopg2://{DB_CONFIG['user']}:{DB_CONFIG['password']}"
        f"@{DB_CONFIG['host']}:{DB_CONFIG['port']}/{DB_CONFIG['database']}"
    )


def _enable_sqlite_transactional_ddl(engine: Engine) -> None:
    # pysqlite only opens transactions before DML, so ALTER/CREATE/DROP
    # would otherwise autocommit in the middle of a unit.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


_ENGINES: Dict[str, Engine] = {}


def get_engine(url: Optional[str] = None) -> Engine:
    """
    Get (or create) the engine for a database URL.
    
    Args:
        url: SQLAlchemy URL; defaults to get_database_url()
    
    Returns:
        Cached Engine instance
    """
    url = url or get_database_url()
    if url not in _ENGINES:
        engine = create_engine(url, future=True)
        if engine.dialect.name == "sqlite":
            _enable_sqlite_transactional_ddl(engine)
        _ENGINES[url] = engine
        logger.info(f"Created engine for {engine.url.render_as_string(hide_password=True)}")
    return _ENGINES[url]


def get_session(engine: Optional[Engine] = None) -> Session:
    """Open a new ORM session bound to the engine."""
    SessionLocal = sessionmaker(bind=engine or get_engine(), future=True)
    return SessionLocal()


def create_all_tables(engine: Optional[Engine] = None) -> None:
    """Create pipeline bookkeeping tables (the migration ledger)."""
    LedgerBase.metadata.create_all(engine or get_engine())


# REFLECTION HELPERS

def reflect_table(conn: Connection, table_name: str) -> Table:
    """Reflect a table as it exists right now inside the connection's transaction."""
    return Table(table_name, MetaData(), autoload_with=conn)


def table_exists(conn: Connection, table_name: str) -> bool:
    return inspect(conn).has_table(table_name)


def column_names(conn: Connection, table_name: str) -> list:
    return [c["name"] for c in inspect(conn).get_columns(table_name)]


def read_table(conn: Connection, table_name: str, columns: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """Read a table (or some of its columns) into a DataFrame with typed values."""
    table = reflect_table(conn, table_name)
    cols = [table.c[c] for c in columns] if columns else list(table.c)
    return pd.read_sql(select(*cols), conn)


def quote(conn: Connection, identifier: str) -> str:
    return conn.dialect.identifier_preparer.quote(identifier)


# DDL HELPERS

def add_column(
    conn: Connection,
    table_name: str,
    column_name: str,
    type_sql: str,
    references: Optional[str] = None,
) -> None:
    """ALTER TABLE ... ADD COLUMN, optionally with a REFERENCES clause on <table>(id)."""
    ddl = f"ALTER TABLE {quote(conn, table_name)} ADD COLUMN {quote(conn, column_name)} {type_sql}"
    if references:
        ddl += f" REFERENCES {quote(conn, references)} (id)"
    conn.execute(text(ddl))


def drop_columns(conn: Connection, table_name: str, columns: Iterable[str]) -> None:
    for column in columns:
        conn.execute(text(
            f"ALTER TABLE {quote(conn, table_name)} DROP COLUMN {quote(conn, column)}"
        ))


def clean_nulls(df: pd.DataFrame) -> pd.DataFrame:
    """Replace NaN/NaT/NA with None (and numpy scalars with Python ones) for insertion."""
    df = df.astype(object)
    return df.where(pd.notna(df), None)


def rebuild_table(
    conn: Connection,
    table_name: str,
    df: pd.DataFrame,
    type_overrides: Dict[str, object],
    batch_size: int = 1000,
) -> int:
    """
    Rewrite a table from a DataFrame, changing the storage type of some columns.
    
    The replacement is created under a temporary name, filled, and swapped in
    with DROP + RENAME. Run it inside a transaction: either the new typed
    table is visible or the original one is left untouched.
    
    Args:
        conn: Connection with an open transaction
        table_name: Table to rewrite
        df: Full contents of the new table (same columns as the old one)
        type_overrides: Column name -> SQLAlchemy type for retyped columns
        batch_size: Rows per INSERT batch
    
    Returns:
        Number of rows written
    """
    old = reflect_table(conn, table_name)
    tmp_name = f"{table_name}__rebuild"
    
    columns = []
    for col in old.columns:
        retyped = col.name in type_overrides
        columns.append(Column(
            col.name,
            type_overrides[col.name] if retyped else col.type,
            *[ForeignKey(fk.target_fullname) for fk in col.foreign_keys],
            primary_key=col.primary_key,
            nullable=True if retyped else col.nullable,
        ))
    # same MetaData so foreign keys to dimension tables resolve
    new = Table(tmp_name, old.metadata, *columns)
    new.create(conn)
    
    records = clean_nulls(df[[c.name for c in old.columns]]).to_dict(orient="records")
    for i in range(0, len(records), batch_size):
        conn.execute(new.insert(), records[i:i + batch_size])
    
    old.drop(conn)
    conn.execute(text(f"ALTER TABLE {quote(conn, tmp_name)} RENAME TO {quote(conn, table_name)}"))
    logger.info(f"  Rebuilt {table_name} ({len(records)} rows, retyped: {sorted(type_overrides)})")
    return len(records)
