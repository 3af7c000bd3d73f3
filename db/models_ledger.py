# db/models_ledger.py
"""
Ledger Models - bookkeeping for the ordered migration list.
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import declarative_base
from datetime import datetime

LedgerBase = declarative_base()


class MigrationRecord(LedgerBase):
    """One applied migration step. Presence of a row means the step is committed."""
    
    __tablename__ = "etl_migrations"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    stage = Column(String, nullable=False)
    rows_affected = Column(Integer)
    applied_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    
    def __repr__(self):
        return f"<MigrationRecord(name={self.name}, stage={self.stage}, at={self.applied_at})>"
