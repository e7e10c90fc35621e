"""
cohortdesk/orm/base.py
Declarative base, the shared id/timestamp columns and to_dict helpers
"""
from datetime import datetime
from sqlalchemy import Column, Integer, DateTime
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class BaseModel(Base):
    """
    Programs, cohorts, mentors and students share an integer id plus
    created_at / updated_at. updated_at is also what EntityStore.touch()
    rewrites to force a version bump on an otherwise unchanged row.
    """
    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


def isoformat(value):
    """Serialize an optional date/datetime for to_dict() payloads."""
    return value.isoformat() if value else None
