"""
cohortdesk/orm/program.py
Program model. A program owns cohorts; cohort_count is derived by query,
never stored.
"""
from sqlalchemy import Column, Integer, String, Text, Enum as SQLEnum
from enum import Enum as PyEnum

from cohortdesk.orm.base import BaseModel, isoformat


class ProgramStatus(str, PyEnum):
    """Program lifecycle status"""
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class Program(BaseModel):
    __tablename__ = "programs"

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    duration = Column(String(100), nullable=True)  # e.g. "12 weeks"
    status = Column(SQLEnum(ProgramStatus), default=ProgramStatus.DRAFT, nullable=False, index=True)

    # Linked syllabus (owned by the syllabus builder, referenced only)
    syllabus_ref = Column(String(255), nullable=True)

    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self):
        return f"<Program(id={self.id}, name='{self.name}', status={self.status})>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "duration": self.duration,
            "status": self.status,
            "syllabus_ref": self.syllabus_ref,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
