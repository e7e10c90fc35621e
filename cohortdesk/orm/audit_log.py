"""
cohortdesk/orm/audit_log.py
Immutable audit trail of every store mutation.

Logs are append-only: what happened, to which entity, by whom, when.
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON, Enum as SQLEnum
from datetime import datetime
from enum import Enum as PyEnum

from cohortdesk.orm.base import Base, isoformat


class EntityType(str, PyEnum):
    """Entity kinds addressed by the generic operations"""
    PROGRAM = "PROGRAM"
    COHORT = "COHORT"
    MENTOR = "MENTOR"
    STUDENT = "STUDENT"


class AuditAction(str, PyEnum):
    CREATED = "CREATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    DELETED = "DELETED"
    DUPLICATED = "DUPLICATED"
    MENTOR_ASSIGNED = "MENTOR_ASSIGNED"
    MENTOR_REMOVED = "MENTOR_REMOVED"
    LINKS_CLEARED = "LINKS_CLEARED"
    CAPACITY_CHANGED = "CAPACITY_CHANGED"
    AVAILABILITY_CHANGED = "AVAILABILITY_CHANGED"
    STUDENT_MENTOR_CHANGED = "STUDENT_MENTOR_CHANGED"
    STUDENT_TRANSFERRED = "STUDENT_TRANSFERRED"
    PROGRESS_RECORDED = "PROGRESS_RECORDED"
    PAYMENT_CHANGED = "PAYMENT_CHANGED"
    NOTE_ADDED = "NOTE_ADDED"


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    actor = Column(String(200), nullable=False, default="system")
    action = Column(SQLEnum(AuditAction), nullable=False, index=True)
    entity_type = Column(SQLEnum(EntityType), nullable=False)
    entity_id = Column(Integer, nullable=False)

    # e.g. {"from": "ACTIVE", "to": "ARCHIVED"} for status changes
    details = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog({self.action}, {self.entity_type}={self.entity_id}, actor='{self.actor}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "actor": self.actor,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "details": self.details or {},
            "created_at": isoformat(self.created_at),
        }
