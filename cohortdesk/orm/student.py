"""
cohortdesk/orm/student.py
Student model and the append-only student notes table.

Payment status is an axis of its own; it never drives lifecycle transitions.
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from enum import Enum as PyEnum

from cohortdesk.orm.base import Base, BaseModel, isoformat


class StudentStatus(str, PyEnum):
    """Student lifecycle status"""
    INVITED = "INVITED"
    ACTIVE = "ACTIVE"
    FLAGGED = "FLAGGED"
    DROPPED = "DROPPED"
    COMPLETED = "COMPLETED"


class PaymentStatus(str, PyEnum):
    PAID = "PAID"
    PENDING = "PENDING"
    OVERDUE = "OVERDUE"
    REFUNDED = "REFUNDED"


class NoteAuthorRole(str, PyEnum):
    MENTOR = "MENTOR"
    ADMIN = "ADMIN"


class Student(BaseModel):
    __tablename__ = "students"

    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(20), nullable=True)

    cohort_id = Column(
        Integer,
        ForeignKey("cohorts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    mentor_id = Column(
        Integer,
        ForeignKey("mentors.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    status = Column(SQLEnum(StudentStatus), default=StudentStatus.INVITED, nullable=False, index=True)
    payment_status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    progress = Column(Integer, nullable=False, default=0)

    flag_reason = Column(Text, nullable=True)
    drop_reason = Column(Text, nullable=True)
    last_activity_at = Column(DateTime, nullable=True)

    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self):
        return f"<Student(id={self.id}, email='{self.email}', cohort={self.cohort_id}, status={self.status})>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "cohort_id": self.cohort_id,
            "mentor_id": self.mentor_id,
            "status": self.status,
            "payment_status": self.payment_status,
            "progress": self.progress,
            "flag_reason": self.flag_reason,
            "drop_reason": self.drop_reason,
            "last_activity_at": isoformat(self.last_activity_at),
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class StudentNote(Base):
    """
    Append-only note on a student. Rows are inserted, never updated or
    deleted individually (they go away only with a hard-deleted student).
    """
    __tablename__ = "student_notes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(
        Integer,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    author = Column(String(200), nullable=False)
    author_role = Column(SQLEnum(NoteAuthorRole), nullable=False, default=NoteAuthorRole.ADMIN)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<StudentNote(id={self.id}, student={self.student_id}, author='{self.author}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "author": self.author,
            "author_role": self.author_role,
            "content": self.content,
            "created_at": isoformat(self.created_at),
        }
