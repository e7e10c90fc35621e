"""
cohortdesk/orm/mentor.py
Mentor model. Assigned cohorts are read from cohort_mentor_links.
"""
from sqlalchemy import Column, Integer, String, Text, CheckConstraint, Enum as SQLEnum
from enum import Enum as PyEnum

from cohortdesk.orm.base import BaseModel, isoformat

# Admin-adjustable bounds for max_cohorts
MIN_COHORTS_PER_MENTOR = 1
MAX_COHORTS_PER_MENTOR = 10


class MentorStatus(str, PyEnum):
    """Mentor lifecycle status"""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class AvailabilityStatus(str, PyEnum):
    """Informational only, never enforced against assignment"""
    AVAILABLE = "AVAILABLE"
    LIMITED = "LIMITED"
    UNAVAILABLE = "UNAVAILABLE"


class Mentor(BaseModel):
    __tablename__ = "mentors"

    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    phone = Column(String(20), nullable=True)
    specialty = Column(String(200), nullable=True)
    bio = Column(Text, nullable=True)

    status = Column(SQLEnum(MentorStatus), default=MentorStatus.ACTIVE, nullable=False, index=True)
    max_cohorts = Column(Integer, nullable=False, default=3)
    availability_status = Column(
        SQLEnum(AvailabilityStatus),
        default=AvailabilityStatus.AVAILABLE,
        nullable=False
    )

    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint(
            f"max_cohorts BETWEEN {MIN_COHORTS_PER_MENTOR} AND {MAX_COHORTS_PER_MENTOR}",
            name="ck_mentor_max_cohorts_range",
        ),
    )

    def __repr__(self):
        return f"<Mentor(id={self.id}, email='{self.email}', status={self.status})>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "specialty": self.specialty,
            "bio": self.bio,
            "status": self.status,
            "max_cohorts": self.max_cohorts,
            "availability_status": self.availability_status,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
