"""
cohortdesk/schemas/requests.py
Pydantic schemas for inbound data.

Every create/update payload is validated here before any guard runs, so a
malformed request never reaches the store.
"""
import re
from datetime import date
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from cohortdesk.orm.program import ProgramStatus
from cohortdesk.orm.cohort import CohortStatus
from cohortdesk.orm.mentor import AvailabilityStatus, MIN_COHORTS_PER_MENTOR, MAX_COHORTS_PER_MENTOR
from cohortdesk.orm.student import StudentStatus, PaymentStatus, NoteAuthorRole

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _clean_required(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{field_name} cannot be empty")
    return value.strip()


def _clean_email(value: str) -> str:
    value = value.strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("email must be a valid email address")
    return value


# ================= PROGRAM =================

class ProgramCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., max_length=200)
    description: Optional[str] = None
    duration: Optional[str] = Field(None, max_length=100)
    syllabus_ref: Optional[str] = Field(None, max_length=255)
    status: ProgramStatus = ProgramStatus.DRAFT

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_required(v, "name")

    @field_validator("status")
    @classmethod
    def validate_initial_status(cls, v: ProgramStatus) -> ProgramStatus:
        if v == ProgramStatus.ARCHIVED:
            raise ValueError("a program cannot be created archived")
        return v


# ================= COHORT =================

class CohortCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    program_id: int = Field(..., gt=0)
    name: str = Field(..., max_length=200)
    description: Optional[str] = None
    capacity: int = Field(30, gt=0, le=10000)
    start_date: date
    end_date: date
    enrollment_deadline: Optional[date] = None
    price: float = Field(0.0, ge=0)
    currency: str = Field("INR", min_length=3, max_length=3)
    status: CohortStatus = CohortStatus.UPCOMING

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_required(v, "name")

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        v = v.strip().upper()
        if not v.isalpha() or len(v) != 3:
            raise ValueError("currency must be a 3-letter code")
        return v

    @field_validator("status")
    @classmethod
    def validate_initial_status(cls, v: CohortStatus) -> CohortStatus:
        if v not in (CohortStatus.UPCOMING, CohortStatus.ACTIVE):
            raise ValueError("a cohort is created UPCOMING or ACTIVE")
        return v

    @model_validator(mode="after")
    def validate_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        if self.enrollment_deadline is not None and self.enrollment_deadline > self.start_date:
            raise ValueError("enrollment_deadline cannot be after start_date")
        return self


# ================= MENTOR =================

class MentorCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., max_length=200)
    email: str = Field(..., max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    specialty: Optional[str] = Field(None, max_length=200)
    bio: Optional[str] = None
    # None means "use the configured default"
    max_cohorts: Optional[int] = Field(None, ge=MIN_COHORTS_PER_MENTOR, le=MAX_COHORTS_PER_MENTOR)
    availability_status: AvailabilityStatus = AvailabilityStatus.AVAILABLE
    cohort_ids: List[int] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_required(v, "name")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _clean_email(v)

    @field_validator("cohort_ids")
    @classmethod
    def validate_cohort_ids(cls, v: List[int]) -> List[int]:
        if len(set(v)) != len(v):
            raise ValueError("cohort_ids contains duplicates")
        if any(cohort_id <= 0 for cohort_id in v):
            raise ValueError("cohort_ids must be positive")
        return v


class MentorCapacityUpdate(BaseModel):
    max_cohorts: int = Field(..., ge=MIN_COHORTS_PER_MENTOR, le=MAX_COHORTS_PER_MENTOR)


class MentorAvailabilityUpdate(BaseModel):
    availability_status: AvailabilityStatus


# ================= STUDENT =================

class StudentCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., max_length=200)
    email: str = Field(..., max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    cohort_id: int = Field(..., gt=0)
    mentor_id: Optional[int] = Field(None, gt=0)
    status: StudentStatus = StudentStatus.INVITED
    payment_status: PaymentStatus = PaymentStatus.PENDING
    progress: int = Field(0, ge=0, le=100)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_required(v, "name")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _clean_email(v)

    @field_validator("status")
    @classmethod
    def validate_initial_status(cls, v: StudentStatus) -> StudentStatus:
        if v not in (StudentStatus.INVITED, StudentStatus.ACTIVE):
            raise ValueError("a student is created INVITED or ACTIVE")
        return v


class StudentMentorUpdate(BaseModel):
    mentor_id: Optional[int] = Field(None, gt=0)


class StudentTransfer(BaseModel):
    cohort_id: int = Field(..., gt=0)


class ProgressUpdate(BaseModel):
    progress: int = Field(..., ge=0, le=100)


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus


class NoteCreate(BaseModel):
    author: str = Field(..., max_length=200)
    content: str = Field(..., max_length=5000)
    author_role: NoteAuthorRole = NoteAuthorRole.ADMIN

    @field_validator("author")
    @classmethod
    def validate_author(cls, v: str) -> str:
        return _clean_required(v, "author")

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        return _clean_required(v, "content")


# ================= GENERIC =================

class StatusUpdate(BaseModel):
    """
    Body of PATCH .../status.

    metadata carries transition side inputs:
        {"reason": "..."} for FLAGGED / DROPPED
        {"confirmed": true} for DROPPED when drop confirmation is required
    """
    status: str = Field(..., min_length=1)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AssignmentRequest(BaseModel):
    mentor_id: int = Field(..., gt=0)
    cohort_id: int = Field(..., gt=0)
