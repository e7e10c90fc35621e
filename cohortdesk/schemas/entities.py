"""
cohortdesk/schemas/entities.py
Read snapshots returned by every core operation.

Derived fields (cohort_count, student_count, mentor_ids,
assigned_cohort_ids, notes) are filled from queries at snapshot time; they
are never stored on the entity rows.
"""
from datetime import date, datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field

from cohortdesk.orm.program import ProgramStatus
from cohortdesk.orm.cohort import CohortStatus
from cohortdesk.orm.mentor import MentorStatus, AvailabilityStatus
from cohortdesk.orm.student import StudentStatus, PaymentStatus, NoteAuthorRole
from cohortdesk.orm.audit_log import AuditAction, EntityType


class ProgramRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    duration: Optional[str] = None
    status: ProgramStatus
    syllabus_ref: Optional[str] = None
    cohort_count: int = 0
    created_at: datetime
    updated_at: datetime


class CohortRead(BaseModel):
    id: int
    program_id: int
    name: str
    description: Optional[str] = None
    status: CohortStatus
    status_before_archive: Optional[CohortStatus] = None
    capacity: int
    start_date: date
    end_date: date
    enrollment_deadline: Optional[date] = None
    price: float
    currency: str
    mentor_ids: List[int] = Field(default_factory=list)
    student_count: int = 0
    created_at: datetime
    updated_at: datetime


class MentorRead(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    specialty: Optional[str] = None
    bio: Optional[str] = None
    status: MentorStatus
    max_cohorts: int
    availability_status: AvailabilityStatus
    assigned_cohort_ids: List[int] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class NoteRead(BaseModel):
    id: int
    student_id: int
    author: str
    author_role: NoteAuthorRole
    content: str
    created_at: datetime


class StudentRead(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    cohort_id: int
    mentor_id: Optional[int] = None
    status: StudentStatus
    payment_status: PaymentStatus
    progress: int
    flag_reason: Optional[str] = None
    drop_reason: Optional[str] = None
    last_activity_at: Optional[datetime] = None
    notes: List[NoteRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class AssignmentResult(BaseModel):
    """Both endpoints of a link change, read after the change."""
    mentor: MentorRead
    cohort: CohortRead


class DeleteResult(BaseModel):
    success: bool = True
    entity_type: EntityType
    entity_id: int


class AuditEntryRead(BaseModel):
    id: int
    actor: str
    action: AuditAction
    entity_type: EntityType
    entity_id: int
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class AssignmentSelection(BaseModel):
    """
    Output of the selection phase. Held by the caller and handed back to
    confirm(); the store keeps nothing between the two phases.
    """
    model_config = ConfigDict(frozen=True)

    initiated_from: EntityType
    mentor_id: int
    cohort_id: int
    eligible: bool
    reason: Optional[str] = None
    message: str = ""
