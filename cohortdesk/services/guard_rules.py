"""
Capacity & Guard Rules

Pure predicates evaluated before any mutation. Each takes read snapshots
(never ORM rows, never a session) and returns a GuardResult: a truthy
verdict, or a falsy one carrying a machine-readable reason code and a
human message for the caller to render.

Callers: lifecycle_service, assignment_workflow, enrollment_service. The
assignment workflow also runs can_assign_mentor eagerly during selection to
grey out ineligible choices; the authoritative run happens on confirm.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from cohortdesk.errors import GuardError
from cohortdesk.orm.cohort import CohortStatus
from cohortdesk.orm.mentor import MentorStatus
from cohortdesk.orm.program import ProgramStatus
from cohortdesk.orm.student import StudentStatus
from cohortdesk.schemas.entities import ProgramRead, CohortRead, MentorRead, StudentRead
from cohortdesk.state_machines import (
    ProgramStateMachine,
    CohortStateMachine,
    MentorStateMachine,
    StudentStateMachine,
)

logger = logging.getLogger(__name__)


class GuardReason(str, Enum):
    """Reason codes surfaced on GuardError.code"""
    # Assignment
    MENTOR_INACTIVE = "MENTOR_INACTIVE"
    MENTOR_AT_CAPACITY = "MENTOR_AT_CAPACITY"
    COHORT_NOT_ASSIGNABLE = "COHORT_NOT_ASSIGNABLE"
    MENTOR_ALREADY_ASSIGNED = "MENTOR_ALREADY_ASSIGNED"
    MENTOR_NOT_ASSIGNED = "MENTOR_NOT_ASSIGNED"

    # Deletion
    COHORT_HAS_STUDENTS = "COHORT_HAS_STUDENTS"
    MENTOR_HAS_ASSIGNMENTS = "MENTOR_HAS_ASSIGNMENTS"
    PROGRAM_HAS_COHORTS = "PROGRAM_HAS_COHORTS"

    # Cohort lifecycle
    COHORT_ALREADY_CLOSED = "COHORT_ALREADY_CLOSED"
    COHORT_NOT_ACTIVE = "COHORT_NOT_ACTIVE"
    COHORT_NOT_ARCHIVED = "COHORT_NOT_ARCHIVED"

    # Student lifecycle
    SELF_TRANSITION = "SELF_TRANSITION"
    STUDENT_TERMINAL = "STUDENT_TERMINAL"
    CONFIRMATION_REQUIRED = "CONFIRMATION_REQUIRED"

    # Enrollment and capacity
    COHORT_NOT_ENROLLABLE = "COHORT_NOT_ENROLLABLE"
    COHORT_AT_CAPACITY = "COHORT_AT_CAPACITY"
    MENTOR_CAPACITY_BELOW_ASSIGNMENTS = "MENTOR_CAPACITY_BELOW_ASSIGNMENTS"
    MENTOR_NOT_IN_COHORT = "MENTOR_NOT_IN_COHORT"

    INVALID_TRANSITION = "INVALID_TRANSITION"


@dataclass(frozen=True)
class GuardResult:
    allowed: bool
    reason: Optional[GuardReason] = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def ok(cls) -> "GuardResult":
        return cls(True)

    @classmethod
    def deny(cls, reason: GuardReason, message: str) -> "GuardResult":
        return cls(False, reason, message)

    def raise_if_denied(self, **details) -> None:
        if not self.allowed:
            raise GuardError(self.reason.value, self.message, details or None)


ALLOWED = GuardResult.ok()


def enforce(result: GuardResult, operation: str, **context) -> None:
    """Log and raise a denied guard verdict."""
    if not result:
        logger.warning(f"[TRANSITION BLOCKED] {operation} {context} -> {result.reason.value}: {result.message}")
        result.raise_if_denied(**context)


# ================= ASSIGNMENT =================

def can_assign_mentor(mentor: MentorRead, cohort: CohortRead) -> GuardResult:
    if mentor.status != MentorStatus.ACTIVE:
        return GuardResult.deny(
            GuardReason.MENTOR_INACTIVE,
            f"Mentor {mentor.name} is inactive and cannot be assigned"
        )

    if mentor.id in cohort.mentor_ids:
        return GuardResult.deny(
            GuardReason.MENTOR_ALREADY_ASSIGNED,
            f"Mentor {mentor.name} is already assigned to {cohort.name}"
        )

    if cohort.status not in CohortStateMachine.ASSIGNABLE_STATES:
        return GuardResult.deny(
            GuardReason.COHORT_NOT_ASSIGNABLE,
            f"Cohort {cohort.name} is {cohort.status.value}; mentors can only join upcoming or active cohorts"
        )

    if len(mentor.assigned_cohort_ids) >= mentor.max_cohorts:
        return GuardResult.deny(
            GuardReason.MENTOR_AT_CAPACITY,
            f"Mentor {mentor.name} has reached the limit of {mentor.max_cohorts} cohorts"
        )

    return ALLOWED


def can_remove_mentor(mentor: MentorRead, cohort: CohortRead) -> GuardResult:
    if mentor.id not in cohort.mentor_ids:
        return GuardResult.deny(
            GuardReason.MENTOR_NOT_ASSIGNED,
            f"Mentor {mentor.name} is not assigned to {cohort.name}"
        )
    return ALLOWED


def can_set_max_cohorts(mentor: MentorRead, new_max: int) -> GuardResult:
    assigned = len(mentor.assigned_cohort_ids)
    if new_max < assigned:
        return GuardResult.deny(
            GuardReason.MENTOR_CAPACITY_BELOW_ASSIGNMENTS,
            f"Mentor {mentor.name} is assigned to {assigned} cohorts; "
            f"remove assignments before lowering the limit to {new_max}"
        )
    return ALLOWED


# ================= DELETION =================

def can_delete_cohort(cohort: CohortRead) -> GuardResult:
    if cohort.student_count > 0:
        return GuardResult.deny(
            GuardReason.COHORT_HAS_STUDENTS,
            f"Cannot delete cohort with {cohort.student_count} enrolled students. Archive it instead."
        )
    return ALLOWED


def can_delete_mentor(mentor: MentorRead) -> GuardResult:
    if mentor.assigned_cohort_ids:
        return GuardResult.deny(
            GuardReason.MENTOR_HAS_ASSIGNMENTS,
            f"Cannot delete mentor assigned to {len(mentor.assigned_cohort_ids)} cohorts"
        )
    return ALLOWED


def can_delete_program(program: ProgramRead) -> GuardResult:
    if program.cohort_count > 0:
        return GuardResult.deny(
            GuardReason.PROGRAM_HAS_COHORTS,
            f"Cannot delete program with {program.cohort_count} cohorts"
        )
    return ALLOWED


# ================= COHORT LIFECYCLE =================

def can_archive_cohort(cohort: CohortRead) -> GuardResult:
    if cohort.status in (CohortStatus.ARCHIVED, CohortStatus.COMPLETED):
        return GuardResult.deny(
            GuardReason.COHORT_ALREADY_CLOSED,
            f"Cohort {cohort.name} is already {cohort.status.value}"
        )
    return ALLOWED


def can_mark_cohort_complete(cohort: CohortRead) -> GuardResult:
    if cohort.status != CohortStatus.ACTIVE:
        return GuardResult.deny(
            GuardReason.COHORT_NOT_ACTIVE,
            f"Only active cohorts can be completed (cohort is {cohort.status.value})"
        )
    return ALLOWED


def can_restore_cohort(cohort: CohortRead) -> GuardResult:
    if cohort.status != CohortStatus.ARCHIVED:
        return GuardResult.deny(
            GuardReason.COHORT_NOT_ARCHIVED,
            f"Only archived cohorts can be restored (cohort is {cohort.status.value})"
        )
    return ALLOWED


def can_transition_cohort(cohort: CohortRead, target: CohortStatus) -> GuardResult:
    """Route a cohort status change to the dedicated guard for its kind."""
    if cohort.status == target:
        return GuardResult.deny(GuardReason.SELF_TRANSITION, f"Cohort is already {target.value}")

    if target == CohortStatus.ARCHIVED:
        return can_archive_cohort(cohort)

    if target == CohortStatus.COMPLETED:
        return can_mark_cohort_complete(cohort)

    if cohort.status == CohortStatus.ARCHIVED:
        allowed, message = CohortStateMachine.can_restore_to(cohort.status_before_archive, target)
        if not allowed:
            return GuardResult.deny(GuardReason.INVALID_TRANSITION, message)
        return ALLOWED

    allowed, message = CohortStateMachine.can_transition(cohort.status, target)
    if not allowed:
        return GuardResult.deny(GuardReason.INVALID_TRANSITION, message)
    return ALLOWED


# ================= PROGRAM / MENTOR LIFECYCLE =================

def can_transition_program(program: ProgramRead, target: ProgramStatus) -> GuardResult:
    if program.status == target:
        return GuardResult.deny(GuardReason.SELF_TRANSITION, f"Program is already {target.value}")
    allowed, message = ProgramStateMachine.can_transition(program.status, target)
    if not allowed:
        return GuardResult.deny(GuardReason.INVALID_TRANSITION, message)
    return ALLOWED


def can_transition_mentor(mentor: MentorRead, target: MentorStatus) -> GuardResult:
    if mentor.status == target:
        return GuardResult.deny(GuardReason.SELF_TRANSITION, f"Mentor is already {target.value}")
    allowed, message = MentorStateMachine.can_transition(mentor.status, target)
    if not allowed:
        return GuardResult.deny(GuardReason.INVALID_TRANSITION, message)
    return ALLOWED


# ================= STUDENT LIFECYCLE =================

def can_transition_student(current: StudentStatus, target: StudentStatus) -> GuardResult:
    """
    Self-transitions and anything leaving DROPPED/COMPLETED are rejected.
    Otherwise the student table decides. The DROPPED confirmation step is
    a UX gate; check_confirmation() runs only when REQUIRE_DROP_CONFIRMATION
    is on.
    """
    if current == target:
        return GuardResult.deny(GuardReason.SELF_TRANSITION, f"Student is already {target.value}")

    if StudentStateMachine.is_terminal(current):
        return GuardResult.deny(
            GuardReason.STUDENT_TERMINAL,
            f"Student is {current.value}; no further status changes are allowed"
        )

    allowed, message = StudentStateMachine.can_transition(current, target)
    if not allowed:
        return GuardResult.deny(GuardReason.INVALID_TRANSITION, message)
    return ALLOWED


def requires_confirmation(target: StudentStatus) -> bool:
    return target in StudentStateMachine.CONFIRMATION_REQUIRED


def check_confirmation(target: StudentStatus, confirmed: bool) -> GuardResult:
    if requires_confirmation(target) and not confirmed:
        return GuardResult.deny(
            GuardReason.CONFIRMATION_REQUIRED,
            f"Moving a student to {target.value} must be confirmed"
        )
    return ALLOWED


# ================= ENROLLMENT =================

def can_enroll_student(cohort: CohortRead, enforce_capacity: bool = True) -> GuardResult:
    """
    With enforce_capacity off, a full cohort still passes; the caller
    logs the over-enrollment as a warning.
    """
    if cohort.status not in CohortStateMachine.ENROLLABLE_STATES:
        return GuardResult.deny(
            GuardReason.COHORT_NOT_ENROLLABLE,
            f"Cohort {cohort.name} is {cohort.status.value} and does not accept students"
        )

    if enforce_capacity and cohort.student_count >= cohort.capacity:
        return GuardResult.deny(
            GuardReason.COHORT_AT_CAPACITY,
            f"Cohort {cohort.name} is full ({cohort.student_count}/{cohort.capacity})"
        )

    return ALLOWED


def is_over_capacity(cohort: CohortRead) -> bool:
    return cohort.student_count >= cohort.capacity


def can_assign_student_mentor(student: StudentRead, mentor: MentorRead) -> GuardResult:
    if mentor.status != MentorStatus.ACTIVE:
        return GuardResult.deny(
            GuardReason.MENTOR_INACTIVE,
            f"Mentor {mentor.name} is inactive"
        )
    if student.cohort_id not in mentor.assigned_cohort_ids:
        return GuardResult.deny(
            GuardReason.MENTOR_NOT_IN_COHORT,
            f"Mentor {mentor.name} is not assigned to the student's cohort"
        )
    return ALLOWED
