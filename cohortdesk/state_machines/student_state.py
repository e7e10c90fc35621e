"""
Student State Machine

INVITED -> ACTIVE (admin, or implicitly on first recorded activity)
ACTIVE <-> FLAGGED
{INVITED, ACTIVE, FLAGGED} -> DROPPED | COMPLETED

DROPPED and COMPLETED are terminal. Dropping keeps the cohort and mentor
references so history stays readable.
"""
from cohortdesk.orm.student import StudentStatus
from cohortdesk.state_machines.base import LifecycleStateMachine


class StudentStateMachine(LifecycleStateMachine):
    ENTITY_NAME = "Student"
    STATUS_ENUM = StudentStatus

    TRANSITIONS = {
        StudentStatus.INVITED: [StudentStatus.ACTIVE, StudentStatus.DROPPED, StudentStatus.COMPLETED],
        StudentStatus.ACTIVE: [StudentStatus.FLAGGED, StudentStatus.DROPPED, StudentStatus.COMPLETED],
        StudentStatus.FLAGGED: [StudentStatus.ACTIVE, StudentStatus.DROPPED, StudentStatus.COMPLETED],
        StudentStatus.DROPPED: [],
        StudentStatus.COMPLETED: [],
    }

    # Transitions gated behind an explicit confirmation step
    CONFIRMATION_REQUIRED = frozenset({StudentStatus.DROPPED})

    # Transitions that accept an optional free-text reason
    REASON_FIELDS = {
        StudentStatus.FLAGGED: "flag_reason",
        StudentStatus.DROPPED: "drop_reason",
    }
