"""
Program State Machine

DRAFT <-> ACTIVE, {DRAFT, ACTIVE} -> ARCHIVED, ARCHIVED -> DRAFT (restore).
Deletion is only possible from DRAFT or ARCHIVED, and only with no cohorts.
"""
from cohortdesk.orm.program import ProgramStatus
from cohortdesk.state_machines.base import LifecycleStateMachine


class ProgramStateMachine(LifecycleStateMachine):
    ENTITY_NAME = "Program"
    STATUS_ENUM = ProgramStatus

    TRANSITIONS = {
        ProgramStatus.DRAFT: [ProgramStatus.ACTIVE, ProgramStatus.ARCHIVED],
        ProgramStatus.ACTIVE: [ProgramStatus.DRAFT, ProgramStatus.ARCHIVED],
        ProgramStatus.ARCHIVED: [ProgramStatus.DRAFT],
    }

    # Restore always lands here
    RESTORE_TARGET = ProgramStatus.DRAFT
