"""
Mentor State Machine

ACTIVE <-> INACTIVE. Deactivation clears every cohort link as part of the
same transaction; reactivation starts from zero assignments.
"""
from cohortdesk.orm.mentor import MentorStatus
from cohortdesk.state_machines.base import LifecycleStateMachine


class MentorStateMachine(LifecycleStateMachine):
    ENTITY_NAME = "Mentor"
    STATUS_ENUM = MentorStatus

    TRANSITIONS = {
        MentorStatus.ACTIVE: [MentorStatus.INACTIVE],
        MentorStatus.INACTIVE: [MentorStatus.ACTIVE],
    }

    # Entering these statuses unlinks the mentor from every cohort
    UNLINKING_STATES = frozenset({MentorStatus.INACTIVE})
