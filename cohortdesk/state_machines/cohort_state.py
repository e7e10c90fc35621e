"""
Cohort State Machine

Forward path: UPCOMING -> ACTIVE -> COMPLETED.
UPCOMING and ACTIVE may be archived; an archived cohort restores to the
status it held immediately before archiving.
"""
from typing import Optional, Tuple

from cohortdesk.orm.cohort import CohortStatus
from cohortdesk.state_machines.base import LifecycleStateMachine


class CohortStateMachine(LifecycleStateMachine):
    ENTITY_NAME = "Cohort"
    STATUS_ENUM = CohortStatus

    TRANSITIONS = {
        CohortStatus.UPCOMING: [CohortStatus.ACTIVE, CohortStatus.ARCHIVED],
        CohortStatus.ACTIVE: [CohortStatus.COMPLETED, CohortStatus.ARCHIVED],
        CohortStatus.COMPLETED: [],
        # Restore only; the exact target is the recorded prior status
        CohortStatus.ARCHIVED: [CohortStatus.UPCOMING, CohortStatus.ACTIVE],
    }

    # Used when an archived row carries no prior status
    RESTORE_FALLBACK = CohortStatus.UPCOMING

    # Statuses a mentor can be assigned into
    ASSIGNABLE_STATES = frozenset({CohortStatus.UPCOMING, CohortStatus.ACTIVE})

    # Statuses that still accept enrollments
    ENROLLABLE_STATES = frozenset({CohortStatus.UPCOMING, CohortStatus.ACTIVE})

    @classmethod
    def restore_target(cls, status_before_archive: Optional[CohortStatus]) -> CohortStatus:
        if status_before_archive in cls.TRANSITIONS[CohortStatus.ARCHIVED]:
            return status_before_archive
        return cls.RESTORE_FALLBACK

    @classmethod
    def can_restore_to(
        cls,
        status_before_archive: Optional[CohortStatus],
        target: CohortStatus
    ) -> Tuple[bool, str]:
        expected = cls.restore_target(status_before_archive)
        if target != expected:
            return False, (
                f"Archived cohort restores to {expected.value}, not {target.value}"
            )
        return True, "Transition allowed"
