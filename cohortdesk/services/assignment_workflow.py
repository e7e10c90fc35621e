"""
Assignment Workflow - two-phase mentor <-> cohort assignment

Works the same from either side (mentor-initiated or cohort-initiated):

1. Selection: the caller picks a counterpart, usually from the eligible
   lists below. select_*() evaluates the guard eagerly and returns an
   AssignmentSelection. Nothing is stored; the caller holds the selection.
2. Confirmation: confirm() re-runs the authoritative guard on freshly
   locked rows (counts or statuses may have moved since selection) and
   links on pass. On failure GuardError is raised and nothing changes.

Removal has no selection phase; it is guarded and applied in one step.
"""
import logging
from typing import List

from sqlalchemy import select

from cohortdesk.orm.audit_log import EntityType
from cohortdesk.orm.cohort import Cohort
from cohortdesk.orm.mentor import Mentor, MentorStatus
from cohortdesk.schemas.entities import AssignmentResult, AssignmentSelection, CohortRead, MentorRead
from cohortdesk.services import guard_rules
from cohortdesk.services.entity_store import EntityStore
from cohortdesk.services.guard_rules import enforce
from cohortdesk.services.relationship_engine import RelationshipEngine
from cohortdesk.state_machines import CohortStateMachine

logger = logging.getLogger(__name__)


class AssignmentWorkflow:

    def __init__(self, store: EntityStore, relationships: RelationshipEngine):
        self.store = store
        self.relationships = relationships

    # ================= SELECTION =================

    async def select_cohort_for_mentor(self, mentor_id: int, cohort_id: int) -> AssignmentSelection:
        """Mentor-initiated: the mentor drawer picked a cohort."""
        return await self._select(EntityType.MENTOR, mentor_id, cohort_id)

    async def select_mentor_for_cohort(self, cohort_id: int, mentor_id: int) -> AssignmentSelection:
        """Cohort-initiated: the cohort drawer picked a mentor."""
        return await self._select(EntityType.COHORT, mentor_id, cohort_id)

    async def _select(self, initiated_from: EntityType, mentor_id: int, cohort_id: int) -> AssignmentSelection:
        mentor = await self.store.read(EntityType.MENTOR, mentor_id)
        cohort = await self.store.read(EntityType.COHORT, cohort_id)
        verdict = guard_rules.can_assign_mentor(mentor, cohort)

        logger.debug(
            f"[SELECT] from={initiated_from.value} mentor={mentor_id} cohort={cohort_id} "
            f"eligible={verdict.allowed}"
        )
        return AssignmentSelection(
            initiated_from=initiated_from,
            mentor_id=mentor_id,
            cohort_id=cohort_id,
            eligible=verdict.allowed,
            reason=verdict.reason.value if verdict.reason else None,
            message=verdict.message,
        )

    # ================= CONFIRMATION =================

    async def confirm(self, selection: AssignmentSelection) -> AssignmentResult:
        """
        Authoritative check and link. The eligibility recorded on the
        selection is ignored; only the fresh guard result counts.
        """
        return await self.assign(selection.mentor_id, selection.cohort_id)

    async def assign(self, mentor_id: int, cohort_id: int) -> AssignmentResult:
        async with self.store.transaction():
            mentor = await self.store.get_mentor(mentor_id, lock=True)
            cohort = await self.store.get_cohort(cohort_id, lock=True)

            enforce(
                guard_rules.can_assign_mentor(
                    await self.store.mentor_snapshot(mentor),
                    await self.store.cohort_snapshot(cohort)
                ),
                "assign_mentor",
                mentor_id=mentor_id,
                cohort_id=cohort_id,
            )
            return await self.relationships.link_mentor_cohort(mentor_id, cohort_id)

    async def remove(self, mentor_id: int, cohort_id: int) -> AssignmentResult:
        async with self.store.transaction():
            mentor = await self.store.get_mentor(mentor_id, lock=True)
            cohort = await self.store.get_cohort(cohort_id, lock=True)

            enforce(
                guard_rules.can_remove_mentor(
                    await self.store.mentor_snapshot(mentor),
                    await self.store.cohort_snapshot(cohort)
                ),
                "remove_mentor",
                mentor_id=mentor_id,
                cohort_id=cohort_id,
            )
            return await self.relationships.unlink_mentor_cohort(mentor_id, cohort_id)

    # ================= ELIGIBILITY =================

    async def eligible_mentors_for_cohort(self, cohort_id: int) -> List[MentorRead]:
        """Active mentors not yet linked to the cohort and below capacity."""
        cohort = await self.store.read(EntityType.COHORT, cohort_id)
        if cohort.status not in CohortStateMachine.ASSIGNABLE_STATES:
            return []

        result = await self.store.db.execute(
            select(Mentor).where(Mentor.status == MentorStatus.ACTIVE).order_by(Mentor.id)
        )
        eligible = []
        for mentor in result.scalars().all():
            snapshot = await self.store.mentor_snapshot(mentor)
            if guard_rules.can_assign_mentor(snapshot, cohort):
                eligible.append(snapshot)
        return eligible

    async def eligible_cohorts_for_mentor(self, mentor_id: int) -> List[CohortRead]:
        """
        Upcoming or active cohorts the mentor is not already in. Empty when
        the mentor is inactive or at capacity.
        """
        mentor = await self.store.read(EntityType.MENTOR, mentor_id)

        result = await self.store.db.execute(
            select(Cohort)
            .where(Cohort.status.in_(list(CohortStateMachine.ASSIGNABLE_STATES)))
            .order_by(Cohort.start_date, Cohort.id)
        )
        eligible = []
        for cohort in result.scalars().all():
            snapshot = await self.store.cohort_snapshot(cohort)
            if guard_rules.can_assign_mentor(mentor, snapshot):
                eligible.append(snapshot)
        return eligible
