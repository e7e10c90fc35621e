"""
Relationship Consistency Engine

The mentor <-> cohort relationship is stored once, as rows in
cohort_mentor_links. cohort.mentor_ids and mentor.assigned_cohort_ids are
both read back from that table, and every mutation here:

- runs inside the store transaction (all-or-nothing)
- bumps the version of both endpoint rows, so concurrent writers on
  either side conflict instead of interleaving
- re-reads both views afterwards and raises ConsistencyError if they
  disagree, which rolls the whole operation back

The engine does not evaluate business guards. Callers (assignment
workflow, lifecycle service) run guard_rules first.
"""
import logging
from typing import Any, Dict, List

from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError

from cohortdesk.errors import ConsistencyError, GuardError
from cohortdesk.orm.audit_log import AuditAction, EntityType
from cohortdesk.orm.cohort import Cohort
from cohortdesk.orm.mentor import Mentor, MentorStatus
from cohortdesk.orm.cohort_mentor_link import CohortMentorLink
from cohortdesk.schemas.entities import AssignmentResult
from cohortdesk.services.audit_service import AuditService
from cohortdesk.services.entity_store import EntityStore
from cohortdesk.services.guard_rules import GuardReason

logger = logging.getLogger(__name__)


class RelationshipEngine:

    def __init__(self, store: EntityStore, audit: AuditService):
        self.store = store
        self.audit = audit

    async def link_mentor_cohort(self, mentor_id: int, cohort_id: int) -> AssignmentResult:
        async with self.store.transaction():
            mentor = await self.store.get_mentor(mentor_id, lock=True)
            cohort = await self.store.get_cohort(cohort_id, lock=True)
            # A failed flush leaves the session unusable, so the message is built first
            duplicate_message = f"Mentor {mentor.name} is already assigned to {cohort.name}"

            self.store.add(CohortMentorLink(cohort_id=cohort.id, mentor_id=mentor.id))
            self.store.touch(mentor, cohort)

            try:
                await self.store.flush()
            except IntegrityError as e:
                logger.warning(f"[RACE] link mentor={mentor_id} cohort={cohort_id} already exists")
                raise GuardError(GuardReason.MENTOR_ALREADY_ASSIGNED.value, duplicate_message) from e

            await self._verify_pair(mentor_id, cohort_id, linked=True)

            self.audit.record(AuditAction.MENTOR_ASSIGNED, EntityType.MENTOR, mentor_id, {"cohort_id": cohort_id})
            self.audit.record(AuditAction.MENTOR_ASSIGNED, EntityType.COHORT, cohort_id, {"mentor_id": mentor_id})

            logger.info(f"[LINK] mentor={mentor_id} cohort={cohort_id}")

            return AssignmentResult(
                mentor=await self.store.mentor_snapshot(mentor),
                cohort=await self.store.cohort_snapshot(cohort),
            )

    async def unlink_mentor_cohort(self, mentor_id: int, cohort_id: int) -> AssignmentResult:
        async with self.store.transaction():
            mentor = await self.store.get_mentor(mentor_id, lock=True)
            cohort = await self.store.get_cohort(cohort_id, lock=True)

            result = await self.store.db.execute(
                delete(CohortMentorLink).where(
                    CohortMentorLink.mentor_id == mentor_id,
                    CohortMentorLink.cohort_id == cohort_id,
                )
            )
            if result.rowcount == 0:
                raise GuardError(
                    GuardReason.MENTOR_NOT_ASSIGNED.value,
                    f"Mentor {mentor.name} is not assigned to {cohort.name}"
                )

            self.store.touch(mentor, cohort)
            await self.store.flush()

            await self._verify_pair(mentor_id, cohort_id, linked=False)

            self.audit.record(AuditAction.MENTOR_REMOVED, EntityType.MENTOR, mentor_id, {"cohort_id": cohort_id})
            self.audit.record(AuditAction.MENTOR_REMOVED, EntityType.COHORT, cohort_id, {"mentor_id": mentor_id})

            logger.info(f"[UNLINK] mentor={mentor_id} cohort={cohort_id}")

            return AssignmentResult(
                mentor=await self.store.mentor_snapshot(mentor),
                cohort=await self.store.cohort_snapshot(cohort),
            )

    async def clear_mentor_links(self, mentor_id: int) -> List[int]:
        """
        Remove the mentor from every cohort. Returns the cohort ids that
        were unlinked.
        """
        async with self.store.transaction():
            mentor = await self.store.get_mentor(mentor_id, lock=True)
            cohort_ids = await self.store.cohort_ids_for_mentor(mentor_id)
            if not cohort_ids:
                return []

            cohorts = [await self.store.get_cohort(cid, lock=True) for cid in cohort_ids]

            await self.store.db.execute(
                delete(CohortMentorLink).where(CohortMentorLink.mentor_id == mentor_id)
            )
            self.store.touch(mentor, *cohorts)
            await self.store.flush()

            remaining = await self.store.cohort_ids_for_mentor(mentor_id)
            if remaining:
                raise ConsistencyError(
                    f"Mentor {mentor_id} still assigned after clearing links",
                    {"mentor_id": mentor_id, "remaining_cohort_ids": remaining}
                )
            for cid in cohort_ids:
                await self._verify_pair(mentor_id, cid, linked=False)

            self.audit.record(
                AuditAction.LINKS_CLEARED, EntityType.MENTOR, mentor_id, {"cohort_ids": cohort_ids}
            )
            for cid in cohort_ids:
                self.audit.record(AuditAction.MENTOR_REMOVED, EntityType.COHORT, cid, {"mentor_id": mentor_id})

            logger.info(f"[UNLINK ALL] mentor={mentor_id} cohorts={cohort_ids}")
            return cohort_ids

    async def clear_cohort_links(self, cohort_id: int) -> List[int]:
        """Remove every mentor from the cohort. Returns the mentor ids unlinked."""
        async with self.store.transaction():
            cohort = await self.store.get_cohort(cohort_id, lock=True)
            mentor_ids = await self.store.mentor_ids_for_cohort(cohort_id)
            if not mentor_ids:
                return []

            mentors = [await self.store.get_mentor(mid, lock=True) for mid in mentor_ids]

            await self.store.db.execute(
                delete(CohortMentorLink).where(CohortMentorLink.cohort_id == cohort_id)
            )
            self.store.touch(cohort, *mentors)
            await self.store.flush()

            for mid in mentor_ids:
                await self._verify_pair(mid, cohort_id, linked=False)

            self.audit.record(
                AuditAction.LINKS_CLEARED, EntityType.COHORT, cohort_id, {"mentor_ids": mentor_ids}
            )
            for mid in mentor_ids:
                self.audit.record(AuditAction.MENTOR_REMOVED, EntityType.MENTOR, mid, {"cohort_id": cohort_id})

            logger.info(f"[UNLINK ALL] cohort={cohort_id} mentors={mentor_ids}")
            return mentor_ids

    async def _verify_pair(self, mentor_id: int, cohort_id: int, linked: bool) -> None:
        """Both derived views must agree with each other and with the intended state."""
        in_mentor_view = cohort_id in await self.store.cohort_ids_for_mentor(mentor_id)
        in_cohort_view = mentor_id in await self.store.mentor_ids_for_cohort(cohort_id)

        if in_mentor_view != in_cohort_view or in_mentor_view != linked:
            raise ConsistencyError(
                "Mentor/cohort views disagree after link update",
                {
                    "mentor_id": mentor_id,
                    "cohort_id": cohort_id,
                    "expected_linked": linked,
                    "mentor_view": in_mentor_view,
                    "cohort_view": in_cohort_view,
                }
            )

    async def verify_link_integrity(self) -> Dict[str, Any]:
        """
        Verify the link table against the entity rows.

        Checks:
        - every link points at an existing mentor and cohort
        - no mentor holds more links than max_cohorts
        - inactive mentors hold no links
        """
        errors = []
        warnings = []

        links = (await self.store.db.execute(select(CohortMentorLink))).scalars().all()

        mentor_ids = set((await self.store.db.execute(select(Mentor.id))).scalars().all())
        cohort_ids = set((await self.store.db.execute(select(Cohort.id))).scalars().all())

        for link in links:
            if link.mentor_id not in mentor_ids:
                errors.append(f"Link {link.id} references missing mentor {link.mentor_id}")
            if link.cohort_id not in cohort_ids:
                errors.append(f"Link {link.id} references missing cohort {link.cohort_id}")

        counts = await self.store.db.execute(
            select(Mentor.id, Mentor.max_cohorts, Mentor.status, func.count(CohortMentorLink.id))
            .join(CohortMentorLink, CohortMentorLink.mentor_id == Mentor.id)
            .group_by(Mentor.id, Mentor.max_cohorts, Mentor.status)
        )
        for mid, max_cohorts, status, assigned in counts.all():
            if assigned > max_cohorts:
                errors.append(f"Mentor {mid} assigned to {assigned} cohorts (max {max_cohorts})")
            if status != MentorStatus.ACTIVE:
                errors.append(f"Inactive mentor {mid} still assigned to {assigned} cohorts")

        return {
            "total_links": len(links),
            "is_valid": len(errors) == 0,
            "errors": errors,
            "warnings": warnings,
        }
