"""
Lifecycle Service

Creation, status transitions, duplication and deletion for Programs,
Cohorts, Mentors and Students.

Every operation follows the same shape:
1. Load the rows it touches with lock=True inside one store transaction
2. Build read snapshots and evaluate the guard for the operation
3. On pass, mutate, run the transition's side effects, audit, and
   return the post-mutation snapshot
A rejected guard raises GuardError before anything is written.

Side effects that belong to a transition:
- Mentor -> INACTIVE clears every cohort link
- Cohort -> ARCHIVED records the prior status; restore returns to it
- Student -> FLAGGED / DROPPED stores the optional reason
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy import delete

from cohortdesk.config.feature_flags import FeatureFlags
from cohortdesk.errors import ValidationError
from cohortdesk.orm.audit_log import AuditAction, EntityType
from cohortdesk.orm.program import Program, ProgramStatus
from cohortdesk.orm.cohort import Cohort, CohortStatus
from cohortdesk.orm.mentor import Mentor, MentorStatus, AvailabilityStatus
from cohortdesk.orm.student import StudentNote, StudentStatus
from cohortdesk.schemas.entities import ProgramRead, CohortRead, MentorRead, DeleteResult
from cohortdesk.schemas.requests import ProgramCreate, CohortCreate, MentorCreate
from cohortdesk.services import guard_rules
from cohortdesk.services.audit_service import AuditService
from cohortdesk.services.entity_store import EntityStore, parse_status
from cohortdesk.services.guard_rules import enforce
from cohortdesk.services.relationship_engine import RelationshipEngine
from cohortdesk.state_machines import ProgramStateMachine, CohortStateMachine, MentorStateMachine, StudentStateMachine

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (Copy)"


class LifecycleService:

    def __init__(
        self,
        store: EntityStore,
        relationships: RelationshipEngine,
        audit: AuditService,
        flags: Optional[FeatureFlags] = None
    ):
        self.store = store
        self.relationships = relationships
        self.audit = audit
        self.flags = flags or FeatureFlags()

    # ================= CREATION =================

    async def create_program(self, data: ProgramCreate) -> ProgramRead:
        async with self.store.transaction():
            program = Program(
                name=data.name,
                description=data.description,
                duration=data.duration,
                syllabus_ref=data.syllabus_ref,
                status=data.status,
            )
            self.store.add(program)
            await self.store.flush()

            self.audit.record(AuditAction.CREATED, EntityType.PROGRAM, program.id, {"status": program.status.value})
            logger.info(f"[CREATED] program={program.id} name='{program.name}'")
            return await self.store.program_snapshot(program)

    async def create_cohort(self, data: CohortCreate) -> CohortRead:
        async with self.store.transaction():
            program = await self.store.get_program(data.program_id, lock=True)

            cohort = Cohort(
                program_id=program.id,
                name=data.name,
                description=data.description,
                status=data.status,
                capacity=data.capacity,
                start_date=data.start_date,
                end_date=data.end_date,
                enrollment_deadline=data.enrollment_deadline,
                price=data.price,
                currency=data.currency,
            )
            self.store.add(cohort)
            # Program's cohort_count changes with this insert
            self.store.touch(program)
            await self.store.flush()

            self.audit.record(
                AuditAction.CREATED, EntityType.COHORT, cohort.id,
                {"program_id": program.id, "status": cohort.status.value}
            )
            logger.info(f"[CREATED] cohort={cohort.id} program={program.id} name='{cohort.name}'")
            return await self.store.cohort_snapshot(cohort)

    async def create_mentor(self, data: MentorCreate) -> MentorRead:
        """
        Create a mentor, optionally assigned to cohort_ids in the same
        transaction. Any rejected assignment rejects the whole creation.
        """
        async with self.store.transaction():
            if await self.store.find_mentor_by_email(data.email) is not None:
                raise ValidationError(
                    f"A mentor with email {data.email} already exists",
                    details={"errors": [{"field": "email", "message": "already registered", "type": "unique"}]}
                )

            max_cohorts = data.max_cohorts if data.max_cohorts is not None else self.flags.default_max_cohorts()

            mentor = Mentor(
                name=data.name,
                email=data.email,
                phone=data.phone,
                specialty=data.specialty,
                bio=data.bio,
                status=MentorStatus.ACTIVE,
                max_cohorts=max_cohorts,
                availability_status=data.availability_status,
            )
            self.store.add(mentor)
            await self.store.flush()

            self.audit.record(AuditAction.CREATED, EntityType.MENTOR, mentor.id, {"max_cohorts": max_cohorts})

            for cohort_id in data.cohort_ids:
                cohort = await self.store.get_cohort(cohort_id, lock=True)
                enforce(
                    guard_rules.can_assign_mentor(
                        await self.store.mentor_snapshot(mentor),
                        await self.store.cohort_snapshot(cohort)
                    ),
                    "create_mentor.assign",
                    mentor_id=mentor.id,
                    cohort_id=cohort_id,
                )
                await self.relationships.link_mentor_cohort(mentor.id, cohort_id)

            logger.info(f"[CREATED] mentor={mentor.id} email={mentor.email} cohorts={data.cohort_ids}")
            return await self.store.mentor_snapshot(mentor)

    # ================= TRANSITIONS =================

    async def transition(
        self,
        entity_type: EntityType,
        entity_id: int,
        new_status: Any,
        metadata: Optional[Dict[str, Any]] = None
    ):
        """Dispatch a status change to the machine for entity_type."""
        target = parse_status(entity_type, new_status)
        metadata = metadata or {}

        handlers = {
            EntityType.PROGRAM: self._transition_program,
            EntityType.COHORT: self._transition_cohort,
            EntityType.MENTOR: self._transition_mentor,
            EntityType.STUDENT: self._transition_student,
        }
        async with self.store.transaction():
            return await handlers[entity_type](entity_id, target, metadata)

    async def _transition_program(self, program_id: int, target: ProgramStatus, metadata: Dict[str, Any]) -> ProgramRead:
        program = await self.store.get_program(program_id, lock=True)
        snapshot = await self.store.program_snapshot(program)

        enforce(
            guard_rules.can_transition_program(snapshot, target),
            "program.transition",
            program_id=program_id,
            target=target.value,
        )

        previous = program.status
        program.status = target
        await self.store.flush()

        self._record_status_change(EntityType.PROGRAM, program_id, previous, target, metadata)
        return await self.store.program_snapshot(program)

    async def _transition_cohort(self, cohort_id: int, target: CohortStatus, metadata: Dict[str, Any]) -> CohortRead:
        cohort = await self.store.get_cohort(cohort_id, lock=True)
        snapshot = await self.store.cohort_snapshot(cohort)

        enforce(
            guard_rules.can_transition_cohort(snapshot, target),
            "cohort.transition",
            cohort_id=cohort_id,
            target=target.value,
        )

        previous = cohort.status
        if target == CohortStatus.ARCHIVED:
            cohort.status_before_archive = previous
        elif previous == CohortStatus.ARCHIVED:
            cohort.status_before_archive = None
        cohort.status = target
        await self.store.flush()

        self._record_status_change(EntityType.COHORT, cohort_id, previous, target, metadata)
        return await self.store.cohort_snapshot(cohort)

    async def _transition_mentor(self, mentor_id: int, target: MentorStatus, metadata: Dict[str, Any]) -> MentorRead:
        mentor = await self.store.get_mentor(mentor_id, lock=True)
        snapshot = await self.store.mentor_snapshot(mentor)

        enforce(
            guard_rules.can_transition_mentor(snapshot, target),
            "mentor.transition",
            mentor_id=mentor_id,
            target=target.value,
        )

        cleared = []
        if target in MentorStateMachine.UNLINKING_STATES:
            cleared = await self.relationships.clear_mentor_links(mentor_id)

        previous = mentor.status
        mentor.status = target
        await self.store.flush()

        self._record_status_change(
            EntityType.MENTOR, mentor_id, previous, target,
            {**metadata, "unlinked_cohort_ids": cleared} if cleared else metadata
        )
        if cleared:
            logger.info(f"[CASCADE] mentor={mentor_id} deactivated, unlinked from cohorts {cleared}")
        return await self.store.mentor_snapshot(mentor)

    async def _transition_student(self, student_id: int, target: StudentStatus, metadata: Dict[str, Any]):
        reason = metadata.get("reason")
        if reason is not None and not isinstance(reason, str):
            raise ValidationError("reason must be text")

        student = await self.store.get_student(student_id, lock=True)

        enforce(
            guard_rules.can_transition_student(student.status, target),
            "student.transition",
            student_id=student_id,
            target=target.value,
        )
        if self.flags.REQUIRE_DROP_CONFIRMATION:
            enforce(
                guard_rules.check_confirmation(target, bool(metadata.get("confirmed"))),
                "student.transition",
                student_id=student_id,
                target=target.value,
            )

        previous = student.status
        reason_field = StudentStateMachine.REASON_FIELDS.get(target)
        if reason_field:
            setattr(student, reason_field, reason.strip() if reason and reason.strip() else None)
        if previous == StudentStatus.FLAGGED and target == StudentStatus.ACTIVE:
            student.flag_reason = None

        student.status = target
        await self.store.flush()

        self._record_status_change(EntityType.STUDENT, student_id, previous, target, metadata)
        return await self.store.student_snapshot(student)

    def _record_status_change(self, entity_type: EntityType, entity_id: int, previous, target, metadata: Dict[str, Any]):
        details = {"from": previous.value, "to": target.value}
        if metadata:
            details["metadata"] = metadata
        self.audit.record(AuditAction.STATUS_CHANGED, entity_type, entity_id, details)
        logger.info(f"[TRANSITION] {entity_type.value.lower()}={entity_id} {previous.value} -> {target.value}")

    # ================= ARCHIVE / RESTORE =================

    async def archive_program(self, program_id: int) -> ProgramRead:
        return await self.transition(EntityType.PROGRAM, program_id, ProgramStatus.ARCHIVED)

    async def restore_program(self, program_id: int) -> ProgramRead:
        return await self.transition(EntityType.PROGRAM, program_id, ProgramStateMachine.RESTORE_TARGET)

    async def archive_cohort(self, cohort_id: int) -> CohortRead:
        return await self.transition(EntityType.COHORT, cohort_id, CohortStatus.ARCHIVED)

    async def complete_cohort(self, cohort_id: int) -> CohortRead:
        return await self.transition(EntityType.COHORT, cohort_id, CohortStatus.COMPLETED)

    async def restore_cohort(self, cohort_id: int) -> CohortRead:
        """Restore an archived cohort to the status it held before archiving."""
        async with self.store.transaction():
            cohort = await self.store.get_cohort(cohort_id, lock=True)
            enforce(
                guard_rules.can_restore_cohort(await self.store.cohort_snapshot(cohort)),
                "cohort.restore",
                cohort_id=cohort_id,
            )
            target = CohortStateMachine.restore_target(cohort.status_before_archive)
            return await self._transition_cohort(cohort_id, target, {"restore": True})

    # ================= DUPLICATION =================

    async def duplicate_program(self, program_id: int) -> ProgramRead:
        async with self.store.transaction():
            source = await self.store.get_program(program_id)
            copy = Program(
                name=f"{source.name}{COPY_SUFFIX}",
                description=source.description,
                duration=source.duration,
                syllabus_ref=source.syllabus_ref,
                status=ProgramStatus.DRAFT,
            )
            self.store.add(copy)
            await self.store.flush()

            self.audit.record(AuditAction.DUPLICATED, EntityType.PROGRAM, copy.id, {"source_id": program_id})
            logger.info(f"[DUPLICATED] program={program_id} -> {copy.id}")
            return await self.store.program_snapshot(copy)

    async def duplicate_cohort(self, cohort_id: int) -> CohortRead:
        """Copy a cohort's settings into a new UPCOMING cohort with no mentors or students."""
        async with self.store.transaction():
            source = await self.store.get_cohort(cohort_id)
            program = await self.store.get_program(source.program_id, lock=True)
            copy = Cohort(
                program_id=source.program_id,
                name=f"{source.name}{COPY_SUFFIX}",
                description=source.description,
                status=CohortStatus.UPCOMING,
                capacity=source.capacity,
                start_date=source.start_date,
                end_date=source.end_date,
                enrollment_deadline=source.enrollment_deadline,
                price=source.price,
                currency=source.currency,
            )
            self.store.add(copy)
            self.store.touch(program)
            await self.store.flush()

            self.audit.record(AuditAction.DUPLICATED, EntityType.COHORT, copy.id, {"source_id": cohort_id})
            logger.info(f"[DUPLICATED] cohort={cohort_id} -> {copy.id}")
            return await self.store.cohort_snapshot(copy)

    # ================= MENTOR SETTINGS =================

    async def update_mentor_capacity(self, mentor_id: int, max_cohorts: int) -> MentorRead:
        async with self.store.transaction():
            mentor = await self.store.get_mentor(mentor_id, lock=True)
            enforce(
                guard_rules.can_set_max_cohorts(await self.store.mentor_snapshot(mentor), max_cohorts),
                "mentor.capacity",
                mentor_id=mentor_id,
                max_cohorts=max_cohorts,
            )
            previous = mentor.max_cohorts
            mentor.max_cohorts = max_cohorts
            await self.store.flush()

            self.audit.record(
                AuditAction.CAPACITY_CHANGED, EntityType.MENTOR, mentor_id,
                {"from": previous, "to": max_cohorts}
            )
            logger.info(f"[CAPACITY] mentor={mentor_id} max_cohorts {previous} -> {max_cohorts}")
            return await self.store.mentor_snapshot(mentor)

    async def update_mentor_availability(self, mentor_id: int, availability: AvailabilityStatus) -> MentorRead:
        async with self.store.transaction():
            mentor = await self.store.get_mentor(mentor_id, lock=True)
            previous = mentor.availability_status
            mentor.availability_status = availability
            await self.store.flush()

            self.audit.record(
                AuditAction.AVAILABILITY_CHANGED, EntityType.MENTOR, mentor_id,
                {"from": previous.value, "to": availability.value}
            )
            return await self.store.mentor_snapshot(mentor)

    # ================= DELETION =================

    async def delete_entity(self, entity_type: EntityType, entity_id: int) -> DeleteResult:
        handlers = {
            EntityType.PROGRAM: self._delete_program,
            EntityType.COHORT: self._delete_cohort,
            EntityType.MENTOR: self._delete_mentor,
            EntityType.STUDENT: self._delete_student,
        }
        async with self.store.transaction():
            await handlers[entity_type](entity_id)
            await self.store.flush()
            self.audit.record(AuditAction.DELETED, entity_type, entity_id)
            logger.info(f"[DELETED] {entity_type.value.lower()}={entity_id}")
            return DeleteResult(entity_type=entity_type, entity_id=entity_id)

    async def _delete_program(self, program_id: int) -> None:
        program = await self.store.get_program(program_id, lock=True)
        enforce(
            guard_rules.can_delete_program(await self.store.program_snapshot(program)),
            "program.delete",
            program_id=program_id,
        )
        await self.store.delete(program)

    async def _delete_cohort(self, cohort_id: int) -> None:
        cohort = await self.store.get_cohort(cohort_id, lock=True)
        enforce(
            guard_rules.can_delete_cohort(await self.store.cohort_snapshot(cohort)),
            "cohort.delete",
            cohort_id=cohort_id,
        )
        program = await self.store.get_program(cohort.program_id, lock=True)

        await self.relationships.clear_cohort_links(cohort_id)
        self.store.touch(program)
        await self.store.delete(cohort)

    async def _delete_mentor(self, mentor_id: int) -> None:
        mentor = await self.store.get_mentor(mentor_id, lock=True)
        enforce(
            guard_rules.can_delete_mentor(await self.store.mentor_snapshot(mentor)),
            "mentor.delete",
            mentor_id=mentor_id,
        )
        for student in await self.store.students_of_mentor(mentor_id):
            student.mentor_id = None
        await self.store.flush()
        await self.store.delete(mentor)

    async def _delete_student(self, student_id: int) -> None:
        student = await self.store.get_student(student_id, lock=True)
        cohort = await self.store.get_cohort(student.cohort_id, lock=True)

        await self.store.db.execute(delete(StudentNote).where(StudentNote.student_id == student_id))
        # Cohort's student_count changes with this delete
        self.store.touch(cohort)
        await self.store.delete(student)
