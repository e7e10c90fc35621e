"""
Enrollment Service

Student-side operations: enrollment, cohort transfer, mentor pairing,
progress, payment status and notes.

A student's cohort is a forward reference (students.cohort_id); a cohort's
roster is read by filtering students on it and is never stored. Cohort
capacity is checked at enrollment and transfer time only, never
retroactively, and is a hard block or a logged warning depending on
ENFORCE_COHORT_CAPACITY.
"""
import logging
from datetime import datetime
from typing import List, Optional

from cohortdesk.config.feature_flags import FeatureFlags
from cohortdesk.errors import ValidationError
from cohortdesk.orm.audit_log import AuditAction, EntityType
from cohortdesk.orm.student import Student, StudentNote, StudentStatus, PaymentStatus
from cohortdesk.schemas.entities import CohortRead, NoteRead, StudentRead
from cohortdesk.schemas.requests import StudentCreate, NoteCreate
from cohortdesk.services import guard_rules
from cohortdesk.services.audit_service import AuditService
from cohortdesk.services.entity_store import EntityStore
from cohortdesk.services.guard_rules import GuardReason, GuardResult, enforce
from cohortdesk.state_machines import StudentStateMachine

logger = logging.getLogger(__name__)


class EnrollmentService:

    def __init__(self, store: EntityStore, audit: AuditService, flags: Optional[FeatureFlags] = None):
        self.store = store
        self.audit = audit
        self.flags = flags or FeatureFlags()

    def _check_capacity(self, cohort: CohortRead, operation: str, **context) -> None:
        enforce(
            guard_rules.can_enroll_student(cohort, self.flags.ENFORCE_COHORT_CAPACITY),
            operation,
            cohort_id=cohort.id,
            **context
        )
        if guard_rules.is_over_capacity(cohort):
            # Only reachable with capacity enforcement switched off
            logger.warning(
                f"[OVER CAPACITY] cohort={cohort.id} {cohort.student_count + 1}/{cohort.capacity} after {operation}"
            )

    # ================= ENROLLMENT =================

    async def create_student(self, data: StudentCreate) -> StudentRead:
        async with self.store.transaction():
            cohort = await self.store.get_cohort(data.cohort_id, lock=True)
            self._check_capacity(await self.store.cohort_snapshot(cohort), "enroll_student")

            if await self.store.find_student_in_cohort(cohort.id, data.email) is not None:
                raise ValidationError(
                    f"{data.email} is already enrolled in {cohort.name}",
                    details={"errors": [{"field": "email", "message": "already enrolled", "type": "unique"}]}
                )

            student = Student(
                name=data.name,
                email=data.email,
                phone=data.phone,
                cohort_id=cohort.id,
                status=data.status,
                payment_status=data.payment_status,
                progress=data.progress,
            )
            self.store.add(student)
            # Cohort's student_count changes with this insert
            self.store.touch(cohort)
            await self.store.flush()

            if data.mentor_id is not None:
                await self._pair_mentor(student, data.mentor_id)

            self.audit.record(
                AuditAction.CREATED, EntityType.STUDENT, student.id,
                {"cohort_id": cohort.id, "status": student.status.value}
            )
            logger.info(f"[ENROLLED] student={student.id} cohort={cohort.id}")
            return await self.store.student_snapshot(student)

    async def transfer_student(self, student_id: int, cohort_id: int) -> StudentRead:
        """
        Move a student to another cohort. The target's capacity applies,
        and a mentor who does not teach in the target cohort is unpaired.
        """
        async with self.store.transaction():
            student = await self.store.get_student(student_id, lock=True)
            self._enforce_not_terminal(student, "transfer_student")

            if student.cohort_id == cohort_id:
                raise ValidationError(f"Student is already in cohort {cohort_id}")

            source = await self.store.get_cohort(student.cohort_id, lock=True)
            target = await self.store.get_cohort(cohort_id, lock=True)
            self._check_capacity(await self.store.cohort_snapshot(target), "transfer_student", student_id=student_id)

            previous_mentor = student.mentor_id
            if previous_mentor is not None:
                if cohort_id not in await self.store.cohort_ids_for_mentor(previous_mentor):
                    student.mentor_id = None

            student.cohort_id = target.id
            self.store.touch(source, target)
            await self.store.flush()

            self.audit.record(
                AuditAction.STUDENT_TRANSFERRED, EntityType.STUDENT, student_id,
                {
                    "from_cohort_id": source.id,
                    "to_cohort_id": target.id,
                    "mentor_cleared": previous_mentor is not None and student.mentor_id is None,
                }
            )
            logger.info(f"[TRANSFER] student={student_id} cohort {source.id} -> {target.id}")
            return await self.store.student_snapshot(student)

    async def roster(self, cohort_id: int) -> List[StudentRead]:
        """Students in a cohort, derived from students.cohort_id."""
        await self.store.get_cohort(cohort_id)
        return [await self.store.student_snapshot(s) for s in await self.store.students_in_cohort(cohort_id)]

    # ================= MENTOR PAIRING =================

    async def assign_student_mentor(self, student_id: int, mentor_id: Optional[int]) -> StudentRead:
        """Pair a student with a mentor of their cohort, or unpair with None."""
        async with self.store.transaction():
            student = await self.store.get_student(student_id, lock=True)
            previous = student.mentor_id

            if mentor_id is None:
                student.mentor_id = None
            else:
                await self._pair_mentor(student, mentor_id)
            await self.store.flush()

            self.audit.record(
                AuditAction.STUDENT_MENTOR_CHANGED, EntityType.STUDENT, student_id,
                {"from": previous, "to": student.mentor_id}
            )
            logger.info(f"[PAIRING] student={student_id} mentor {previous} -> {student.mentor_id}")
            return await self.store.student_snapshot(student)

    async def _pair_mentor(self, student: Student, mentor_id: int) -> None:
        mentor = await self.store.get_mentor(mentor_id, lock=True)
        enforce(
            guard_rules.can_assign_student_mentor(
                await self.store.student_snapshot(student),
                await self.store.mentor_snapshot(mentor)
            ),
            "assign_student_mentor",
            student_id=student.id,
            mentor_id=mentor_id,
        )
        student.mentor_id = mentor.id

    # ================= PROGRESS / PAYMENT =================

    async def record_progress(self, student_id: int, progress: int) -> StudentRead:
        """
        Record course progress. The first activity of an INVITED student
        moves them to ACTIVE as part of the same write.
        """
        async with self.store.transaction():
            student = await self.store.get_student(student_id, lock=True)
            self._enforce_not_terminal(student, "record_progress")

            if student.status == StudentStatus.INVITED:
                allowed, _ = StudentStateMachine.can_transition(student.status, StudentStatus.ACTIVE)
                if allowed:
                    student.status = StudentStatus.ACTIVE
                    self.audit.record(
                        AuditAction.STATUS_CHANGED, EntityType.STUDENT, student_id,
                        {"from": StudentStatus.INVITED.value, "to": StudentStatus.ACTIVE.value, "implicit": True}
                    )
                    logger.info(f"[TRANSITION] student={student_id} INVITED -> ACTIVE (first activity)")

            previous = student.progress
            student.progress = progress
            student.last_activity_at = datetime.utcnow()
            await self.store.flush()

            self.audit.record(
                AuditAction.PROGRESS_RECORDED, EntityType.STUDENT, student_id,
                {"from": previous, "to": progress}
            )
            return await self.store.student_snapshot(student)

    async def update_payment_status(self, student_id: int, payment_status: PaymentStatus) -> StudentRead:
        async with self.store.transaction():
            student = await self.store.get_student(student_id, lock=True)
            previous = student.payment_status
            student.payment_status = payment_status
            await self.store.flush()

            self.audit.record(
                AuditAction.PAYMENT_CHANGED, EntityType.STUDENT, student_id,
                {"from": previous.value, "to": payment_status.value}
            )
            return await self.store.student_snapshot(student)

    # ================= NOTES =================

    async def add_note(self, student_id: int, data: NoteCreate) -> NoteRead:
        """Append a note. Notes are never edited or removed afterwards."""
        async with self.store.transaction():
            student = await self.store.get_student(student_id, lock=True)
            note = StudentNote(
                student_id=student.id,
                author=data.author,
                author_role=data.author_role,
                content=data.content,
            )
            self.store.add(note)
            await self.store.flush()

            self.audit.record(
                AuditAction.NOTE_ADDED, EntityType.STUDENT, student_id,
                {"note_id": note.id, "author": data.author}
            )
            return NoteRead.model_validate(note.to_dict())

    async def list_notes(self, student_id: int) -> List[NoteRead]:
        await self.store.get_student(student_id)
        return [NoteRead.model_validate(n.to_dict()) for n in await self.store.notes_for_student(student_id)]

    def _enforce_not_terminal(self, student: Student, operation: str) -> None:
        if StudentStateMachine.is_terminal(student.status):
            enforce(
                GuardResult.deny(
                    GuardReason.STUDENT_TERMINAL,
                    f"Student is {student.status.value}; the record is closed"
                ),
                operation,
                student_id=student.id,
            )
