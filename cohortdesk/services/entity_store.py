"""
Entity Store

Single source of truth for Programs, Cohorts, Mentors and Students.

Writers go through transaction(): one commit on success, one rollback on
any exception, so a caller never sees half of a compound change. Writers
are serialized by an in-process lock (SQLite has no row locks), rows are
read with FOR UPDATE where the dialect supports it, and every entity row
carries a version counter so a stale writer fails instead of overwriting.

Derived views (cohort_count, student_count, mentor_ids,
assigned_cohort_ids, notes) are computed here by query and attached to
read snapshots; none of them is stored.
"""
import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from cohortdesk.errors import NotFoundError, ConcurrentModificationError, ValidationError
from cohortdesk.orm.audit_log import EntityType
from cohortdesk.orm.program import Program, ProgramStatus
from cohortdesk.orm.cohort import Cohort, CohortStatus
from cohortdesk.orm.mentor import Mentor, MentorStatus
from cohortdesk.orm.student import Student, StudentNote, StudentStatus
from cohortdesk.orm.cohort_mentor_link import CohortMentorLink
from cohortdesk.schemas.entities import ProgramRead, CohortRead, MentorRead, StudentRead, NoteRead

logger = logging.getLogger(__name__)

MODELS: Dict[EntityType, Type] = {
    EntityType.PROGRAM: Program,
    EntityType.COHORT: Cohort,
    EntityType.MENTOR: Mentor,
    EntityType.STUDENT: Student,
}

STATUS_ENUMS = {
    EntityType.PROGRAM: ProgramStatus,
    EntityType.COHORT: CohortStatus,
    EntityType.MENTOR: MentorStatus,
    EntityType.STUDENT: StudentStatus,
}

# One writer lock per event loop
_writer_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock]" = weakref.WeakKeyDictionary()


def _writer_lock() -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    lock = _writer_locks.get(loop)
    if lock is None:
        lock = _writer_locks[loop] = asyncio.Lock()
    return lock


def parse_entity_type(value: Any) -> EntityType:
    if isinstance(value, EntityType):
        return value
    try:
        return EntityType(str(value).upper())
    except ValueError:
        allowed = ", ".join(e.value for e in EntityType)
        raise ValidationError(f"Unknown entity type '{value}'. Expected one of: {allowed}")


def parse_status(entity_type: EntityType, value: Any):
    enum_cls = STATUS_ENUMS[entity_type]
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        allowed = ", ".join(s.value for s in enum_cls)
        raise ValidationError(
            f"Unknown {entity_type.value.lower()} status '{value}'. Expected one of: {allowed}"
        )


class EntityStore:
    """Canonical records plus the transaction boundary around every write."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self._depth = 0

    # ================= TRANSACTIONS =================

    @asynccontextmanager
    async def transaction(self):
        """
        Re-entrant write scope. Only the outermost scope takes the writer
        lock and commits; inner scopes join it.
        """
        if self._depth:
            self._depth += 1
            try:
                yield self.db
            finally:
                self._depth -= 1
            return

        async with _writer_lock():
            self._depth = 1
            try:
                yield self.db
                await self.db.commit()
            except StaleDataError as e:
                await self.db.rollback()
                logger.warning(f"[CONCURRENT MODIFICATION] {e}")
                raise ConcurrentModificationError() from e
            except Exception:
                await self.db.rollback()
                raise
            finally:
                self._depth = 0

    async def flush(self) -> None:
        try:
            await self.db.flush()
        except StaleDataError as e:
            logger.warning(f"[CONCURRENT MODIFICATION] {e}")
            raise ConcurrentModificationError() from e

    def add(self, obj) -> None:
        self.db.add(obj)

    async def delete(self, obj) -> None:
        await self.db.delete(obj)

    @staticmethod
    def touch(*rows) -> None:
        """Force an UPDATE (and version bump) on rows whose columns did not change."""
        now = datetime.utcnow()
        for row in rows:
            row.updated_at = now
            flag_modified(row, "updated_at")

    # ================= LOOKUPS =================

    async def get(self, entity_type: EntityType, entity_id: int, lock: bool = False):
        """
        Load one entity row or raise NotFoundError.

        With lock=True the row is re-read from the database (discarding any
        cached copy) and locked FOR UPDATE where supported.
        """
        model = MODELS[entity_type]
        stmt = select(model).where(model.id == entity_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        obj = result.scalar_one_or_none()
        if obj is None:
            raise NotFoundError(entity_type.value.capitalize(), entity_id)
        return obj

    async def get_program(self, program_id: int, lock: bool = False) -> Program:
        return await self.get(EntityType.PROGRAM, program_id, lock)

    async def get_cohort(self, cohort_id: int, lock: bool = False) -> Cohort:
        return await self.get(EntityType.COHORT, cohort_id, lock)

    async def get_mentor(self, mentor_id: int, lock: bool = False) -> Mentor:
        return await self.get(EntityType.MENTOR, mentor_id, lock)

    async def get_student(self, student_id: int, lock: bool = False) -> Student:
        return await self.get(EntityType.STUDENT, student_id, lock)

    async def find_mentor_by_email(self, email: str) -> Optional[Mentor]:
        result = await self.db.execute(select(Mentor).where(Mentor.email == email))
        return result.scalar_one_or_none()

    async def find_student_in_cohort(self, cohort_id: int, email: str) -> Optional[Student]:
        result = await self.db.execute(
            select(Student).where(Student.cohort_id == cohort_id, Student.email == email)
        )
        return result.scalar_one_or_none()

    # ================= DERIVED VIEWS =================

    async def cohort_count(self, program_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Cohort.id)).where(Cohort.program_id == program_id)
        )
        return result.scalar() or 0

    async def student_count(self, cohort_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Student.id)).where(Student.cohort_id == cohort_id)
        )
        return result.scalar() or 0

    async def mentor_ids_for_cohort(self, cohort_id: int) -> List[int]:
        result = await self.db.execute(
            select(CohortMentorLink.mentor_id)
            .where(CohortMentorLink.cohort_id == cohort_id)
            .order_by(CohortMentorLink.mentor_id)
        )
        return list(result.scalars().all())

    async def cohort_ids_for_mentor(self, mentor_id: int) -> List[int]:
        result = await self.db.execute(
            select(CohortMentorLink.cohort_id)
            .where(CohortMentorLink.mentor_id == mentor_id)
            .order_by(CohortMentorLink.cohort_id)
        )
        return list(result.scalars().all())

    async def students_in_cohort(self, cohort_id: int) -> List[Student]:
        result = await self.db.execute(
            select(Student).where(Student.cohort_id == cohort_id).order_by(Student.id)
        )
        return list(result.scalars().all())

    async def students_of_mentor(self, mentor_id: int) -> List[Student]:
        result = await self.db.execute(
            select(Student).where(Student.mentor_id == mentor_id).order_by(Student.id)
        )
        return list(result.scalars().all())

    async def notes_for_student(self, student_id: int) -> List[StudentNote]:
        result = await self.db.execute(
            select(StudentNote)
            .where(StudentNote.student_id == student_id)
            .order_by(StudentNote.created_at, StudentNote.id)
        )
        return list(result.scalars().all())

    # ================= SNAPSHOTS =================

    async def program_snapshot(self, program: Program) -> ProgramRead:
        return ProgramRead.model_validate({
            **program.to_dict(),
            "cohort_count": await self.cohort_count(program.id),
        })

    async def cohort_snapshot(self, cohort: Cohort) -> CohortRead:
        return CohortRead.model_validate({
            **cohort.to_dict(),
            "mentor_ids": await self.mentor_ids_for_cohort(cohort.id),
            "student_count": await self.student_count(cohort.id),
        })

    async def mentor_snapshot(self, mentor: Mentor) -> MentorRead:
        return MentorRead.model_validate({
            **mentor.to_dict(),
            "assigned_cohort_ids": await self.cohort_ids_for_mentor(mentor.id),
        })

    async def student_snapshot(self, student: Student) -> StudentRead:
        notes = await self.notes_for_student(student.id)
        return StudentRead.model_validate({
            **student.to_dict(),
            "notes": [NoteRead.model_validate(note.to_dict()) for note in notes],
        })

    async def snapshot(self, entity_type: EntityType, obj):
        builders = {
            EntityType.PROGRAM: self.program_snapshot,
            EntityType.COHORT: self.cohort_snapshot,
            EntityType.MENTOR: self.mentor_snapshot,
            EntityType.STUDENT: self.student_snapshot,
        }
        return await builders[entity_type](obj)

    async def read(self, entity_type: EntityType, entity_id: int, lock: bool = False):
        obj = await self.get(entity_type, entity_id, lock=lock)
        return await self.snapshot(entity_type, obj)

    # ================= LISTING =================

    async def list_entities(
        self,
        entity_type: EntityType,
        status: Optional[Any] = None,
        parent_id: Optional[int] = None
    ) -> list:
        """
        List snapshots of one entity type, optionally filtered by status and
        by parent (program for cohorts, cohort for students).
        """
        model = MODELS[entity_type]
        stmt = select(model).order_by(model.id)

        if status is not None:
            stmt = stmt.where(model.status == parse_status(entity_type, status))

        if parent_id is not None:
            if entity_type == EntityType.COHORT:
                stmt = stmt.where(Cohort.program_id == parent_id)
            elif entity_type == EntityType.STUDENT:
                stmt = stmt.where(Student.cohort_id == parent_id)
            else:
                raise ValidationError(f"{entity_type.value.lower()} listings cannot be filtered by parent")

        result = await self.db.execute(stmt)
        return [await self.snapshot(entity_type, obj) for obj in result.scalars().all()]
