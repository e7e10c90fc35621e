"""
Core Operations

The operation set a frontend or API handler calls. Each method validates
its input (ValidationError), then delegates to the service that owns the
rule; guards raise GuardError, and every write runs in one store
transaction.

Usage:
    ops = CoreOperations(db, actor="admin@example.com")
    cohort = await ops.create_cohort({...})
    result = await ops.assign_mentor_to_cohort(mentor_id, cohort.id)
"""
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from cohortdesk.config.feature_flags import FeatureFlags
from cohortdesk.errors import ValidationError
from cohortdesk.orm.audit_log import EntityType
from cohortdesk.schemas.entities import (
    AssignmentResult,
    AssignmentSelection,
    AuditEntryRead,
    CohortRead,
    DeleteResult,
    MentorRead,
    NoteRead,
    ProgramRead,
    StudentRead,
)
from cohortdesk.schemas.requests import (
    CohortCreate,
    MentorAvailabilityUpdate,
    MentorCapacityUpdate,
    MentorCreate,
    NoteCreate,
    PaymentStatusUpdate,
    ProgramCreate,
    ProgressUpdate,
    StudentCreate,
)
from cohortdesk.services.assignment_workflow import AssignmentWorkflow
from cohortdesk.services.audit_service import AuditService
from cohortdesk.services.enrollment_service import EnrollmentService
from cohortdesk.services.entity_store import EntityStore, parse_entity_type
from cohortdesk.services.lifecycle_service import LifecycleService
from cohortdesk.services.relationship_engine import RelationshipEngine

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_input(model: Type[ModelT], data: Any) -> ModelT:
    """Coerce a dict (or an already-built model) into model, or raise ValidationError."""
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump()
    if not isinstance(data, dict):
        raise ValidationError(f"Expected an object for {model.__name__}")
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        logger.info(f"[VALIDATION] {model.__name__}: {e.error_count()} errors")
        raise ValidationError.from_pydantic(e) from e


class CoreOperations:

    def __init__(
        self,
        db: AsyncSession,
        flags: Optional[FeatureFlags] = None,
        actor: Optional[str] = None
    ):
        self.flags = flags or FeatureFlags()
        self.store = EntityStore(db)
        self.audit = AuditService(db, actor)
        self.relationships = RelationshipEngine(self.store, self.audit)
        self.lifecycle = LifecycleService(self.store, self.relationships, self.audit, self.flags)
        self.assignments = AssignmentWorkflow(self.store, self.relationships)
        self.enrollment = EnrollmentService(self.store, self.audit, self.flags)

    # ================= CREATE =================

    async def create_program(self, data: Any) -> ProgramRead:
        return await self.lifecycle.create_program(validate_input(ProgramCreate, data))

    async def create_cohort(self, data: Any) -> CohortRead:
        return await self.lifecycle.create_cohort(validate_input(CohortCreate, data))

    async def create_mentor(self, data: Any) -> MentorRead:
        return await self.lifecycle.create_mentor(validate_input(MentorCreate, data))

    async def create_student(self, data: Any) -> StudentRead:
        return await self.enrollment.create_student(validate_input(StudentCreate, data))

    # ================= READ =================

    async def get_entity(self, entity_type: Any, entity_id: int):
        return await self.store.read(parse_entity_type(entity_type), entity_id)

    async def list_entities(self, entity_type: Any, status: Any = None, parent_id: Optional[int] = None) -> list:
        return await self.store.list_entities(parse_entity_type(entity_type), status=status, parent_id=parent_id)

    async def students_in_cohort(self, cohort_id: int) -> List[StudentRead]:
        return await self.enrollment.roster(cohort_id)

    async def audit_trail(self, entity_type: Any, entity_id: int, limit: int = 100) -> List[AuditEntryRead]:
        return await self.audit.trail(parse_entity_type(entity_type), entity_id, limit)

    async def verify_link_integrity(self) -> Dict[str, Any]:
        return await self.relationships.verify_link_integrity()

    # ================= STATUS =================

    async def update_status(
        self,
        entity_type: Any,
        entity_id: int,
        new_status: Any,
        metadata: Optional[Dict[str, Any]] = None
    ):
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationError("metadata must be an object")
        return await self.lifecycle.transition(parse_entity_type(entity_type), entity_id, new_status, metadata)

    async def archive(self, entity_type: Any, entity_id: int):
        entity_type = parse_entity_type(entity_type)
        if entity_type == EntityType.PROGRAM:
            return await self.lifecycle.archive_program(entity_id)
        if entity_type == EntityType.COHORT:
            return await self.lifecycle.archive_cohort(entity_id)
        raise ValidationError(f"{entity_type.value.lower()} records cannot be archived")

    async def restore(self, entity_type: Any, entity_id: int):
        entity_type = parse_entity_type(entity_type)
        if entity_type == EntityType.PROGRAM:
            return await self.lifecycle.restore_program(entity_id)
        if entity_type == EntityType.COHORT:
            return await self.lifecycle.restore_cohort(entity_id)
        raise ValidationError(f"{entity_type.value.lower()} records cannot be restored")

    async def duplicate_program(self, program_id: int) -> ProgramRead:
        return await self.lifecycle.duplicate_program(program_id)

    async def duplicate_cohort(self, cohort_id: int) -> CohortRead:
        return await self.lifecycle.duplicate_cohort(cohort_id)

    # ================= ASSIGNMENT =================

    async def assign_mentor_to_cohort(self, mentor_id: int, cohort_id: int) -> AssignmentResult:
        return await self.assignments.assign(mentor_id, cohort_id)

    async def remove_mentor_from_cohort(self, mentor_id: int, cohort_id: int) -> AssignmentResult:
        return await self.assignments.remove(mentor_id, cohort_id)

    async def select_cohort_for_mentor(self, mentor_id: int, cohort_id: int) -> AssignmentSelection:
        return await self.assignments.select_cohort_for_mentor(mentor_id, cohort_id)

    async def select_mentor_for_cohort(self, cohort_id: int, mentor_id: int) -> AssignmentSelection:
        return await self.assignments.select_mentor_for_cohort(cohort_id, mentor_id)

    async def confirm_assignment(self, selection: Any) -> AssignmentResult:
        return await self.assignments.confirm(validate_input(AssignmentSelection, selection))

    async def list_eligible_mentors_for_cohort(self, cohort_id: int) -> List[MentorRead]:
        return await self.assignments.eligible_mentors_for_cohort(cohort_id)

    async def list_eligible_cohorts_for_mentor(self, mentor_id: int) -> List[CohortRead]:
        return await self.assignments.eligible_cohorts_for_mentor(mentor_id)

    # ================= MENTOR SETTINGS =================

    async def update_mentor_capacity(self, mentor_id: int, max_cohorts: Any) -> MentorRead:
        data = validate_input(MentorCapacityUpdate, {"max_cohorts": max_cohorts})
        return await self.lifecycle.update_mentor_capacity(mentor_id, data.max_cohorts)

    async def update_mentor_availability(self, mentor_id: int, availability: Any) -> MentorRead:
        data = validate_input(MentorAvailabilityUpdate, {"availability_status": availability})
        return await self.lifecycle.update_mentor_availability(mentor_id, data.availability_status)

    # ================= STUDENTS =================

    async def assign_student_mentor(self, student_id: int, mentor_id: Optional[int]) -> StudentRead:
        return await self.enrollment.assign_student_mentor(student_id, mentor_id)

    async def transfer_student(self, student_id: int, cohort_id: int) -> StudentRead:
        return await self.enrollment.transfer_student(student_id, cohort_id)

    async def record_student_progress(self, student_id: int, progress: Any) -> StudentRead:
        data = validate_input(ProgressUpdate, {"progress": progress})
        return await self.enrollment.record_progress(student_id, data.progress)

    async def update_payment_status(self, student_id: int, payment_status: Any) -> StudentRead:
        data = validate_input(PaymentStatusUpdate, {"payment_status": payment_status})
        return await self.enrollment.update_payment_status(student_id, data.payment_status)

    async def add_student_note(
        self,
        student_id: int,
        author: str,
        content: str,
        author_role: Any = "ADMIN"
    ) -> NoteRead:
        data = validate_input(NoteCreate, {"author": author, "content": content, "author_role": author_role})
        return await self.enrollment.add_note(student_id, data)

    async def list_student_notes(self, student_id: int) -> List[NoteRead]:
        return await self.enrollment.list_notes(student_id)

    # ================= DELETE =================

    async def delete_entity(self, entity_type: Any, entity_id: int) -> DeleteResult:
        return await self.lifecycle.delete_entity(parse_entity_type(entity_type), entity_id)
