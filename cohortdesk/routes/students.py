"""
cohortdesk/routes/students.py
Student enrollment, lifecycle, progress, payment and notes
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from cohortdesk.orm.audit_log import EntityType
from cohortdesk.routes.dependencies import get_operations
from cohortdesk.schemas.entities import AuditEntryRead, DeleteResult, NoteRead, StudentRead
from cohortdesk.schemas.requests import (
    NoteCreate,
    PaymentStatusUpdate,
    ProgressUpdate,
    StatusUpdate,
    StudentCreate,
    StudentMentorUpdate,
    StudentTransfer,
)
from cohortdesk.services.core_operations import CoreOperations

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.post("", response_model=StudentRead, status_code=201)
async def create_student(data: StudentCreate, ops: CoreOperations = Depends(get_operations)):
    return await ops.create_student(data)


@router.get("", response_model=List[StudentRead])
async def list_students(
    status: Optional[str] = Query(None, description="INVITED | ACTIVE | FLAGGED | DROPPED | COMPLETED"),
    cohort_id: Optional[int] = Query(None, gt=0),
    ops: CoreOperations = Depends(get_operations)
):
    return await ops.list_entities(EntityType.STUDENT, status=status, parent_id=cohort_id)


@router.get("/{student_id}", response_model=StudentRead)
async def get_student(student_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.get_entity(EntityType.STUDENT, student_id)


@router.patch("/{student_id}/status", response_model=StudentRead)
async def update_student_status(
    student_id: int,
    body: StatusUpdate,
    ops: CoreOperations = Depends(get_operations)
):
    """
    FLAGGED and DROPPED accept an optional {"reason": "..."}. With
    COHORTDESK_REQUIRE_DROP_CONFIRMATION on, DROPPED also needs
    {"confirmed": true}.
    """
    return await ops.update_status(EntityType.STUDENT, student_id, body.status, body.metadata)


@router.put("/{student_id}/mentor", response_model=StudentRead)
async def set_student_mentor(
    student_id: int,
    body: StudentMentorUpdate,
    ops: CoreOperations = Depends(get_operations)
):
    return await ops.assign_student_mentor(student_id, body.mentor_id)


@router.post("/{student_id}/transfer", response_model=StudentRead)
async def transfer_student(
    student_id: int,
    body: StudentTransfer,
    ops: CoreOperations = Depends(get_operations)
):
    return await ops.transfer_student(student_id, body.cohort_id)


@router.patch("/{student_id}/progress", response_model=StudentRead)
async def record_progress(
    student_id: int,
    body: ProgressUpdate,
    ops: CoreOperations = Depends(get_operations)
):
    return await ops.record_student_progress(student_id, body.progress)


@router.patch("/{student_id}/payment", response_model=StudentRead)
async def update_payment(
    student_id: int,
    body: PaymentStatusUpdate,
    ops: CoreOperations = Depends(get_operations)
):
    return await ops.update_payment_status(student_id, body.payment_status)


@router.post("/{student_id}/notes", response_model=NoteRead, status_code=201)
async def add_note(student_id: int, body: NoteCreate, ops: CoreOperations = Depends(get_operations)):
    return await ops.add_student_note(student_id, body.author, body.content, body.author_role)


@router.get("/{student_id}/notes", response_model=List[NoteRead])
async def list_notes(student_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.list_student_notes(student_id)


@router.delete("/{student_id}", response_model=DeleteResult)
async def delete_student(student_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.delete_entity(EntityType.STUDENT, student_id)


@router.get("/{student_id}/audit", response_model=List[AuditEntryRead])
async def student_audit_trail(student_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.audit_trail(EntityType.STUDENT, student_id)
