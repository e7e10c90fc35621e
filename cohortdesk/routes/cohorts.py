"""
cohortdesk/routes/cohorts.py
Cohort lifecycle, roster and cohort-initiated mentor assignment
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from cohortdesk.orm.audit_log import EntityType
from cohortdesk.routes.dependencies import get_operations
from cohortdesk.schemas.entities import (
    AssignmentResult,
    AssignmentSelection,
    AuditEntryRead,
    CohortRead,
    DeleteResult,
    MentorRead,
    StudentRead,
)
from cohortdesk.schemas.requests import CohortCreate, StatusUpdate
from cohortdesk.services.core_operations import CoreOperations

router = APIRouter(prefix="/api/v1/cohorts", tags=["cohorts"])


class MentorPick(BaseModel):
    mentor_id: int = Field(..., gt=0)


@router.post("", response_model=CohortRead, status_code=201)
async def create_cohort(data: CohortCreate, ops: CoreOperations = Depends(get_operations)):
    return await ops.create_cohort(data)


@router.get("", response_model=List[CohortRead])
async def list_cohorts(
    status: Optional[str] = Query(None, description="UPCOMING | ACTIVE | COMPLETED | ARCHIVED"),
    program_id: Optional[int] = Query(None, gt=0),
    ops: CoreOperations = Depends(get_operations)
):
    return await ops.list_entities(EntityType.COHORT, status=status, parent_id=program_id)


@router.get("/{cohort_id}", response_model=CohortRead)
async def get_cohort(cohort_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.get_entity(EntityType.COHORT, cohort_id)


@router.patch("/{cohort_id}/status", response_model=CohortRead)
async def update_cohort_status(
    cohort_id: int,
    body: StatusUpdate,
    ops: CoreOperations = Depends(get_operations)
):
    return await ops.update_status(EntityType.COHORT, cohort_id, body.status, body.metadata)


@router.post("/{cohort_id}/archive", response_model=CohortRead)
async def archive_cohort(cohort_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.archive(EntityType.COHORT, cohort_id)


@router.post("/{cohort_id}/restore", response_model=CohortRead)
async def restore_cohort(cohort_id: int, ops: CoreOperations = Depends(get_operations)):
    """Return an archived cohort to the status it had before archiving."""
    return await ops.restore(EntityType.COHORT, cohort_id)


@router.post("/{cohort_id}/duplicate", response_model=CohortRead, status_code=201)
async def duplicate_cohort(cohort_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.duplicate_cohort(cohort_id)


@router.delete("/{cohort_id}", response_model=DeleteResult)
async def delete_cohort(cohort_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.delete_entity(EntityType.COHORT, cohort_id)


@router.get("/{cohort_id}/students", response_model=List[StudentRead])
async def cohort_roster(cohort_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.students_in_cohort(cohort_id)


# ============================================================================
# MENTOR ASSIGNMENT (cohort-initiated)
# ============================================================================

@router.get("/{cohort_id}/eligible-mentors", response_model=List[MentorRead])
async def eligible_mentors(cohort_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.list_eligible_mentors_for_cohort(cohort_id)


@router.post("/{cohort_id}/mentors/select", response_model=AssignmentSelection)
async def select_mentor(cohort_id: int, body: MentorPick, ops: CoreOperations = Depends(get_operations)):
    return await ops.select_mentor_for_cohort(cohort_id, body.mentor_id)


@router.post("/{cohort_id}/mentors/{mentor_id}", response_model=AssignmentResult)
async def assign_mentor(cohort_id: int, mentor_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.assign_mentor_to_cohort(mentor_id, cohort_id)


@router.delete("/{cohort_id}/mentors/{mentor_id}", response_model=AssignmentResult)
async def remove_mentor(cohort_id: int, mentor_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.remove_mentor_from_cohort(mentor_id, cohort_id)


@router.get("/{cohort_id}/audit", response_model=List[AuditEntryRead])
async def cohort_audit_trail(cohort_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.audit_trail(EntityType.COHORT, cohort_id)
