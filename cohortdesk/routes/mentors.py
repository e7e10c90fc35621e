"""
cohortdesk/routes/mentors.py
Mentor lifecycle, settings and mentor-initiated cohort assignment
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
)
from cohortdesk.schemas.requests import (
    MentorAvailabilityUpdate,
    MentorCapacityUpdate,
    MentorCreate,
    StatusUpdate,
)
from cohortdesk.services.core_operations import CoreOperations

router = APIRouter(prefix="/api/v1/mentors", tags=["mentors"])


class CohortPick(BaseModel):
    cohort_id: int = Field(..., gt=0)


@router.post("", response_model=MentorRead, status_code=201)
async def create_mentor(data: MentorCreate, ops: CoreOperations = Depends(get_operations)):
    """Create a mentor; cohort_ids, if given, are assigned in the same transaction."""
    return await ops.create_mentor(data)


@router.get("", response_model=List[MentorRead])
async def list_mentors(
    status: Optional[str] = Query(None, description="ACTIVE | INACTIVE"),
    ops: CoreOperations = Depends(get_operations)
):
    return await ops.list_entities(EntityType.MENTOR, status=status)


@router.get("/{mentor_id}", response_model=MentorRead)
async def get_mentor(mentor_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.get_entity(EntityType.MENTOR, mentor_id)


@router.patch("/{mentor_id}/status", response_model=MentorRead)
async def update_mentor_status(
    mentor_id: int,
    body: StatusUpdate,
    ops: CoreOperations = Depends(get_operations)
):
    """INACTIVE removes the mentor from every cohort."""
    return await ops.update_status(EntityType.MENTOR, mentor_id, body.status, body.metadata)


@router.patch("/{mentor_id}/capacity", response_model=MentorRead)
async def update_mentor_capacity(
    mentor_id: int,
    body: MentorCapacityUpdate,
    ops: CoreOperations = Depends(get_operations)
):
    return await ops.update_mentor_capacity(mentor_id, body.max_cohorts)


@router.patch("/{mentor_id}/availability", response_model=MentorRead)
async def update_mentor_availability(
    mentor_id: int,
    body: MentorAvailabilityUpdate,
    ops: CoreOperations = Depends(get_operations)
):
    return await ops.update_mentor_availability(mentor_id, body.availability_status)


@router.delete("/{mentor_id}", response_model=DeleteResult)
async def delete_mentor(mentor_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.delete_entity(EntityType.MENTOR, mentor_id)


# ============================================================================
# COHORT ASSIGNMENT (mentor-initiated)
# ============================================================================

@router.get("/{mentor_id}/eligible-cohorts", response_model=List[CohortRead])
async def eligible_cohorts(mentor_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.list_eligible_cohorts_for_mentor(mentor_id)


@router.post("/{mentor_id}/cohorts/select", response_model=AssignmentSelection)
async def select_cohort(mentor_id: int, body: CohortPick, ops: CoreOperations = Depends(get_operations)):
    return await ops.select_cohort_for_mentor(mentor_id, body.cohort_id)


@router.post("/{mentor_id}/cohorts/{cohort_id}", response_model=AssignmentResult)
async def assign_cohort(mentor_id: int, cohort_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.assign_mentor_to_cohort(mentor_id, cohort_id)


@router.delete("/{mentor_id}/cohorts/{cohort_id}", response_model=AssignmentResult)
async def remove_cohort(mentor_id: int, cohort_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.remove_mentor_from_cohort(mentor_id, cohort_id)


@router.get("/{mentor_id}/audit", response_model=List[AuditEntryRead])
async def mentor_audit_trail(mentor_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.audit_trail(EntityType.MENTOR, mentor_id)
