"""
cohortdesk/routes/assignments.py
Confirmation step of the two-phase assignment, and link integrity report
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends

from cohortdesk.routes.dependencies import get_operations
from cohortdesk.schemas.entities import AssignmentResult, AssignmentSelection
from cohortdesk.schemas.requests import AssignmentRequest
from cohortdesk.services.core_operations import CoreOperations

router = APIRouter(prefix="/api/v1/assignments", tags=["assignments"])


@router.post("", response_model=AssignmentResult)
async def assign(body: AssignmentRequest, ops: CoreOperations = Depends(get_operations)):
    return await ops.assign_mentor_to_cohort(body.mentor_id, body.cohort_id)


@router.post("/confirm", response_model=AssignmentResult)
async def confirm_assignment(selection: AssignmentSelection, ops: CoreOperations = Depends(get_operations)):
    """
    Confirm a selection returned by .../mentors/select or .../cohorts/select.
    Guards run again here; the selection's own eligibility is advisory.
    """
    return await ops.confirm_assignment(selection)


@router.get("/integrity")
async def link_integrity(ops: CoreOperations = Depends(get_operations)) -> Dict[str, Any]:
    return await ops.verify_link_integrity()
