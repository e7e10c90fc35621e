"""
cohortdesk/routes/programs.py
Program lifecycle API
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from cohortdesk.orm.audit_log import EntityType
from cohortdesk.routes.dependencies import get_operations
from cohortdesk.schemas.entities import AuditEntryRead, DeleteResult, ProgramRead
from cohortdesk.schemas.requests import ProgramCreate, StatusUpdate
from cohortdesk.services.core_operations import CoreOperations

router = APIRouter(prefix="/api/v1/programs", tags=["programs"])


@router.post("", response_model=ProgramRead, status_code=201)
async def create_program(data: ProgramCreate, ops: CoreOperations = Depends(get_operations)):
    return await ops.create_program(data)


@router.get("", response_model=List[ProgramRead])
async def list_programs(
    status: Optional[str] = Query(None, description="DRAFT | ACTIVE | ARCHIVED"),
    ops: CoreOperations = Depends(get_operations)
):
    return await ops.list_entities(EntityType.PROGRAM, status=status)


@router.get("/{program_id}", response_model=ProgramRead)
async def get_program(program_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.get_entity(EntityType.PROGRAM, program_id)


@router.patch("/{program_id}/status", response_model=ProgramRead)
async def update_program_status(
    program_id: int,
    body: StatusUpdate,
    ops: CoreOperations = Depends(get_operations)
):
    return await ops.update_status(EntityType.PROGRAM, program_id, body.status, body.metadata)


@router.post("/{program_id}/archive", response_model=ProgramRead)
async def archive_program(program_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.archive(EntityType.PROGRAM, program_id)


@router.post("/{program_id}/restore", response_model=ProgramRead)
async def restore_program(program_id: int, ops: CoreOperations = Depends(get_operations)):
    """Archived programs always come back as DRAFT."""
    return await ops.restore(EntityType.PROGRAM, program_id)


@router.post("/{program_id}/duplicate", response_model=ProgramRead, status_code=201)
async def duplicate_program(program_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.duplicate_program(program_id)


@router.delete("/{program_id}", response_model=DeleteResult)
async def delete_program(program_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.delete_entity(EntityType.PROGRAM, program_id)


@router.get("/{program_id}/audit", response_model=List[AuditEntryRead])
async def program_audit_trail(program_id: int, ops: CoreOperations = Depends(get_operations)):
    return await ops.audit_trail(EntityType.PROGRAM, program_id)
