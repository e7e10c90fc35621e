"""
cohortdesk/services/audit_service.py
Append-only audit trail for store mutations.

record() adds the entry to the caller's open transaction, so an audit row
commits (or rolls back) together with the change it describes.
"""
import logging
from typing import Optional, Dict, Any, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cohortdesk.orm.audit_log import AuditLog, AuditAction, EntityType
from cohortdesk.schemas.entities import AuditEntryRead

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


class AuditService:

    def __init__(self, db: AsyncSession, actor: Optional[str] = None):
        self.db = db
        self.actor = actor or SYSTEM_ACTOR

    def record(
        self,
        action: AuditAction,
        entity_type: EntityType,
        entity_id: int,
        details: Optional[Dict[str, Any]] = None
    ) -> AuditLog:
        entry = AuditLog(
            actor=self.actor,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details or {},
        )
        self.db.add(entry)
        logger.debug(f"Audit: {action.value} on {entity_type.value} {entity_id} by {self.actor}")
        return entry

    async def trail(
        self,
        entity_type: EntityType,
        entity_id: int,
        limit: int = 100
    ) -> List[AuditEntryRead]:
        """Entries for one entity, oldest first."""
        result = await self.db.execute(
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.created_at, AuditLog.id)
            .limit(limit)
        )
        return [AuditEntryRead.model_validate(log.to_dict()) for log in result.scalars().all()]
