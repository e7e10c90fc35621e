"""
cohortdesk/routes/dependencies.py
Shared FastAPI dependencies for the resource routers
"""
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from cohortdesk.config.feature_flags import FeatureFlags, feature_flags
from cohortdesk.database import get_db
from cohortdesk.services.core_operations import CoreOperations


def get_flags() -> FeatureFlags:
    return feature_flags


async def get_operations(
    db: AsyncSession = Depends(get_db),
    flags: FeatureFlags = Depends(get_flags),
    x_actor: Optional[str] = Header(None, max_length=200),
) -> CoreOperations:
    """
    One CoreOperations per request, bound to the request's session.
    X-Actor (set by the calling frontend) is recorded on audit entries.
    """
    return CoreOperations(db, flags=flags, actor=x_actor)
