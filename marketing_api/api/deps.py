"""
FastAPI Dependencies

Provides dependency injection for database sessions, settings and the
segmentation services built on them.
"""

from typing import Annotated
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from marketing_api.database import get_db
from marketing_api.config import Settings, get_settings
from marketing_api.services.segmentation import (
    RecipientResolver,
    SegmentLockRegistry,
    SegmentService,
)


def get_segment_locks(request: Request) -> SegmentLockRegistry:
    """Application-wide lock registry created in the lifespan handler."""
    locks = getattr(request.app.state, "segment_locks", None)
    if locks is None:
        locks = request.app.state.segment_locks = SegmentLockRegistry()
    return locks


DbSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_settings)]
SegmentLocks = Annotated[SegmentLockRegistry, Depends(get_segment_locks)]


def get_segment_service(db: DbSession, settings: AppSettings, locks: SegmentLocks) -> SegmentService:
    return SegmentService(db, settings, locks=locks)


Segments = Annotated[SegmentService, Depends(get_segment_service)]


def get_recipient_resolver(segments: Segments) -> RecipientResolver:
    return RecipientResolver(segments)


Recipients = Annotated[RecipientResolver, Depends(get_recipient_resolver)]
