"""
Segment Service

Segment CRUD, evaluation and email resolution. Dynamic segments are
evaluated on demand by scanning contacts; static segments delegate to the
membership store.

``contact_count`` is a snapshot: it changes on member mutations and on
explicit evaluation, never when the underlying contacts change.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from marketing_api.config import Settings
from marketing_api.exceptions import BusinessRuleError, ConflictError, NotFoundError, RuleValidationError
from marketing_api.models.segment import Segment
from marketing_api.schemas.segment import (
    SegmentCreate,
    SegmentRuleGroup,
    SegmentType,
    SegmentUpdate,
)
from marketing_api.services.segmentation.batch import ScanResult, evaluate_rules
from marketing_api.services.segmentation.contact_source import ContactSource, SqlContactSource
from marketing_api.services.segmentation.membership import SegmentLockRegistry, StaticMembershipStore
from marketing_api.services.segmentation.validator import ensure_valid_rules

logger = logging.getLogger(__name__)


@dataclass
class SegmentEvaluationResult:
    """Outcome of an explicit segment evaluation."""

    segment: Segment
    emails: List[str]
    execution_time_ms: float


@dataclass
class SegmentPreviewResult:
    total_matches: int
    sample_emails: List[str]
    execution_time_ms: float


def load_rules(raw: Optional[dict]) -> Optional[SegmentRuleGroup]:
    """Rebuild the rule tree stored on a segment row."""
    if not raw:
        return None
    return SegmentRuleGroup.model_validate(raw)


def dump_rules(rules: Optional[SegmentRuleGroup]) -> Optional[dict]:
    if rules is None:
        return None
    return rules.model_dump(mode="json")


class SegmentService:
    """Segment management on top of an AsyncSession."""

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        locks: Optional[SegmentLockRegistry] = None,
        contact_source: Optional[ContactSource] = None,
    ):
        self.db = db
        self.settings = settings
        self.contacts = contact_source or SqlContactSource(db)
        self.members = StaticMembershipStore(db, settings, locks or SegmentLockRegistry())
        self.locks = self.members.locks

    # =========================================================================
    # CRUD
    # =========================================================================

    async def list_segments(
        self,
        segment_type: Optional[SegmentType] = None,
        search: Optional[str] = None,
    ) -> List[Segment]:
        """Segments, most recently updated first."""
        query = select(Segment)
        if segment_type:
            query = query.where(Segment.segment_type == SegmentType(segment_type).value)
        if search:
            query = query.where(Segment.name.ilike(f"%{search}%"))
        query = query.order_by(Segment.updated_at.desc(), Segment.name)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_segment(self, segment_id: str) -> Optional[Segment]:
        result = await self.db.execute(select(Segment).where(Segment.id == segment_id))
        return result.scalar_one_or_none()

    async def get_segment_or_404(self, segment_id: str) -> Segment:
        segment = await self.get_segment(segment_id)
        if not segment:
            raise NotFoundError("Segment", segment_id)
        return segment

    async def create_segment(self, data: SegmentCreate) -> Segment:
        await self._ensure_unique_name(data.name)
        self._check_rules(data.segment_type, data.rules)

        segment = Segment(
            name=data.name,
            description=data.description,
            segment_type=data.segment_type.value,
            rules=dump_rules(data.rules) if data.segment_type == SegmentType.DYNAMIC else None,
            contact_count=0,
        )
        self.db.add(segment)
        await self.db.commit()
        await self.db.refresh(segment)

        logger.info("Created %s segment %s (%s)", segment.segment_type, segment.id, segment.name)
        return segment

    async def update_segment(self, segment_id: str, data: SegmentUpdate) -> Segment:
        segment = await self.get_segment_or_404(segment_id)
        update_data = data.model_dump(exclude_unset=True)

        if "name" in update_data and update_data["name"] != segment.name:
            await self._ensure_unique_name(update_data["name"])

        segment_type = SegmentType(update_data.get("segment_type") or segment.segment_type)
        rules = data.rules if "rules" in update_data else load_rules(segment.rules)
        if "rules" in update_data or "segment_type" in update_data:
            self._check_rules(segment_type, rules)

        if "name" in update_data:
            segment.name = update_data["name"]
        if "description" in update_data:
            segment.description = update_data["description"] or ""
        if "segment_type" in update_data and segment_type.value != segment.segment_type:
            # The cached count belonged to the old kind of membership
            if segment.segment_type == SegmentType.STATIC.value:
                await self.members.remove_all(segment.id)
            segment.segment_type = segment_type.value
            segment.contact_count = 0
            segment.last_evaluated_at = None
        if "rules" in update_data or "segment_type" in update_data:
            segment.rules = dump_rules(rules) if segment_type == SegmentType.DYNAMIC else None
        segment.updated_at = datetime.now(timezone.utc)

        await self.db.commit()
        await self.db.refresh(segment)
        return segment

    async def delete_segment(self, segment_id: str) -> None:
        segment = await self.get_segment_or_404(segment_id)
        async with self.locks.lock_for(segment_id):
            await self.members.remove_all(segment_id)
            await self.db.delete(segment)
            await self.db.commit()
        self.locks.discard(segment_id)
        logger.info("Deleted segment %s", segment_id)

    async def _ensure_unique_name(self, name: str) -> None:
        existing = await self.db.execute(
            select(func.count()).select_from(Segment).where(Segment.name == name)
        )
        if existing.scalar():
            raise ConflictError("Segment with this name already exists")

    @staticmethod
    def _check_rules(segment_type: SegmentType, rules: Optional[SegmentRuleGroup]) -> None:
        if segment_type != SegmentType.DYNAMIC:
            return
        if rules is None:
            raise RuleValidationError([
                {"node_id": "", "path": "rules", "message": "Dynamic segments require rules", "field": ""}
            ])
        ensure_valid_rules(rules)

    # =========================================================================
    # STATIC MEMBERS
    # =========================================================================

    async def get_static_segment(self, segment_id: str) -> Segment:
        segment = await self.get_segment_or_404(segment_id)
        if segment.segment_type != SegmentType.STATIC.value:
            raise BusinessRuleError("Members can only be managed on static segments")
        return segment

    async def add_members(self, segment_id: str, emails: List[str]) -> Segment:
        segment = await self.get_static_segment(segment_id)
        await self.members.add_members(segment, emails)
        await self.db.refresh(segment)
        return segment

    async def remove_members(self, segment_id: str, emails: List[str]) -> Segment:
        segment = await self.get_static_segment(segment_id)
        await self.members.remove_members(segment, emails)
        await self.db.refresh(segment)
        return segment

    async def list_members(self, segment_id: str) -> List[str]:
        await self.get_static_segment(segment_id)
        return await self.members.list_members(segment_id)

    # =========================================================================
    # EVALUATION
    # =========================================================================

    async def resolve(self, segment: Segment) -> List[str]:
        """Member emails of a segment: stored list for static, rule scan for dynamic."""
        if segment.segment_type == SegmentType.STATIC.value:
            return await self.members.list_members(segment.id)

        rules = load_rules(segment.rules)
        if rules is None:
            return []
        result = await self._scan(rules)
        return result.emails

    async def evaluate_segment(self, segment_id: str) -> SegmentEvaluationResult:
        """Resolve a segment and refresh its cached count."""
        start = time.monotonic()
        segment = await self.get_segment_or_404(segment_id)

        async with self.locks.lock_for(segment_id):
            emails = await self.resolve(segment)
            segment.contact_count = len(emails)
            segment.last_evaluated_at = datetime.now(timezone.utc)
            await self.db.commit()
        await self.db.refresh(segment)

        execution_time = (time.monotonic() - start) * 1000
        logger.info(
            "Evaluated segment %s: %d contacts (%.0fms)", segment_id, len(emails), execution_time
        )
        return SegmentEvaluationResult(segment=segment, emails=emails, execution_time_ms=execution_time)

    async def preview_rules(
        self, rules: SegmentRuleGroup, sample_size: Optional[int] = None
    ) -> SegmentPreviewResult:
        """Evaluate unsaved rules; nothing is persisted."""
        ensure_valid_rules(rules)
        result = await self._scan(rules)
        size = sample_size or self.settings.PREVIEW_SAMPLE_SIZE
        return SegmentPreviewResult(
            total_matches=len(result.emails),
            sample_emails=result.emails[:size],
            execution_time_ms=result.execution_time_ms,
        )

    async def _scan(self, rules: SegmentRuleGroup) -> ScanResult:
        return await evaluate_rules(
            rules,
            self.contacts,
            page_size=self.settings.CONTACT_PAGE_SIZE,
            timeout=self.settings.SEGMENT_EVALUATION_TIMEOUT_SECONDS,
        )
