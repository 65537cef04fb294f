"""
Static segment membership.

Static segments hold an explicit set of emails, independent of any rules.
Every mutation recomputes the segment's cached ``contact_count`` from a
fresh count of its member rows. Mutations of the same segment run one at
a time under a per-segment lock so that count refreshes cannot interleave.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketing_api.config import Settings
from marketing_api.models.segment import Segment, SegmentMember

logger = logging.getLogger(__name__)


class SegmentLockRegistry:
    """One asyncio.Lock per segment id, created on first use.

    Create one registry per application and share it between services.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock_for(self, segment_id: str) -> asyncio.Lock:
        lock = self._locks.get(segment_id)
        if lock is None:
            lock = self._locks[segment_id] = asyncio.Lock()
        return lock

    def discard(self, segment_id: str) -> None:
        """Forget the lock of a deleted segment."""
        lock = self._locks.get(segment_id)
        if lock is not None and not lock.locked():
            del self._locks[segment_id]


def _unique(emails: Iterable[str]) -> List[str]:
    """Drop blanks and repeats, keeping first-seen order."""
    seen = set()
    result = []
    for email in emails:
        email = email.strip()
        if email and email not in seen:
            seen.add(email)
            result.append(email)
    return result


def _chunks(items: List[str], size: int):
    for i in range(0, len(items), size):
        yield items[i:i + size]


class StaticMembershipStore:
    """Add, remove and list member emails of static segments."""

    def __init__(self, db: AsyncSession, settings: Settings, locks: SegmentLockRegistry):
        self.db = db
        self.batch_size = settings.MEMBER_BATCH_SIZE
        self.locks = locks

    async def list_members(self, segment_id: str) -> List[str]:
        result = await self.db.execute(
            select(SegmentMember.email)
            .where(SegmentMember.segment_id == segment_id)
            .order_by(SegmentMember.added_at, SegmentMember.email)
        )
        return [row[0] for row in result.all()]

    async def list_member_rows(self, segment_id: str) -> List[SegmentMember]:
        result = await self.db.execute(
            select(SegmentMember)
            .where(SegmentMember.segment_id == segment_id)
            .order_by(SegmentMember.added_at, SegmentMember.email)
        )
        return list(result.scalars().all())

    async def add_members(self, segment: Segment, emails: Iterable[str]) -> int:
        """
        Add emails to a static segment. Already-present emails are left as they are.

        Returns:
            The refreshed contact count
        """
        wanted = _unique(emails)
        async with self.locks.lock_for(segment.id):
            added = 0
            for batch in _chunks(wanted, self.batch_size):
                existing = await self.db.execute(
                    select(SegmentMember.email).where(
                        SegmentMember.segment_id == segment.id,
                        SegmentMember.email.in_(batch),
                    )
                )
                present = {row[0] for row in existing.all()}
                new_rows = [
                    SegmentMember(
                        segment_id=segment.id,
                        email=email,
                        added_at=datetime.now(timezone.utc),
                    )
                    for email in batch
                    if email not in present
                ]
                self.db.add_all(new_rows)
                await self.db.flush()
                added += len(new_rows)

            count = await self._refresh_count(segment)
            await self.db.commit()

        logger.info("Segment %s: %d members added, %d total", segment.id, added, count)
        return count

    async def remove_members(self, segment: Segment, emails: Iterable[str]) -> int:
        """
        Remove emails from a static segment. Emails that are not members are ignored.

        Returns:
            The refreshed contact count
        """
        unwanted = _unique(emails)
        async with self.locks.lock_for(segment.id):
            removed = 0
            for batch in _chunks(unwanted, self.batch_size):
                result = await self.db.execute(
                    delete(SegmentMember).where(
                        SegmentMember.segment_id == segment.id,
                        SegmentMember.email.in_(batch),
                    )
                )
                removed += result.rowcount or 0

            count = await self._refresh_count(segment)
            await self.db.commit()

        logger.info("Segment %s: %d members removed, %d total", segment.id, removed, count)
        return count

    async def remove_all(self, segment_id: str) -> None:
        """Delete every member row of a segment; the caller commits."""
        await self.db.execute(delete(SegmentMember).where(SegmentMember.segment_id == segment_id))

    async def count_members(self, segment_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(SegmentMember).where(SegmentMember.segment_id == segment_id)
        )
        return result.scalar() or 0

    async def _refresh_count(self, segment: Segment) -> int:
        count = await self.count_members(segment.id)
        segment.contact_count = count
        segment.updated_at = datetime.now(timezone.utc)
        return count
