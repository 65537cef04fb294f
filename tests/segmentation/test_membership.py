"""Tests for static segment membership."""

import asyncio

import pytest
import pytest_asyncio

from marketing_api.models.segment import Segment
from marketing_api.schemas.segment import SegmentCreate, SegmentType
from marketing_api.services.segmentation import SegmentLockRegistry, SegmentService


@pytest_asyncio.fixture
async def static_segment(segment_service: SegmentService) -> Segment:
    return await segment_service.create_segment(
        SegmentCreate(name="Imported leads", segment_type=SegmentType.STATIC)
    )


class TestAddMembers:
    @pytest.mark.asyncio
    async def test_add_members_in_batches(self, segment_service, static_segment):
        emails = [f"lead{i}@example.com" for i in range(5)]
        count = await segment_service.members.add_members(static_segment, emails)

        assert count == 5
        assert static_segment.contact_count == 5
        assert sorted(await segment_service.members.list_members(static_segment.id)) == sorted(emails)

    @pytest.mark.asyncio
    async def test_adding_twice_is_idempotent(self, segment_service, static_segment):
        await segment_service.add_members(static_segment.id, ["ana@example.com"])
        first = await segment_service.list_members(static_segment.id)
        first_count = static_segment.contact_count

        await segment_service.add_members(static_segment.id, ["ana@example.com"])

        assert await segment_service.list_members(static_segment.id) == first
        assert static_segment.contact_count == first_count == 1

    @pytest.mark.asyncio
    async def test_readding_keeps_original_added_at(self, segment_service, static_segment):
        await segment_service.add_members(static_segment.id, ["ana@example.com"])
        [before] = await segment_service.members.list_member_rows(static_segment.id)
        added_at = before.added_at

        await segment_service.add_members(static_segment.id, ["ana@example.com", "bruno@example.com"])
        rows = await segment_service.members.list_member_rows(static_segment.id)

        assert {r.email: r.added_at for r in rows}["ana@example.com"] == added_at

    @pytest.mark.asyncio
    async def test_blank_and_repeated_emails_are_dropped(self, segment_service, static_segment):
        count = await segment_service.members.add_members(
            static_segment, [" ana@example.com", "ana@example.com", "", "  "]
        )
        assert count == 1
        assert await segment_service.members.list_members(static_segment.id) == ["ana@example.com"]

    @pytest.mark.asyncio
    async def test_concurrent_adds_are_serialised(self, segment_service, static_segment):
        members = segment_service.members
        await asyncio.gather(
            members.add_members(static_segment, ["a@example.com", "b@example.com", "c@example.com"]),
            members.add_members(static_segment, ["c@example.com", "d@example.com"]),
        )

        assert await members.count_members(static_segment.id) == 4
        assert static_segment.contact_count == 4


class TestRemoveMembers:
    @pytest.mark.asyncio
    async def test_remove_members(self, segment_service, static_segment):
        await segment_service.add_members(
            static_segment.id, ["ana@example.com", "bruno@example.com", "carla@example.com"]
        )
        segment = await segment_service.remove_members(
            static_segment.id, ["bruno@example.com", "nobody@example.com"]
        )

        assert segment.contact_count == 2
        assert await segment_service.list_members(static_segment.id) == ["ana@example.com", "carla@example.com"]

    @pytest.mark.asyncio
    async def test_remove_everything(self, segment_service, static_segment):
        emails = [f"lead{i}@example.com" for i in range(3)]
        await segment_service.add_members(static_segment.id, emails)
        segment = await segment_service.remove_members(static_segment.id, emails)
        assert segment.contact_count == 0
        assert await segment_service.list_members(static_segment.id) == []


class TestSegmentLockRegistry:
    def test_same_lock_per_segment(self):
        locks = SegmentLockRegistry()
        assert locks.lock_for("a") is locks.lock_for("a")
        assert locks.lock_for("a") is not locks.lock_for("b")

    def test_discard(self):
        locks = SegmentLockRegistry()
        first = locks.lock_for("a")
        locks.discard("a")
        assert locks.lock_for("a") is not first

    @pytest.mark.asyncio
    async def test_discard_keeps_held_lock(self):
        locks = SegmentLockRegistry()
        lock = locks.lock_for("a")
        async with lock:
            locks.discard("a")
            assert locks.lock_for("a") is lock
