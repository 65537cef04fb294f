"""Tests for batch evaluation over paginated contact sources."""

import asyncio
from datetime import datetime, timezone

import pytest

from marketing_api.exceptions import ContactSourceError, SegmentEvaluationTimeout
from marketing_api.schemas.segment import ConditionOperator as Op, SegmentCondition, SegmentRuleGroup
from marketing_api.services.segmentation.batch import evaluate_rules, scan_contacts
from marketing_api.services.segmentation.contact_source import (
    ContactPage,
    InMemoryContactSource,
    decode_cursor,
    encode_cursor,
)
from tests.factories import ContactFactory, InactiveContactFactory


def active_rules() -> SegmentRuleGroup:
    return SegmentRuleGroup(conditions=[SegmentCondition(field="status", operator=Op.EQUALS, value="active")])


class FailingSource:
    """Serves one page, then fails."""

    def __init__(self, records):
        self.records = records
        self.calls = 0

    async def fetch_page(self, cursor, limit):
        self.calls += 1
        if cursor:
            raise ContactSourceError("connection reset")
        return ContactPage(records=self.records[:limit], next_cursor="next")


class SlowSource:
    """Never runs out of pages."""

    async def fetch_page(self, cursor, limit):
        await asyncio.sleep(0.05)
        return ContactPage(records=[ContactFactory()], next_cursor="more")


class TimingOutSource:
    """Its own client gives up on every request."""

    async def fetch_page(self, cursor, limit):
        raise asyncio.TimeoutError()


class TestScanContacts:
    @pytest.mark.asyncio
    async def test_walks_every_page_in_order(self):
        contacts = ContactFactory.create_batch(5)
        source = InMemoryContactSource(contacts)

        result = await scan_contacts(source, lambda record: True, page_size=2)

        assert result.emails == [c["email"] for c in contacts]
        assert result.pages_scanned == 3
        assert result.contacts_scanned == 5
        assert source.pages_served == 3

    @pytest.mark.asyncio
    async def test_empty_source(self):
        result = await scan_contacts(InMemoryContactSource([]), lambda record: True, page_size=10)
        assert result.emails == []
        assert result.pages_scanned == 1

    @pytest.mark.asyncio
    async def test_records_without_email_are_skipped(self):
        contacts = [ContactFactory(), ContactFactory(email=None), ContactFactory()]
        contacts[1].pop("email")
        result = await scan_contacts(InMemoryContactSource(contacts), lambda record: True, page_size=10)
        assert result.emails == [contacts[0]["email"], contacts[2]["email"]]
        assert result.contacts_scanned == 3

    @pytest.mark.asyncio
    async def test_fetch_failure_fails_the_whole_scan(self):
        source = FailingSource(ContactFactory.create_batch(3))
        with pytest.raises(ContactSourceError):
            await scan_contacts(source, lambda record: True, page_size=2)
        assert source.calls == 2

    @pytest.mark.asyncio
    async def test_timeout(self):
        with pytest.raises(SegmentEvaluationTimeout) as exc_info:
            await scan_contacts(SlowSource(), lambda record: True, page_size=1, timeout=0.2)
        assert exc_info.value.status_code == 504
        assert exc_info.value.pages_scanned >= 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("timeout", [None, 10])
    async def test_source_timeout_is_a_source_error(self, timeout):
        with pytest.raises(ContactSourceError) as exc_info:
            await scan_contacts(TimingOutSource(), lambda record: True, page_size=1, timeout=timeout)
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        task = asyncio.create_task(scan_contacts(SlowSource(), lambda record: True, page_size=1))
        await asyncio.sleep(0.1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


class TestEvaluateRules:
    @pytest.mark.asyncio
    async def test_matching_emails(self):
        active = ContactFactory.create_batch(3)
        inactive = InactiveContactFactory.create_batch(2)
        contacts = [active[0], inactive[0], active[1], inactive[1], active[2]]

        result = await evaluate_rules(active_rules(), InMemoryContactSource(contacts), page_size=2)

        assert result.emails == [c["email"] for c in active]

    @pytest.mark.asyncio
    async def test_page_size_does_not_change_the_result(self):
        contacts = ContactFactory.create_batch(4) + InactiveContactFactory.create_batch(3)
        rules = active_rules()

        results = [
            (await evaluate_rules(rules, InMemoryContactSource(contacts), page_size=size)).emails
            for size in (1, 3, 100)
        ]
        assert results[0] == results[1] == results[2]

    @pytest.mark.asyncio
    async def test_now_is_fixed_for_the_whole_scan(self):
        now = datetime(2026, 6, 15, tzinfo=timezone.utc)
        rules = SegmentRuleGroup(
            conditions=[SegmentCondition(field="created_at", operator=Op.IN_LAST_DAYS, value=7)]
        )
        contacts = [
            ContactFactory(created_at="2026-06-10T00:00:00Z"),
            ContactFactory(created_at="2026-05-01T00:00:00Z"),
        ]
        result = await evaluate_rules(rules, InMemoryContactSource(contacts), page_size=1, now=now)
        assert result.emails == [contacts[0]["email"]]


class TestCursor:
    def test_round_trip(self):
        assert decode_cursor(encode_cursor(42)) == 42

    @pytest.mark.parametrize("cursor", ["not-base64!", "e30=", "eyJhZnRlciI6ICJ4In0="])
    def test_invalid_cursor(self, cursor):
        with pytest.raises(ValueError):
            decode_cursor(cursor)
