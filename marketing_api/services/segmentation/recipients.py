"""
Campaign recipient resolution.

Audience = (include segments ∪ tag audience) − exclude segments.

The tag audience covers active contacts that carry an email opt-in value
other than false and at least one of the requested tags (case-sensitive,
as tags are stored). Every segment is resolved through
``SegmentService.resolve``; a failure while resolving any of them fails
the whole call so that a campaign is never sent to a silently truncated list.
"""

import logging
from typing import Iterable, List, Optional

from marketing_api.services.segmentation.batch import scan_contacts
from marketing_api.services.segmentation.contact_source import ContactRecord
from marketing_api.services.segmentation.segment_service import SegmentService

logger = logging.getLogger(__name__)


def _in_tag_audience(record: ContactRecord, tags: frozenset) -> bool:
    if record.get("status") != "active":
        return False
    # an absent opt-in never qualifies
    if "opt_in_email" not in record or record["opt_in_email"] is False:
        return False
    contact_tags = record.get("tags")
    if not isinstance(contact_tags, list):
        return False
    return any(tag in tags for tag in contact_tags)


class RecipientResolver:
    """Combines segments (and optionally tags) into one deduplicated email list."""

    def __init__(self, segments: SegmentService):
        self.segments = segments

    async def emails_for_tags(self, tags: Iterable[str]) -> List[str]:
        wanted = frozenset(tags)
        result = await scan_contacts(
            self.segments.contacts,
            lambda record: _in_tag_audience(record, wanted),
            page_size=self.segments.settings.CONTACT_PAGE_SIZE,
            timeout=self.segments.settings.SEGMENT_EVALUATION_TIMEOUT_SECONDS,
        )
        return result.emails

    async def emails_for_segments(self, segment_ids: Iterable[str]) -> List[str]:
        """Union of several segments in first-seen order."""
        emails: dict = {}
        for segment_id in dict.fromkeys(segment_ids):
            segment = await self.segments.get_segment_or_404(segment_id)
            for email in await self.segments.resolve(segment):
                emails.setdefault(email, None)
        return list(emails)

    async def resolve_recipients(
        self,
        segment_ids: Iterable[str] = (),
        exclude_segment_ids: Iterable[str] = (),
        tags: Optional[Iterable[str]] = None,
    ) -> List[str]:
        included: dict = {}
        tags = list(tags or [])
        if tags:
            for email in await self.emails_for_tags(tags):
                included.setdefault(email, None)
        for email in await self.emails_for_segments(segment_ids):
            included.setdefault(email, None)

        excluded = set(await self.emails_for_segments(exclude_segment_ids))
        recipients = [email for email in included if email not in excluded]

        logger.info(
            "Resolved %d recipients (%d included, %d excluded)",
            len(recipients),
            len(included),
            len(excluded),
        )
        return recipients
