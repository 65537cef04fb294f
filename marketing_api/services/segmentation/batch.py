"""
Batch segment evaluation.

Full scan: every base contact is fetched page by page and classified, so
cost grows with contacts × rule tree size. There is no index to narrow the
scan; the optional timeout bounds it instead.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from marketing_api.exceptions import ContactSourceError, SegmentEvaluationTimeout
from marketing_api.schemas.segment import SegmentRuleGroup
from marketing_api.services.segmentation.contact_source import ContactRecord, ContactSource
from marketing_api.services.segmentation.evaluator import matches_rule_group

logger = logging.getLogger(__name__)

ContactPredicate = Callable[[ContactRecord], bool]


@dataclass
class ScanResult:
    """Emails of matching contacts plus scan statistics."""

    emails: List[str] = field(default_factory=list)
    contacts_scanned: int = 0
    pages_scanned: int = 0
    execution_time_ms: float = 0


async def scan_contacts(
    source: ContactSource,
    predicate: ContactPredicate,
    page_size: int,
    timeout: Optional[float] = None,
) -> ScanResult:
    """
    Walk every page of ``source`` and collect emails of records matching ``predicate``.

    Pages are fetched one after another. Any fetch error propagates and no
    partial result is returned.

    Raises:
        SegmentEvaluationTimeout: the scan ran longer than ``timeout`` seconds
    """
    result = ScanResult()
    start = time.monotonic()

    async def _scan() -> None:
        cursor: Optional[str] = None
        while True:
            try:
                page = await source.fetch_page(cursor, page_size)
            except asyncio.TimeoutError as e:
                raise ContactSourceError("contact page request timed out") from e
            result.pages_scanned += 1
            for record in page.records:
                result.contacts_scanned += 1
                if not predicate(record):
                    continue
                email = record.get("email")
                if not email:
                    logger.debug("Skipping matching contact without email")
                    continue
                result.emails.append(email)
            cursor = page.next_cursor
            if not cursor:
                break

    if timeout:
        try:
            await asyncio.wait_for(_scan(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Contact scan timed out after %.1fs (%d pages, %d contacts)",
                timeout,
                result.pages_scanned,
                result.contacts_scanned,
            )
            raise SegmentEvaluationTimeout(timeout, result.pages_scanned)
    else:
        await _scan()

    result.execution_time_ms = (time.monotonic() - start) * 1000
    logger.info(
        "Scanned %d contacts in %d pages, %d matched (%.0fms)",
        result.contacts_scanned,
        result.pages_scanned,
        len(result.emails),
        result.execution_time_ms,
    )
    return result


async def evaluate_rules(
    rules: SegmentRuleGroup,
    source: ContactSource,
    page_size: int,
    timeout: Optional[float] = None,
    now: Optional[datetime] = None,
) -> ScanResult:
    """Emails of every contact in ``source`` matching ``rules``.

    ``now`` is fixed once for the whole scan so relative date operators
    see the same cutoff on every page.
    """
    now = now or datetime.now(timezone.utc)
    return await scan_contacts(
        source,
        lambda record: matches_rule_group(record, rules, now),
        page_size=page_size,
        timeout=timeout,
    )
