"""
Contact sources for batch segment evaluation.

A source hands out base contact records one page at a time together with
an opaque cursor for the next page. Pages must be requested in order: the
cursor of page N is needed to fetch page N+1.
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketing_api.exceptions import ContactSourceError
from marketing_api.models.contact import BASE_RECORD_KIND, Contact

logger = logging.getLogger(__name__)

ContactRecord = Dict[str, Any]


@dataclass
class ContactPage:
    """One page of contact records."""

    records: List[ContactRecord] = field(default_factory=list)
    next_cursor: Optional[str] = None  # None once the collection is exhausted


class ContactSource(Protocol):
    async def fetch_page(self, cursor: Optional[str], limit: int) -> ContactPage:
        ...


def encode_cursor(last_id: int) -> str:
    """Encode the keyset position after ``last_id``."""
    json_str = json.dumps({"after": last_id}, separators=(",", ":"))
    return base64.urlsafe_b64encode(json_str.encode()).decode()


def decode_cursor(cursor: str) -> int:
    """
    Decode a cursor produced by ``encode_cursor``.

    Raises:
        ValueError: If cursor is invalid or malformed
    """
    try:
        data = json.loads(base64.urlsafe_b64decode(cursor.encode()).decode())
        return int(data["after"])
    except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
        raise ValueError(f"Invalid cursor format: {e}")


class SqlContactSource:
    """Base contact records from the ``contacts`` table, keyset-paginated by id."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def fetch_page(self, cursor: Optional[str], limit: int) -> ContactPage:
        query = select(Contact).where(Contact.record_kind == BASE_RECORD_KIND)
        if cursor:
            query = query.where(Contact.id > decode_cursor(cursor))
        # One extra row tells whether another page exists
        query = query.order_by(Contact.id.asc()).limit(limit + 1).execution_options(populate_existing=True)

        try:
            result = await self.db.execute(query)
            contacts = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Contact page fetch failed: %s", type(e).__name__)
            raise ContactSourceError(f"failed to read contacts ({type(e).__name__})") from e

        has_more = len(contacts) > limit
        contacts = contacts[:limit]
        next_cursor = encode_cursor(contacts[-1].id) if has_more else None

        return ContactPage(
            records=[c.to_record() for c in contacts],
            next_cursor=next_cursor,
        )


class InMemoryContactSource:
    """List-backed source; the cursor is the offset of the next page."""

    def __init__(self, records: Sequence[ContactRecord]):
        self.records = list(records)
        self.pages_served = 0

    async def fetch_page(self, cursor: Optional[str], limit: int) -> ContactPage:
        start = int(cursor) if cursor else 0
        end = start + limit
        self.pages_served += 1
        return ContactPage(
            records=self.records[start:end],
            next_cursor=str(end) if end < len(self.records) else None,
        )
