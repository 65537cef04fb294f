"""
Segment Models

- Dynamic segments: a JSON rule tree evaluated against contacts on demand
- Static segments: an explicit list of member emails
"""

import uuid

from sqlalchemy import (
    Column, Integer, String, DateTime, Text, ForeignKey, Enum as SQLEnum, JSON,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from marketing_api.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Segment(Base):
    """
    Contact segment definition.

    ``contact_count`` is a cached snapshot. It is refreshed after member
    changes and explicit evaluation only, never when contacts change.
    """
    __tablename__ = "segments"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, default="")

    segment_type = Column(
        SQLEnum('static', 'dynamic', name='segment_type_enum'),
        nullable=False,
        default='dynamic',
    )

    # Rule tree for dynamic segments, stored verbatim:
    # {
    #   "id": "root", "operator": "AND",
    #   "conditions": [{"id": "c1", "field": "lifecycle_stage", "operator": "equals", "value": "customer"}],
    #   "groups": [{"id": "g1", "operator": "OR", "conditions": [...], "groups": []}]
    # }
    rules = Column(JSON)

    contact_count = Column(Integer, nullable=False, default=0)
    last_evaluated_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    members = relationship(
        "SegmentMember",
        back_populates="segment",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Segment id={self.id} name='{self.name}' type={self.segment_type} count={self.contact_count}>"


class SegmentMember(Base):
    """Member email of a static segment, keyed by (segment, email)."""
    __tablename__ = "segment_members"

    segment_id = Column(
        String(36), ForeignKey("segments.id", ondelete="CASCADE"), primary_key=True
    )
    email = Column(String(255), primary_key=True)
    added_at = Column(DateTime(timezone=True), server_default=func.now())

    segment = relationship("Segment", back_populates="members")

    def __repr__(self):
        return f"<SegmentMember segment={self.segment_id} email='{self.email}'>"
