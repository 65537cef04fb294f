from datetime import date, datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, Index
from sqlalchemy.sql import func
from marketing_api.database import Base


BASE_RECORD_KIND = "METADATA"


class Contact(Base):
    """Marketing contact.

    Only rows whose ``record_kind`` is ``METADATA`` are base contact
    records; other kinds (activity, events) share the table and are never
    segmented.
    """

    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, index=True)
    record_kind = Column(String(20), nullable=False, default=BASE_RECORD_KIND)

    email = Column(String(255), nullable=False, unique=True, index=True)
    phone = Column(String(30))
    full_name = Column(String(200))
    first_name = Column(String(100))
    last_name = Column(String(100))
    source = Column(String(100))

    lifecycle_stage = Column(String(20))  # customer, subscriber, lead
    status = Column(String(20))  # active, inactive, bounced, unsubscribed, complained
    lead_score = Column(Integer)

    tags = Column(JSON)
    # {"current_balance", "lifetime_earned", "expiry_date", "last_transaction_date"}
    cashback_info = Column(JSON)
    custom_fields = Column(JSON)

    opt_in_email = Column(Boolean)
    opt_in_sms = Column(Boolean)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index("ix_contacts_record_kind_id", "record_kind", "id"),
    )

    RECORD_FIELDS = (
        "email", "phone", "full_name", "first_name", "last_name", "source",
        "lifecycle_stage", "status", "lead_score", "tags", "cashback_info",
        "custom_fields", "opt_in_email", "opt_in_sms", "created_at", "updated_at",
    )

    def to_record(self) -> dict:
        """Plain dict view used by the segment evaluator.

        Unset columns are left out entirely so that a missing attribute stays
        missing instead of turning into ``None``.
        """
        record = {}
        for name in self.RECORD_FIELDS:
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            record[name] = value
        return record

    def __repr__(self):
        return f"<Contact id={self.id} email='{self.email}'>"
