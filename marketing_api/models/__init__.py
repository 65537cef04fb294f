from marketing_api.models.contact import Contact, BASE_RECORD_KIND
from marketing_api.models.segment import Segment, SegmentMember

__all__ = [
    "Contact",
    "BASE_RECORD_KIND",
    "Segment",
    "SegmentMember",
]
