# Services module
from marketing_api.services.segmentation import (
    RecipientResolver,
    SegmentLockRegistry,
    SegmentService,
)

__all__ = [
    "RecipientResolver",
    "SegmentLockRegistry",
    "SegmentService",
]
