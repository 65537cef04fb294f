from marketing_api.schemas.segment import (
    ConditionOperator,
    FieldType,
    GroupOperator,
    SegmentCondition,
    SegmentRuleGroup,
    SegmentType,
    SegmentCreate,
    SegmentUpdate,
    SegmentResponse,
    SegmentListResponse,
)

__all__ = [
    "ConditionOperator",
    "FieldType",
    "GroupOperator",
    "SegmentCondition",
    "SegmentRuleGroup",
    "SegmentType",
    "SegmentCreate",
    "SegmentUpdate",
    "SegmentResponse",
    "SegmentListResponse",
]
