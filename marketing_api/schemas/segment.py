"""
Segment Schemas

The rule tree models double as the storage format: a ``SegmentRuleGroup``
is persisted as ``model_dump(mode="json")`` and reloaded with
``model_validate`` without any translation.
"""

from __future__ import annotations

import uuid
from pydantic import BaseModel, Field, ConfigDict, field_validator
from datetime import datetime
from typing import Optional, Any, Union
from enum import Enum


def _node_id() -> str:
    return str(uuid.uuid4())


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    ARRAY = "array"
    SELECT = "select"


class ConditionOperator(str, Enum):
    # String
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"
    # Number
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_OR_EQUAL = "greater_or_equal"
    LESS_OR_EQUAL = "less_or_equal"
    BETWEEN = "between"
    # Date
    BEFORE = "before"
    AFTER = "after"
    ON = "on"
    IN_LAST_DAYS = "in_last_days"
    NOT_IN_LAST_DAYS = "not_in_last_days"
    # Array
    ARRAY_CONTAINS = "array_contains"
    ARRAY_NOT_CONTAINS = "array_not_contains"
    ARRAY_CONTAINS_ALL = "array_contains_all"
    ARRAY_IS_EMPTY = "array_is_empty"
    ARRAY_IS_NOT_EMPTY = "array_is_not_empty"
    # Boolean
    IS_TRUE = "is_true"
    IS_FALSE = "is_false"
    # Select
    IN = "in"
    NOT_IN = "not_in"


class GroupOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class SegmentType(str, Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"


# Rule tree

class SegmentCondition(BaseModel):
    """Leaf condition: one field compared with one operator."""
    id: str = Field(default_factory=_node_id)
    field: str = Field(..., description="Dot path into the contact, e.g. 'cashback_info.current_balance'")
    operator: ConditionOperator
    value: Any = Field(None, description="Comparison value; a list for in/not_in/array_contains_all")
    value2: Optional[Union[str, int, float]] = Field(None, description="Upper bound for 'between'")


class SegmentRuleGroup(BaseModel):
    """AND/OR group of conditions and nested groups."""
    id: str = Field(default_factory=_node_id)
    operator: GroupOperator = GroupOperator.AND
    conditions: list[SegmentCondition] = Field(default_factory=list)
    groups: list[SegmentRuleGroup] = Field(default_factory=list)


SegmentRuleGroup.model_rebuild()


# Segment CRUD

class SegmentBase(BaseModel):
    """Base segment schema."""
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    segment_type: SegmentType = SegmentType.DYNAMIC
    rules: Optional[SegmentRuleGroup] = None


class SegmentCreate(SegmentBase):
    """Schema for creating a segment."""
    pass


class SegmentUpdate(BaseModel):
    """Schema for updating a segment."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    segment_type: Optional[SegmentType] = None
    rules: Optional[SegmentRuleGroup] = None

    @field_validator("name")
    @classmethod
    def name_not_null(cls, v: Optional[str]) -> str:
        """Omit ``name`` to keep it; an explicit null is rejected."""
        if v is None:
            raise ValueError("name cannot be null")
        return v


class SegmentResponse(SegmentBase):
    """Segment response schema."""
    id: str
    contact_count: int = 0
    last_evaluated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SegmentListResponse(BaseModel):
    """Segment list response."""
    items: list[SegmentResponse]
    total: int


# Members

class SegmentMembersRequest(BaseModel):
    """Emails to add to or remove from a static segment."""
    emails: list[str] = Field(..., min_length=1)


class SegmentMemberResponse(BaseModel):
    email: str
    added_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SegmentMembersResponse(BaseModel):
    segment_id: str
    items: list[SegmentMemberResponse]
    total: int
    contact_count: int


# Evaluation

class SegmentPreviewRequest(BaseModel):
    """Rules to preview without saving a segment."""
    rules: SegmentRuleGroup
    sample_size: Optional[int] = Field(None, ge=1, le=100)


class SegmentPreviewResponse(BaseModel):
    total_matches: int
    sample_emails: list[str]
    execution_time_ms: float


class SegmentEvaluationResponse(BaseModel):
    segment_id: str
    segment_type: SegmentType
    contact_count: int
    emails: list[str]
    execution_time_ms: float


class SegmentEmailsResponse(BaseModel):
    segment_id: str
    emails: list[str]
    total: int


class RecipientCriteria(BaseModel):
    """Campaign audience: include segments (and tags) minus exclude segments."""
    segment_ids: list[str] = Field(default_factory=list)
    exclude_segment_ids: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class RecipientsResponse(BaseModel):
    emails: list[str]
    total: int


# Field registry

class FieldOptionResponse(BaseModel):
    label: str
    value: str


class OperatorDefinitionResponse(BaseModel):
    operator: ConditionOperator
    label: str
    requires_value: bool


class FieldDefinitionResponse(BaseModel):
    key: str
    label: str
    type: FieldType
    group: str
    options: Optional[list[FieldOptionResponse]] = None
    description: Optional[str] = None
    operators: list[OperatorDefinitionResponse]


class SegmentFieldsResponse(BaseModel):
    fields: list[FieldDefinitionResponse]
