"""
Segment API Endpoints

Includes:
- Field and operator catalog for the rule builder
- Standard CRUD operations for segments
- Rule preview and explicit segment evaluation
- Static segment member management
- Campaign recipient resolution
"""

from fastapi import APIRouter, status, Query
from typing import Optional

from marketing_api.api.deps import Segments, Recipients
from marketing_api.schemas.segment import (
    SegmentCreate,
    SegmentUpdate,
    SegmentResponse,
    SegmentListResponse,
    SegmentMembersRequest,
    SegmentMemberResponse,
    SegmentMembersResponse,
    SegmentPreviewRequest,
    SegmentPreviewResponse,
    SegmentEvaluationResponse,
    SegmentEmailsResponse,
    SegmentFieldsResponse,
    FieldDefinitionResponse,
    FieldOptionResponse,
    OperatorDefinitionResponse,
    RecipientCriteria,
    RecipientsResponse,
    SegmentType,
)
from marketing_api.services.segmentation.fields import (
    fields_catalog,
    no_value_operators,
    operators_for,
)

router = APIRouter()


# =============================================================================
# FIELD AND OPERATOR DEFINITIONS
# =============================================================================


@router.get("/fields", response_model=SegmentFieldsResponse)
async def get_available_fields():
    """Segmentable fields, each with the operators legal for its type."""
    no_value = no_value_operators()
    return SegmentFieldsResponse(
        fields=[
            FieldDefinitionResponse(
                key=f.key,
                label=f.label,
                type=f.type,
                group=f.group,
                options=[FieldOptionResponse(label=o.label, value=o.value) for o in f.options]
                if f.options
                else None,
                description=f.description or None,
                operators=[
                    OperatorDefinitionResponse(
                        operator=op["operator"],
                        label=op["label"],
                        requires_value=op["operator"] not in no_value,
                    )
                    for op in operators_for(f.type)
                ],
            )
            for f in fields_catalog()
        ]
    )


# =============================================================================
# PREVIEW AND RECIPIENTS
# =============================================================================


@router.post("/preview", response_model=SegmentPreviewResponse)
async def preview_segment(request: SegmentPreviewRequest, segments: Segments):
    """Count and sample the contacts matching unsaved rules."""
    preview = await segments.preview_rules(request.rules, sample_size=request.sample_size)
    return SegmentPreviewResponse(
        total_matches=preview.total_matches,
        sample_emails=preview.sample_emails,
        execution_time_ms=preview.execution_time_ms,
    )


@router.post("/recipients", response_model=RecipientsResponse)
async def resolve_recipients(criteria: RecipientCriteria, recipients: Recipients):
    """
    Resolve a campaign audience.

    Union of the included segments (and tag audience when tags are given)
    minus the union of the excluded segments.
    """
    emails = await recipients.resolve_recipients(
        segment_ids=criteria.segment_ids,
        exclude_segment_ids=criteria.exclude_segment_ids,
        tags=criteria.tags,
    )
    return RecipientsResponse(emails=emails, total=len(emails))


# =============================================================================
# STANDARD SEGMENT CRUD ENDPOINTS
# =============================================================================


@router.get("/", response_model=SegmentListResponse)
async def list_segments(
    segments: Segments,
    segment_type: Optional[SegmentType] = None,
    search: Optional[str] = Query(None, max_length=100),
):
    """List segments, most recently updated first."""
    items = await segments.list_segments(segment_type=segment_type, search=search)
    return SegmentListResponse(items=items, total=len(items))


@router.get("/{segment_id}", response_model=SegmentResponse)
async def get_segment(segment_id: str, segments: Segments):
    """Get a specific segment."""
    return await segments.get_segment_or_404(segment_id)


@router.post("/", response_model=SegmentResponse, status_code=status.HTTP_201_CREATED)
async def create_segment(data: SegmentCreate, segments: Segments):
    """Create a new segment. Dynamic segments must carry valid rules."""
    return await segments.create_segment(data)


@router.patch("/{segment_id}", response_model=SegmentResponse)
async def update_segment(segment_id: str, data: SegmentUpdate, segments: Segments):
    """Update a segment."""
    return await segments.update_segment(segment_id, data)


@router.delete("/{segment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_segment(segment_id: str, segments: Segments):
    """Delete a segment and its static members."""
    await segments.delete_segment(segment_id)


# =============================================================================
# EVALUATION
# =============================================================================


@router.post("/{segment_id}/evaluate", response_model=SegmentEvaluationResponse)
async def evaluate_segment(segment_id: str, segments: Segments):
    """Resolve a segment's emails and refresh its cached contact count."""
    result = await segments.evaluate_segment(segment_id)
    return SegmentEvaluationResponse(
        segment_id=result.segment.id,
        segment_type=result.segment.segment_type,
        contact_count=result.segment.contact_count,
        emails=result.emails,
        execution_time_ms=result.execution_time_ms,
    )


@router.get("/{segment_id}/emails", response_model=SegmentEmailsResponse)
async def get_segment_emails(segment_id: str, segments: Segments):
    """Current emails of a segment; the cached count is left untouched."""
    segment = await segments.get_segment_or_404(segment_id)
    emails = await segments.resolve(segment)
    return SegmentEmailsResponse(segment_id=segment_id, emails=emails, total=len(emails))


# =============================================================================
# STATIC SEGMENT MEMBERS
# =============================================================================


async def _members_response(segments: Segments, segment_id: str) -> SegmentMembersResponse:
    segment = await segments.get_static_segment(segment_id)
    rows = await segments.members.list_member_rows(segment_id)
    return SegmentMembersResponse(
        segment_id=segment_id,
        items=[SegmentMemberResponse.model_validate(row) for row in rows],
        total=len(rows),
        contact_count=segment.contact_count,
    )


@router.get("/{segment_id}/members", response_model=SegmentMembersResponse)
async def list_segment_members(segment_id: str, segments: Segments):
    """List members of a static segment."""
    return await _members_response(segments, segment_id)


@router.post("/{segment_id}/members", response_model=SegmentMembersResponse)
async def add_segment_members(segment_id: str, request: SegmentMembersRequest, segments: Segments):
    """Add emails to a static segment. Existing members are left as they are."""
    await segments.add_members(segment_id, request.emails)
    return await _members_response(segments, segment_id)


@router.post("/{segment_id}/members/remove", response_model=SegmentMembersResponse)
async def remove_segment_members(segment_id: str, request: SegmentMembersRequest, segments: Segments):
    """Remove emails from a static segment. Non-members are ignored."""
    await segments.remove_members(segment_id, request.emails)
    return await _members_response(segments, segment_id)
