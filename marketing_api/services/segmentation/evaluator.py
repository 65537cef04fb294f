"""
Segment Evaluator

Classifies a single contact record against a segment rule tree. Pure and
synchronous: no I/O, no state, no exceptions for well-formed trees.
"""

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Optional

from marketing_api.schemas.segment import GroupOperator, SegmentCondition, SegmentRuleGroup
from marketing_api.services.segmentation.operators import OPERATOR_HANDLERS
from marketing_api.utils.field_path import resolve_path

logger = logging.getLogger(__name__)


def matches_condition(
    contact: Mapping[str, Any],
    condition: SegmentCondition,
    now: Optional[datetime] = None,
) -> bool:
    """Evaluate one leaf condition against a contact."""
    handler = OPERATOR_HANDLERS.get(condition.operator)
    if handler is None:
        logger.warning(
            "No handler for operator %r in condition %s; treating as no match",
            condition.operator,
            condition.id,
        )
        return False

    field_value = resolve_path(contact, condition.field)
    return handler(field_value, condition.value, condition.value2, now or datetime.now(timezone.utc))


def matches_rule_group(
    contact: Mapping[str, Any],
    group: SegmentRuleGroup,
    now: Optional[datetime] = None,
) -> bool:
    """
    Evaluate a rule group against a contact.

    Direct conditions come first, then nested groups depth-first. AND needs
    every result to hold, OR needs one. A group with no conditions and no
    sub-groups matches every contact.
    """
    now = now or datetime.now(timezone.utc)

    results = [matches_condition(contact, c, now) for c in group.conditions]
    results.extend(matches_rule_group(contact, g, now) for g in group.groups)

    if not results:
        return True

    if group.operator == GroupOperator.OR:
        return any(results)
    return all(results)
