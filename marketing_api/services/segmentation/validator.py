"""
Rule tree validation against the field and operator registry.

Rules are checked before they are stored or evaluated so that authoring
mistakes surface as errors instead of silently matching nobody.
"""

import math
from dataclasses import dataclass, asdict
from typing import Any, List

from marketing_api.exceptions import RuleValidationError
from marketing_api.schemas.segment import (
    ConditionOperator as Op,
    FieldType,
    SegmentCondition,
    SegmentRuleGroup,
)
from marketing_api.services.segmentation.fields import (
    allowed_operators,
    get_field,
    no_value_operators,
)
from marketing_api.services.segmentation.operators import parse_date, to_number

LIST_VALUE_OPERATORS = frozenset({Op.IN, Op.NOT_IN, Op.ARRAY_CONTAINS_ALL})
NUMERIC_VALUE_OPERATORS = frozenset({
    Op.GREATER_THAN,
    Op.LESS_THAN,
    Op.GREATER_OR_EQUAL,
    Op.LESS_OR_EQUAL,
    Op.BETWEEN,
    Op.IN_LAST_DAYS,
    Op.NOT_IN_LAST_DAYS,
})
DATE_VALUE_OPERATORS = frozenset({Op.BEFORE, Op.AFTER, Op.ON})


@dataclass
class RuleIssue:
    """One problem found in a rule tree."""

    node_id: str
    path: str  # e.g. "groups[0].conditions[1]"
    message: str
    field: str = ""


def validate_rule_group(group: SegmentRuleGroup, path: str = "") -> List[RuleIssue]:
    """Collect every problem in the tree, depth-first in document order."""
    issues: List[RuleIssue] = []
    prefix = f"{path}." if path else ""

    for index, condition in enumerate(group.conditions):
        issues.extend(_validate_condition(condition, f"{prefix}conditions[{index}]"))
    for index, child in enumerate(group.groups):
        issues.extend(validate_rule_group(child, f"{prefix}groups[{index}]"))

    return issues


def ensure_valid_rules(group: SegmentRuleGroup) -> None:
    """Raise RuleValidationError listing every offending node."""
    issues = validate_rule_group(group)
    if issues:
        raise RuleValidationError([asdict(issue) for issue in issues])


def _validate_condition(condition: SegmentCondition, path: str) -> List[RuleIssue]:
    def issue(message: str) -> RuleIssue:
        return RuleIssue(node_id=condition.id, path=path, message=message, field=condition.field)

    field_def = get_field(condition.field)
    if field_def is None:
        return [issue(f"Unknown field '{condition.field}'")]

    op = condition.operator
    if op not in allowed_operators(field_def.type):
        return [issue(f"Operator '{op.value}' is not allowed for {field_def.type.value} field '{field_def.key}'")]

    if op in no_value_operators():
        return []

    value = condition.value
    if value is None or (isinstance(value, str) and not value.strip()):
        return [issue(f"Operator '{op.value}' requires a value")]

    problems: List[RuleIssue] = []

    if op in LIST_VALUE_OPERATORS:
        if not isinstance(value, list):
            problems.append(issue(f"Operator '{op.value}' requires a list value"))
        elif not value:
            problems.append(issue(f"Operator '{op.value}' requires at least one value"))
    elif isinstance(value, (list, dict)):
        problems.append(issue(f"Operator '{op.value}' requires a single value"))

    if op in NUMERIC_VALUE_OPERATORS and not _is_number(value):
        problems.append(issue(f"Operator '{op.value}' requires a numeric value, got {value!r}"))

    if op == Op.BETWEEN:
        if condition.value2 is None or (isinstance(condition.value2, str) and not condition.value2.strip()):
            problems.append(issue("Operator 'between' requires value2"))
        elif not _is_number(condition.value2):
            problems.append(issue(f"Operator 'between' requires a numeric value2, got {condition.value2!r}"))

    if op in DATE_VALUE_OPERATORS and parse_date(value) is None:
        problems.append(issue(f"Operator '{op.value}' requires an ISO 8601 date, got {value!r}"))

    if field_def.type == FieldType.SELECT and field_def.options:
        problems.extend(_validate_options(condition, field_def.option_values, issue))

    return problems


def _validate_options(condition: SegmentCondition, legal: tuple, issue) -> List[RuleIssue]:
    values = condition.value if isinstance(condition.value, list) else [condition.value]
    unknown = [v for v in values if not isinstance(v, str) or v not in legal]
    if not unknown:
        return []
    return [issue(f"Values {unknown!r} are not options of '{condition.field}' (expected one of {list(legal)})")]


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    return math.isfinite(to_number(value))
