"""
Segmentation services.

Rule model evaluation, field/operator registry, batch evaluation over a
contact source, static membership and campaign recipient resolution.
"""

from marketing_api.services.segmentation.batch import ScanResult, evaluate_rules, scan_contacts
from marketing_api.services.segmentation.contact_source import (
    ContactPage,
    ContactSource,
    InMemoryContactSource,
    SqlContactSource,
)
from marketing_api.services.segmentation.evaluator import matches_condition, matches_rule_group
from marketing_api.services.segmentation.fields import (
    CONTACT_FIELDS,
    OPERATORS_BY_TYPE,
    FieldDefinition,
    fields_catalog,
    get_field,
    no_value_operators,
    operators_for,
)
from marketing_api.services.segmentation.membership import SegmentLockRegistry, StaticMembershipStore
from marketing_api.services.segmentation.recipients import RecipientResolver
from marketing_api.services.segmentation.segment_service import SegmentService
from marketing_api.services.segmentation.validator import ensure_valid_rules, validate_rule_group

__all__ = [
    "ScanResult",
    "evaluate_rules",
    "scan_contacts",
    "ContactPage",
    "ContactSource",
    "InMemoryContactSource",
    "SqlContactSource",
    "matches_condition",
    "matches_rule_group",
    "CONTACT_FIELDS",
    "OPERATORS_BY_TYPE",
    "FieldDefinition",
    "fields_catalog",
    "get_field",
    "no_value_operators",
    "operators_for",
    "SegmentLockRegistry",
    "StaticMembershipStore",
    "RecipientResolver",
    "SegmentService",
    "ensure_valid_rules",
    "validate_rule_group",
]
