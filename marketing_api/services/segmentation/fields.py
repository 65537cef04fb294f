"""
Segmentable contact fields and the operators legal for each field type.

Add new fields to ``CONTACT_FIELDS`` when the contact schema is extended.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from marketing_api.schemas.segment import ConditionOperator, FieldType


@dataclass(frozen=True)
class FieldOption:
    label: str
    value: str


@dataclass(frozen=True)
class FieldDefinition:
    """A contact attribute that can appear in a segment condition."""

    key: str  # dot path into the contact record
    label: str
    type: FieldType
    group: str  # UI grouping only
    options: Optional[Tuple[FieldOption, ...]] = None
    description: str = ""

    @property
    def option_values(self) -> Tuple[str, ...]:
        return tuple(o.value for o in self.options or ())


_LIFECYCLE_OPTIONS = (
    FieldOption("Customer", "customer"),
    FieldOption("Subscriber", "subscriber"),
    FieldOption("Lead", "lead"),
)

_STATUS_OPTIONS = (
    FieldOption("Active", "active"),
    FieldOption("Inactive", "inactive"),
    FieldOption("Bounced", "bounced"),
    FieldOption("Unsubscribed", "unsubscribed"),
    FieldOption("Complained", "complained"),
)

CONTACT_FIELDS: Tuple[FieldDefinition, ...] = (
    # Basic data
    FieldDefinition("full_name", "Full name", FieldType.STRING, "Basic data"),
    FieldDefinition("email", "Email", FieldType.STRING, "Basic data"),
    FieldDefinition("phone", "Phone", FieldType.STRING, "Basic data"),
    FieldDefinition("first_name", "First name", FieldType.STRING, "Basic data"),
    FieldDefinition("last_name", "Last name", FieldType.STRING, "Basic data"),
    FieldDefinition("source", "Source", FieldType.STRING, "Basic data"),
    # Classification
    FieldDefinition(
        "lifecycle_stage", "Lifecycle stage", FieldType.SELECT, "Classification", _LIFECYCLE_OPTIONS
    ),
    FieldDefinition("status", "Contact status", FieldType.SELECT, "Classification", _STATUS_OPTIONS),
    FieldDefinition("lead_score", "Lead score", FieldType.NUMBER, "Classification"),
    # Tags
    FieldDefinition("tags", "Tags", FieldType.ARRAY, "Tags"),
    # Cashback
    FieldDefinition("cashback_info.current_balance", "Cashback balance", FieldType.NUMBER, "Cashback"),
    FieldDefinition("cashback_info.lifetime_earned", "Lifetime cashback earned", FieldType.NUMBER, "Cashback"),
    FieldDefinition("cashback_info.expiry_date", "Cashback expiry date", FieldType.DATE, "Cashback"),
    FieldDefinition(
        "cashback_info.last_transaction_date", "Last cashback transaction", FieldType.DATE, "Cashback"
    ),
    # Opt-in
    FieldDefinition("opt_in_email", "Accepts email", FieldType.BOOLEAN, "Opt-in"),
    FieldDefinition("opt_in_sms", "Accepts SMS", FieldType.BOOLEAN, "Opt-in"),
    # Dates
    FieldDefinition("created_at", "Created at", FieldType.DATE, "Dates"),
    FieldDefinition("updated_at", "Last updated", FieldType.DATE, "Dates"),
    # Custom fields
    FieldDefinition("custom_fields.last_purchase_date", "Last purchase date", FieldType.DATE, "Custom"),
    FieldDefinition(
        "custom_fields.purchase_frequency", "Purchase frequency (days)", FieldType.NUMBER, "Custom"
    ),
    FieldDefinition("custom_fields.product_category", "Product category", FieldType.STRING, "Custom"),
    FieldDefinition("custom_fields.referral_code", "Referral code", FieldType.STRING, "Custom"),
    FieldDefinition("custom_fields.affiliate_wallet", "Affiliate wallet", FieldType.NUMBER, "Custom"),
    FieldDefinition("custom_fields.prescription_type", "Prescription type", FieldType.STRING, "Custom"),
    FieldDefinition(
        "custom_fields.medication_duration_days", "Medication duration (days)", FieldType.NUMBER, "Custom"
    ),
)

_FIELDS_BY_KEY: Dict[str, FieldDefinition] = {f.key: f for f in CONTACT_FIELDS}

Op = ConditionOperator

OPERATORS_BY_TYPE: Dict[FieldType, Tuple[Tuple[ConditionOperator, str], ...]] = {
    FieldType.STRING: (
        (Op.EQUALS, "Equals"),
        (Op.NOT_EQUALS, "Does not equal"),
        (Op.CONTAINS, "Contains"),
        (Op.NOT_CONTAINS, "Does not contain"),
        (Op.STARTS_WITH, "Starts with"),
        (Op.ENDS_WITH, "Ends with"),
        (Op.EXISTS, "Is set"),
        (Op.NOT_EXISTS, "Is not set"),
    ),
    FieldType.NUMBER: (
        (Op.EQUALS, "Equals"),
        (Op.NOT_EQUALS, "Does not equal"),
        (Op.GREATER_THAN, "Greater than"),
        (Op.LESS_THAN, "Less than"),
        (Op.GREATER_OR_EQUAL, "Greater than or equal to"),
        (Op.LESS_OR_EQUAL, "Less than or equal to"),
        (Op.BETWEEN, "Between"),
        (Op.EXISTS, "Is set"),
        (Op.NOT_EXISTS, "Is not set"),
    ),
    FieldType.DATE: (
        (Op.BEFORE, "Before"),
        (Op.AFTER, "After"),
        (Op.ON, "On"),
        (Op.IN_LAST_DAYS, "In the last N days"),
        (Op.NOT_IN_LAST_DAYS, "Not in the last N days"),
        (Op.EXISTS, "Is set"),
        (Op.NOT_EXISTS, "Is not set"),
    ),
    FieldType.BOOLEAN: (
        (Op.IS_TRUE, "Is true"),
        (Op.IS_FALSE, "Is false"),
    ),
    FieldType.ARRAY: (
        (Op.ARRAY_CONTAINS, "Contains"),
        (Op.ARRAY_NOT_CONTAINS, "Does not contain"),
        (Op.ARRAY_CONTAINS_ALL, "Contains all"),
        (Op.ARRAY_IS_EMPTY, "Is empty"),
        (Op.ARRAY_IS_NOT_EMPTY, "Is not empty"),
    ),
    FieldType.SELECT: (
        (Op.EQUALS, "Equals"),
        (Op.NOT_EQUALS, "Does not equal"),
        (Op.IN, "Is one of"),
        (Op.NOT_IN, "Is not one of"),
    ),
}

NO_VALUE_OPERATORS = frozenset({
    Op.EXISTS,
    Op.NOT_EXISTS,
    Op.ARRAY_IS_EMPTY,
    Op.ARRAY_IS_NOT_EMPTY,
    Op.IS_TRUE,
    Op.IS_FALSE,
})


def fields_catalog() -> List[FieldDefinition]:
    """All segmentable fields in declaration order."""
    return list(CONTACT_FIELDS)


def get_field(key: str) -> Optional[FieldDefinition]:
    return _FIELDS_BY_KEY.get(key)


def operators_for(field_type: FieldType) -> List[Dict[str, object]]:
    """Legal operators for a field type.

    Raises:
        ValueError: ``field_type`` is not a known FieldType
    """
    try:
        entries = OPERATORS_BY_TYPE[FieldType(field_type)]
    except (KeyError, ValueError):
        raise ValueError(f"Unknown field type: {field_type!r}")
    return [{"operator": op, "label": label} for op, label in entries]


def allowed_operators(field_type: FieldType) -> frozenset:
    return frozenset(entry["operator"] for entry in operators_for(field_type))


def no_value_operators() -> frozenset:
    return NO_VALUE_OPERATORS
