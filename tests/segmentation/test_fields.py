"""Tests for the field and operator registry."""

import pytest

from marketing_api.schemas.segment import ConditionOperator, FieldType
from marketing_api.services.segmentation.fields import (
    CONTACT_FIELDS,
    OPERATORS_BY_TYPE,
    allowed_operators,
    fields_catalog,
    get_field,
    no_value_operators,
    operators_for,
)
from marketing_api.services.segmentation.operators import OPERATOR_HANDLERS, operator


class TestFieldCatalog:
    def test_keys_are_unique(self):
        keys = [f.key for f in CONTACT_FIELDS]
        assert len(keys) == len(set(keys))

    def test_catalog_preserves_declaration_order(self):
        catalog = fields_catalog()
        assert [f.key for f in catalog] == [f.key for f in CONTACT_FIELDS]
        assert catalog[0].key == "full_name"

    def test_nested_fields_are_registered(self):
        balance = get_field("cashback_info.current_balance")
        assert balance is not None
        assert balance.type == FieldType.NUMBER
        assert get_field("custom_fields.last_purchase_date").type == FieldType.DATE

    def test_unknown_field(self):
        assert get_field("favourite_colour") is None

    def test_select_fields_have_options(self):
        for f in CONTACT_FIELDS:
            if f.type == FieldType.SELECT:
                assert f.options, f.key

    def test_status_options(self):
        status = get_field("status")
        assert status.option_values == ("active", "inactive", "bounced", "unsubscribed", "complained")


class TestOperatorTable:
    def test_every_field_type_has_operators(self):
        for field_type in FieldType:
            assert operators_for(field_type)

    def test_operators_for_accepts_plain_strings(self):
        ops = [entry["operator"] for entry in operators_for("boolean")]
        assert ops == [ConditionOperator.IS_TRUE, ConditionOperator.IS_FALSE]

    def test_operators_for_unknown_type(self):
        with pytest.raises(ValueError):
            operators_for("geo")

    def test_every_operator_is_offered_somewhere(self):
        offered = {op for entries in OPERATORS_BY_TYPE.values() for op, _ in entries}
        assert offered == set(ConditionOperator)

    def test_select_operators(self):
        assert allowed_operators(FieldType.SELECT) == {
            ConditionOperator.EQUALS,
            ConditionOperator.NOT_EQUALS,
            ConditionOperator.IN,
            ConditionOperator.NOT_IN,
        }

    def test_no_value_operators(self):
        assert ConditionOperator.IS_FALSE in no_value_operators()
        assert ConditionOperator.ARRAY_IS_EMPTY in no_value_operators()
        assert ConditionOperator.EQUALS not in no_value_operators()


class TestHandlerRegistry:
    def test_every_operator_has_exactly_one_handler(self):
        assert set(OPERATOR_HANDLERS) == set(ConditionOperator)

    def test_duplicate_registration_is_rejected(self):
        with pytest.raises(RuntimeError):
            operator(ConditionOperator.EQUALS)(lambda field_value, value, value2, now: True)
