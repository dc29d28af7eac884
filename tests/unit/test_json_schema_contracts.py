"""
Tests for JSON Schema Contract Validators

Комплексное тестирование валидатора persisted набора производных значений:
- Валидность самой схемы
- Валидация правильных данных (включая payload из DerivedSet.to_payload)
- Детекция нарушений required полей
- Детекция нарушений типов (float вместо int в минорных единицах)
- Детекция нарушений constraints (enum/pattern/additionalProperties)
"""

import copy
from decimal import Decimal

import pytest
from jsonschema import ValidationError

from src.core.contracts import DerivedSetValidator, SchemaLoader, validate_derived_set_payload
from src.core.domain import (
    Currency,
    DerivedSet,
    Discount,
    DiscountScope,
    Money,
    TaxBreakdownEntry,
)


USD = Currency(code="USD")


def _money(value: int) -> dict:
    return {"value": value, "currency": {"code": "USD", "decimal_places": 2}}


# =============================================================================
# FIXTURES - VALID DATA SAMPLES
# =============================================================================


@pytest.fixture
def valid_payload():
    """Валидный persisted payload для тестирования."""
    return {
        "valid": True,
        "values": {
            "total": _money(1320),
            "subTotal": _money(2500),
            "taxTotal": _money(120),
            "discountTotal": _money(1300),
            "taxBreakdown": [
                {
                    "identifier": "FLAT-10",
                    "jurisdiction": "XX",
                    "percentage": "10",
                    "taxable": _money(800),
                    "amount": _money(80),
                    "source": "line-a",
                },
                {
                    "identifier": "ECO",
                    "jurisdiction": "XX",
                    "percentage": None,
                    "taxable": _money(400),
                    "amount": _money(40),
                    "source": "line-b",
                },
            ],
            "shippingTotal": _money(0),
            "discounts": [
                {
                    "identifier": "HALF",
                    "amount": _money(1000),
                    "scope": "line",
                    "line_id": "line-a",
                },
                {
                    "identifier": "SAVE3",
                    "amount": _money(300),
                    "scope": "cart",
                    "line_id": None,
                },
            ],
        },
    }


# =============================================================================
# SCHEMA TESTS
# =============================================================================


class TestSchemaLoader:
    """Загрузка и meta-валидация схем."""

    def test_load_derived_set_schema(self):
        schema = SchemaLoader().load_schema("derived_set")
        assert schema["$schema"] == "https://json-schema.org/draft/2020-12/schema"
        assert schema["required"] == ["valid", "values"]

    def test_schema_is_cached(self):
        loader = SchemaLoader()
        assert loader.load_schema("derived_set") is loader.load_schema("derived_set")

    def test_unknown_schema(self):
        with pytest.raises(FileNotFoundError):
            SchemaLoader().load_schema("order_lines")

    def test_missing_schema_dir(self, tmp_path):
        with pytest.raises(RuntimeError, match="Schema directory not found"):
            SchemaLoader(tmp_path / "absent")

    def test_invalid_schema_rejected(self, tmp_path):
        (tmp_path / "broken.json").write_text('{"type": 12}', encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid JSON Schema"):
            SchemaLoader(tmp_path).load_schema("broken")


# =============================================================================
# DERIVED SET PAYLOAD TESTS
# =============================================================================


class TestDerivedSetContract:
    """Валидация persisted payload."""

    def test_valid_payload(self, valid_payload):
        validate_derived_set_payload(valid_payload)
        assert DerivedSetValidator().is_valid(valid_payload)

    def test_model_payload_matches_contract(self):
        derived = DerivedSet(
            total=Money(value=2700, currency=USD),
            sub_total=Money(value=2000, currency=USD),
            tax_total=Money(value=200, currency=USD),
            discount_total=Money(value=0, currency=USD),
            tax_breakdown=[
                TaxBreakdownEntry(
                    identifier="FLAT-10",
                    jurisdiction="XX",
                    percentage=Decimal("10"),
                    taxable=Money(value=2000, currency=USD),
                    amount=Money(value=200, currency=USD),
                    source="line-1",
                )
            ],
            shipping_total=Money(value=500, currency=USD),
            discounts=[
                Discount(
                    identifier="FREESHIP",
                    amount=Money(value=0, currency=USD),
                    scope=DiscountScope.SHIPPING,
                )
            ],
        )
        validate_derived_set_payload({"valid": False, "values": derived.to_payload()})

    def test_missing_valid_flag(self, valid_payload):
        del valid_payload["valid"]
        with pytest.raises(ValidationError, match="'valid' is a required property"):
            validate_derived_set_payload(valid_payload)

    def test_missing_field(self, valid_payload):
        del valid_payload["values"]["taxBreakdown"]
        with pytest.raises(ValidationError, match="taxBreakdown"):
            validate_derived_set_payload(valid_payload)

    def test_snake_case_field_rejected(self, valid_payload):
        """Persisted layout использует только camelCase имена."""
        values = valid_payload["values"]
        values["sub_total"] = values.pop("subTotal")
        assert not DerivedSetValidator().is_valid(valid_payload)

    def test_float_minor_units_rejected(self, valid_payload):
        valid_payload["values"]["total"]["value"] = 1320.5
        with pytest.raises(ValidationError):
            validate_derived_set_payload(valid_payload)

    def test_unknown_scope_rejected(self, valid_payload):
        valid_payload["values"]["discounts"][0]["scope"] = "order"
        with pytest.raises(ValidationError):
            validate_derived_set_payload(valid_payload)

    def test_bad_currency_code_rejected(self, valid_payload):
        valid_payload["values"]["shippingTotal"]["currency"]["code"] = "usd"
        with pytest.raises(ValidationError):
            validate_derived_set_payload(valid_payload)

    def test_iter_errors_reports_all(self, valid_payload):
        broken = copy.deepcopy(valid_payload)
        broken["values"]["total"]["value"] = "1320"
        broken["values"]["taxTotal"]["value"] = None
        errors = list(DerivedSetValidator().iter_errors(broken))
        assert len(errors) == 2
