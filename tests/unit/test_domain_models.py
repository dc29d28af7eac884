"""
Тесты для доменных моделей корзины: DiscountRequest, TaxRate, CartLine,
ShippingOption, TaxBreakdownEntry, DerivedSet

Проверяет:
1. Создание и валидацию моделей Pydantic
2. Immutability (frozen=True)
3. Сводку налога по ставкам
4. camelCase имена persisted полей DerivedSet
5. Граничные случаи и невалидные данные
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from src.core.domain import (
    DERIVED_FIELDS,
    AddressType,
    CartAddress,
    CartLine,
    Currency,
    DerivedSet,
    Discount,
    DiscountRequest,
    DiscountScope,
    Money,
    ShippingOption,
    TaxBreakdownEntry,
    TaxContext,
    TaxRate,
    summarize_by_rate,
)


USD = Currency(code="USD")


def usd(value: int) -> Money:
    return Money(value=value, currency=USD)


# =============================================================================
# DISCOUNT REQUEST TESTS
# =============================================================================


class TestDiscountRequest:
    """Тесты для DiscountRequest."""

    def test_fixed_cart_discount(self):
        request = DiscountRequest(identifier="SAVE10", scope=DiscountScope.CART, amount=usd(1000))
        assert request.amount == usd(1000)
        assert request.percentage is None
        assert request.line_id is None

    def test_percentage_line_discount(self):
        request = DiscountRequest(
            identifier="HALF",
            scope=DiscountScope.LINE,
            percentage=Decimal("50"),
            line_id="line-1",
        )
        assert request.percentage == Decimal("50")
        assert request.line_id == "line-1"

    def test_requires_exactly_one_of_amount_or_percentage(self):
        with pytest.raises(ValidationError, match="Exactly one"):
            DiscountRequest(identifier="X", scope=DiscountScope.CART)

        with pytest.raises(ValidationError, match="Exactly one"):
            DiscountRequest(
                identifier="X",
                scope=DiscountScope.CART,
                amount=usd(100),
                percentage=Decimal("10"),
            )

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError, match="cannot be negative"):
            DiscountRequest(identifier="X", scope=DiscountScope.CART, amount=usd(-1))

    def test_percentage_bounds(self):
        with pytest.raises(ValidationError):
            DiscountRequest(identifier="X", scope=DiscountScope.CART, percentage=Decimal("0"))
        with pytest.raises(ValidationError):
            DiscountRequest(identifier="X", scope=DiscountScope.CART, percentage=Decimal("100.5"))

    def test_line_scope_requires_line_id(self):
        with pytest.raises(ValidationError, match="line_id is required"):
            DiscountRequest(identifier="X", scope=DiscountScope.LINE, amount=usd(100))

    def test_line_id_forbidden_for_other_scopes(self):
        with pytest.raises(ValidationError, match="only allowed"):
            DiscountRequest(
                identifier="X", scope=DiscountScope.SHIPPING, amount=usd(100), line_id="line-1"
            )

    def test_immutable(self):
        request = DiscountRequest(identifier="X", scope=DiscountScope.CART, amount=usd(100))
        with pytest.raises(ValidationError):
            request.identifier = "Y"  # type: ignore[misc]


# =============================================================================
# TAX RATE TESTS
# =============================================================================


class TestTaxRate:
    """Тесты для TaxRate и TaxContext."""

    def test_percentage_rate(self):
        rate = TaxRate(identifier="GB-VAT", jurisdiction="GB", percentage=Decimal("20"))
        assert rate.fixed_amount is None

    def test_fixed_rate(self):
        rate = TaxRate(identifier="ECO", jurisdiction="FR", fixed_amount=usd(25))
        assert rate.percentage is None

    def test_requires_exactly_one_kind(self):
        with pytest.raises(ValidationError, match="Exactly one"):
            TaxRate(identifier="X", jurisdiction="XX")
        with pytest.raises(ValidationError, match="Exactly one"):
            TaxRate(
                identifier="X",
                jurisdiction="XX",
                percentage=Decimal("5"),
                fixed_amount=usd(5),
            )

    def test_negative_fixed_amount_rejected(self):
        with pytest.raises(ValidationError, match="cannot be negative"):
            TaxRate(identifier="X", jurisdiction="XX", fixed_amount=usd(-5))

    def test_percentage_out_of_range(self):
        with pytest.raises(ValidationError):
            TaxRate(identifier="X", jurisdiction="XX", percentage=Decimal("101"))

    def test_context_rates_for_unknown_class(self):
        vat = TaxRate(identifier="VAT", jurisdiction="XX", percentage=Decimal("10"))
        context = TaxContext(currency=USD, rates={"default": [vat]})
        assert context.rates_for("default") == [vat]
        assert context.rates_for("zero-rated") == []


# =============================================================================
# LINES / ADDRESSES / SHIPPING
# =============================================================================


class TestCartInputs:
    """Тесты для CartLine, CartAddress, ShippingOption."""

    def test_line_total_is_exact(self):
        line = CartLine(id="l1", purchasable_id="sku-1", unit_price=usd(333), quantity=3)
        assert line.line_total() == usd(999)
        assert line.tax_class == "default"

    def test_line_allows_negative_quantity_at_construction(self):
        """Знак количества проверяет движок расчёта, не модель."""
        line = CartLine(id="l1", purchasable_id="sku-1", unit_price=usd(100), quantity=-1)
        assert line.quantity == -1

    def test_address_country_pattern(self):
        address = CartAddress(type=AddressType.SHIPPING, country_code="GB")
        assert address.type == AddressType.SHIPPING
        with pytest.raises(ValidationError):
            CartAddress(type=AddressType.SHIPPING, country_code="gbr")

    def test_shipping_price_non_negative(self):
        with pytest.raises(ValidationError, match="cannot be negative"):
            ShippingOption(identifier="std", name="Standard", price=usd(-100))

    def test_shipping_defaults(self):
        option = ShippingOption(identifier="std", name="Standard", price=usd(500))
        assert option.taxable is True
        assert option.tax_class == "shipping"


# =============================================================================
# TAX BREAKDOWN SUMMARY
# =============================================================================


class TestSummarizeByRate:
    """Тесты для summarize_by_rate."""

    def _entry(self, identifier: str, taxable: int, amount: int, source: str) -> TaxBreakdownEntry:
        return TaxBreakdownEntry(
            identifier=identifier,
            jurisdiction="XX",
            percentage=Decimal("20"),
            taxable=usd(taxable),
            amount=usd(amount),
            source=source,
        )

    def test_same_rate_is_summed(self):
        summary = summarize_by_rate(
            [
                self._entry("VAT", 1000, 200, "l1"),
                self._entry("VAT", 2000, 400, "l2"),
            ]
        )
        assert len(summary) == 1
        assert summary[0].taxable == usd(3000)
        assert summary[0].amount == usd(600)
        assert summary[0].source is None

    def test_first_seen_order(self):
        summary = summarize_by_rate(
            [
                self._entry("CITY", 1000, 10, "l1"),
                self._entry("VAT", 1000, 200, "l1"),
                self._entry("CITY", 500, 5, "shipping"),
            ]
        )
        assert [e.identifier for e in summary] == ["CITY", "VAT"]
        assert summary[0].amount == usd(15)

    def test_empty(self):
        assert summarize_by_rate([]) == []


# =============================================================================
# DERIVED SET TESTS
# =============================================================================


@pytest.fixture
def derived_set():
    return DerivedSet(
        total=usd(2700),
        sub_total=usd(2000),
        tax_total=usd(200),
        discount_total=usd(0),
        tax_breakdown=[
            TaxBreakdownEntry(
                identifier="FLAT-10",
                jurisdiction="XX",
                percentage=Decimal("10"),
                taxable=usd(2000),
                amount=usd(200),
                source="l1",
            )
        ],
        shipping_total=usd(500),
        discounts=[],
    )


class TestDerivedSet:
    """Тесты для DerivedSet."""

    def test_resolve_field_snake_case(self):
        for name in DERIVED_FIELDS:
            assert DerivedSet.resolve_field(name) == name

    def test_resolve_field_camel_case(self):
        assert DerivedSet.resolve_field("subTotal") == "sub_total"
        assert DerivedSet.resolve_field("taxBreakdown") == "tax_breakdown"
        assert DerivedSet.resolve_field("shippingTotal") == "shipping_total"

    def test_resolve_unknown_field(self):
        with pytest.raises(ValueError, match="Unknown derived field"):
            DerivedSet.resolve_field("grandTotal")

    def test_payload_uses_camel_case(self, derived_set):
        payload = derived_set.to_payload()
        assert set(payload) == {
            "total",
            "subTotal",
            "taxTotal",
            "discountTotal",
            "taxBreakdown",
            "shippingTotal",
            "discounts",
        }
        assert payload["subTotal"] == {"value": 2000, "currency": {"code": "USD", "decimal_places": 2}}

    def test_payload_round_trip(self, derived_set):
        restored = DerivedSet.from_payload(derived_set.to_payload())
        assert restored == derived_set

    def test_by_rate_view(self, derived_set):
        summary = derived_set.tax_breakdown_by_rate()
        assert summary[0].source is None
        assert summary[0].amount == usd(200)

    def test_immutable(self, derived_set):
        with pytest.raises(ValidationError):
            derived_set.total = usd(0)  # type: ignore[misc]

    def test_discount_record(self):
        record = Discount(
            identifier="HALF", amount=usd(500), scope=DiscountScope.LINE, line_id="l1"
        )
        assert record.scope == DiscountScope.LINE
        assert record.line_id == "l1"
