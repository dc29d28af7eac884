"""
DerivedSet — Кэшируемый набор производных значений корзины

Семь полей, вычисляемых из одного снапшота и потому взаимно согласованных:
total, subTotal, taxTotal, discountTotal, taxBreakdown, shippingTotal, discounts.

Persisted layout использует camelCase имена (alias), Python-код использует snake_case.
"""

from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .discount import Discount
from .money import Money
from .tax import TaxBreakdownEntry, summarize_by_rate


# Имена производных полей (snake_case) в порядке persisted layout
DERIVED_FIELDS: Final[tuple[str, ...]] = (
    "total",
    "sub_total",
    "tax_total",
    "discount_total",
    "tax_breakdown",
    "shipping_total",
    "discounts",
)


class DerivedSet(BaseModel):
    """
    Cached Derived Set.

    Immutable модель: набор заменяется целиком, никогда не модифицируется
    по одному полю.
    """

    total: Money = Field(..., description="Итог: sub_total - discount_total + tax_total + shipping_total")
    sub_total: Money = Field(..., description="Сумма unit_price × quantity по строкам")
    tax_total: Money = Field(..., description="Сумма налога по всем записям")
    discount_total: Money = Field(..., description="Сумма применённых скидок")
    tax_breakdown: list[TaxBreakdownEntry] = Field(default_factory=list)
    shipping_total: Money = Field(..., description="Стоимость доставки (до скидок на доставку)")
    discounts: list[Discount] = Field(default_factory=list)

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @classmethod
    def resolve_field(cls, name: str) -> str:
        """
        Нормализация имени поля: 'subTotal' и 'sub_total' → 'sub_total'.

        Raises:
            ValueError: Если поле не является производным
        """
        if name in DERIVED_FIELDS:
            return name
        for field_name, info in cls.model_fields.items():
            if info.alias == name:
                return field_name
        raise ValueError(f"Unknown derived field: {name!r}")

    def tax_breakdown_by_rate(self) -> list[TaxBreakdownEntry]:
        """Налог, сгруппированный по идентификатору ставки."""
        return summarize_by_rate(self.tax_breakdown)

    def to_payload(self) -> dict[str, Any]:
        """Сериализация в persisted layout (JSON-совместимый dict, camelCase)."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_payload(cls, values: dict[str, Any]) -> "DerivedSet":
        return cls.model_validate(values)
