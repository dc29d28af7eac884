"""
Tax — Налоговые ставки и разбивка налога

TaxContext — результат внешнего резолвера: ставки по налоговым классам
для конкретной валюты и адресов. TaxBreakdownEntry — одна строка налога
(строка корзины или доставка × ставка).

Записи с одинаковой ставкой суммируются в rate-grouped сводке, а не просто
перечисляются по строкам.
"""

from decimal import Decimal
from typing import Final

from pydantic import BaseModel, Field, model_validator

from .money import Currency, Money


# Источник налоговой записи для доставки
SHIPPING_SOURCE: Final[str] = "shipping"


# =============================================================================
# TAX RATE
# =============================================================================


class TaxRate(BaseModel):
    """
    Налоговая ставка.

    Процентная (percentage) или фиксированная на единицу количества
    (fixed_amount). Ровно одно из двух.
    """

    identifier: str = Field(..., min_length=1, description="Идентификатор ставки (например, 'GB-VAT-STD')")
    jurisdiction: str = Field(..., min_length=1, description="Юрисдикция (страна/регион)")
    percentage: Decimal | None = Field(None, ge=0, le=100, description="Процент ставки")
    fixed_amount: Money | None = Field(None, description="Фиксированный налог за единицу")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_kind(self) -> "TaxRate":
        if (self.percentage is None) == (self.fixed_amount is None):
            raise ValueError("Exactly one of percentage or fixed_amount must be set")
        if self.fixed_amount is not None and self.fixed_amount.is_negative():
            raise ValueError(f"Fixed tax amount cannot be negative: {self.fixed_amount.value}")
        return self


# =============================================================================
# TAX CONTEXT
# =============================================================================


class TaxContext(BaseModel):
    """
    Разрешённый налоговый контекст корзины.

    rates: налоговый класс → список ставок. Класс без ставок не облагается.
    """

    currency: Currency = Field(..., description="Валюта, для которой разрешены ставки")
    rates: dict[str, list[TaxRate]] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def rates_for(self, tax_class: str) -> list[TaxRate]:
        return self.rates.get(tax_class, [])


# =============================================================================
# TAX BREAKDOWN ENTRY
# =============================================================================


class TaxBreakdownEntry(BaseModel):
    """Одна строка налога (Tax Breakdown Entry)."""

    identifier: str = Field(..., min_length=1, description="Идентификатор ставки")
    jurisdiction: str = Field(..., min_length=1, description="Юрисдикция")
    percentage: Decimal | None = Field(None, description="Процент (None для фиксированных)")
    taxable: Money = Field(..., description="Налоговая база")
    amount: Money = Field(..., description="Сумма налога")
    source: str | None = Field(
        None, description="ID строки или 'shipping'; None в сводке по ставкам"
    )

    model_config = {"frozen": True}


def summarize_by_rate(entries: list[TaxBreakdownEntry]) -> list[TaxBreakdownEntry]:
    """
    Сводка налога по идентификатору ставки.

    Базы и суммы записей с одинаковым identifier складываются; порядок определяется
    по первому появлению ставки.

    Args:
        entries: Детализированные записи (по строкам и доставке)

    Returns:
        Записи без source, по одной на ставку
    """
    grouped: dict[str, TaxBreakdownEntry] = {}
    for entry in entries:
        existing = grouped.get(entry.identifier)
        if existing is None:
            grouped[entry.identifier] = entry.model_copy(update={"source": None})
            continue
        grouped[entry.identifier] = existing.model_copy(
            update={
                "taxable": existing.taxable + entry.taxable,
                "amount": existing.amount + entry.amount,
            }
        )
    return list(grouped.values())
