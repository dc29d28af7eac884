"""
Discount — Скидки корзины

Два типа моделей:
- DiscountRequest: результат внешнего правила скидки (что запрошено)
- Discount: применённая скидка (что фактически списано после clamp)

Авторинг правил скидок вне зоны ответственности модуля: здесь только
потребление их результатов.
"""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from .money import Money


# =============================================================================
# ENUMS
# =============================================================================


class DiscountScope(str, Enum):
    """Область применения скидки"""

    CART = "cart"  # Вся корзина (после скидок по строкам)
    LINE = "line"  # Конкретная строка
    SHIPPING = "shipping"  # Только доставка


# =============================================================================
# DISCOUNT REQUEST (вход)
# =============================================================================


class DiscountRequest(BaseModel):
    """
    Запрошенная скидка: результат правила.

    Ровно одно из amount / percentage. line_id обязателен для LINE и
    запрещён для остальных областей.
    """

    identifier: str = Field(..., min_length=1, description="Идентификатор скидки/купона")
    scope: DiscountScope = Field(..., description="Область применения")
    amount: Money | None = Field(None, description="Фиксированная сумма скидки")
    percentage: Decimal | None = Field(
        None, gt=0, le=100, description="Процент от оставшейся базы"
    )
    line_id: str | None = Field(None, description="Целевая строка (для scope=line)")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_shape(self) -> "DiscountRequest":
        if (self.amount is None) == (self.percentage is None):
            raise ValueError("Exactly one of amount or percentage must be set")
        if self.amount is not None and self.amount.is_negative():
            raise ValueError(f"Discount amount cannot be negative: {self.amount.value}")
        if self.scope == DiscountScope.LINE and not self.line_id:
            raise ValueError("line_id is required for line-scoped discounts")
        if self.scope != DiscountScope.LINE and self.line_id is not None:
            raise ValueError(f"line_id is only allowed for line-scoped discounts, got scope={self.scope.value}")
        return self


# =============================================================================
# DISCOUNT (применённая)
# =============================================================================


class Discount(BaseModel):
    """Применённая скидка (Discount Record)."""

    identifier: str = Field(..., min_length=1, description="Идентификатор скидки")
    amount: Money = Field(..., description="Фактически применённая сумма")
    scope: DiscountScope = Field(..., description="Область применения")
    line_id: str | None = Field(None, description="Строка (для scope=line)")

    model_config = {"frozen": True}
