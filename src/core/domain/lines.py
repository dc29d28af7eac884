"""
Cart lines, addresses and shipping options.

Входные данные корзины. Строки намеренно не валидируют знак количества и
цены: некорректная строка отвергается движком расчёта (InvalidLineError),
а не на этапе конструирования модели.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .money import Money


class AddressType(str, Enum):
    """Тип адреса корзины"""

    SHIPPING = "shipping"
    BILLING = "billing"


class CartAddress(BaseModel):
    """Адрес корзины (не более одного на каждый AddressType)."""

    type: AddressType = Field(..., description="shipping / billing")
    country_code: str = Field(..., pattern="^[A-Z]{2}$", description="ISO 3166-1 alpha-2")
    state: str | None = Field(None, description="Регион/штат")
    postcode: str | None = Field(None, description="Почтовый индекс")
    city: str | None = Field(None, description="Город")
    line_one: str | None = Field(None, description="Адресная строка")

    model_config = {"frozen": True}


class CartLine(BaseModel):
    """Строка корзины."""

    id: str = Field(..., min_length=1, description="Идентификатор строки")
    purchasable_id: str = Field(..., min_length=1, description="Идентификатор товара/варианта")
    unit_price: Money = Field(..., description="Цена за единицу")
    quantity: int = Field(..., description="Количество")
    tax_class: str = Field("default", min_length=1, description="Налоговый класс")
    meta: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def line_total(self) -> Money:
        """Точная стоимость строки: unit_price × quantity (без округления)."""
        return self.unit_price * self.quantity


class ShippingOption(BaseModel):
    """Выбранный способ доставки."""

    identifier: str = Field(..., min_length=1, description="Идентификатор способа доставки")
    name: str = Field(..., min_length=1, description="Название")
    price: Money = Field(..., description="Стоимость доставки")
    taxable: bool = Field(True, description="Облагается ли доставка налогом")
    tax_class: str = Field("shipping", min_length=1, description="Налоговый класс доставки")

    model_config = {"frozen": True}

    @field_validator("price")
    @classmethod
    def validate_price_non_negative(cls, v: Money) -> Money:
        if v.is_negative():
            raise ValueError(f"Shipping price cannot be negative: {v.value}")
        return v
