"""
CartSnapshot — неизменяемый снимок корзины для расчёта.

Движок расчёта работает только со снапшотом: строки, запрошенные скидки,
способ доставки и разрешённый налоговый контекст.
"""

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from src.core.domain.discount import DiscountRequest
from src.core.domain.lines import CartLine, ShippingOption
from src.core.domain.money import Currency
from src.core.domain.tax import TaxContext
from src.pricing.tax_resolver import TaxContextResolver

if TYPE_CHECKING:
    from src.cart.aggregate import Cart


class CartSnapshot(BaseModel):
    """Снимок состояния корзины на момент расчёта."""

    cart_id: str = Field(..., min_length=1)
    currency: Currency | None = Field(None, description="None → ConfigurationError при расчёте")
    lines: list[CartLine] = Field(default_factory=list)
    discounts: list[DiscountRequest] = Field(default_factory=list)
    shipping_option: ShippingOption | None = None
    tax_context: TaxContext | None = Field(None, description="None → ConfigurationError при расчёте")

    model_config = {"frozen": True}


def build_snapshot(cart: "Cart", tax_resolver: TaxContextResolver) -> CartSnapshot:
    """
    Сборка снапшота из агрегата корзины.

    Налоговый контекст разрешается только при известной валюте; отсутствие
    валюты или контекста не является ошибкой здесь, её фиксирует движок.
    """
    tax_context = None
    if cart.currency is not None:
        tax_context = tax_resolver.resolve(
            cart.currency, cart.shipping_address, cart.billing_address
        )

    return CartSnapshot(
        cart_id=cart.id,
        currency=cart.currency,
        lines=list(cart.lines),
        discounts=list(cart.discounts),
        shipping_option=cart.shipping_option,
        tax_context=tax_context,
    )
