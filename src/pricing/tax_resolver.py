"""
Tax context resolution.

TaxContextResolver — внешний коллаборатор: по валюте и адресам возвращает
применимые ставки. Движок расчёта трактует его как black box.
"""

from typing import Protocol, runtime_checkable

from src.core.domain.lines import CartAddress
from src.core.domain.money import Currency
from src.core.domain.tax import TaxContext, TaxRate


@runtime_checkable
class TaxContextResolver(Protocol):
    """Резолвер налогового контекста. None означает неразрешённый контекст."""

    def resolve(
        self,
        currency: Currency,
        shipping_address: CartAddress | None,
        billing_address: CartAddress | None,
    ) -> TaxContext | None:
        ...


class StaticTaxResolver:
    """
    Резолвер по таблице ставок стран.

    Страна берётся из адреса доставки, затем из billing-адреса. Если адресов
    нет или страна неизвестна, используются default_rates (если заданы).

    Args:
        rates_by_country: страна → (налоговый класс → ставки)
        default_rates: ставки по умолчанию (None → контекст не разрешается)
    """

    def __init__(
        self,
        rates_by_country: dict[str, dict[str, list[TaxRate]]] | None = None,
        default_rates: dict[str, list[TaxRate]] | None = None,
    ):
        self._rates_by_country = rates_by_country or {}
        self._default_rates = default_rates

    def resolve(
        self,
        currency: Currency,
        shipping_address: CartAddress | None,
        billing_address: CartAddress | None,
    ) -> TaxContext | None:
        address = shipping_address or billing_address
        rates = None
        if address is not None:
            rates = self._rates_by_country.get(address.country_code)
        if rates is None:
            rates = self._default_rates
        if rates is None:
            return None
        return TaxContext(currency=currency, rates=rates)
