"""
PricingManager — Движок расчёта производных значений корзины

Чистое вычисление: CartSnapshot → DerivedSet. Никаких побочных эффектов,
никакой записи в хранилище.

Порядок расчёта:
1. Subtotal = Σ unit_price × quantity (точно, в минорных единицах)
2. Скидки: сначала по строкам, затем на корзину (от subtotal после скидок
   по строкам), затем на доставку
3. Налог: по каждой строке (база после скидок) и по доставке × ставка
4. Доставка: стоимость выбранного способа (ноль, если способ не выбран)
5. Итог = subtotal - discount_total + tax_total + shipping_total

ПОЛИТИКА СКИДОК:
- Скидка никогда не опускает строку или subtotal ниже нуля
- Сумма сверх оставшейся базы обрезается (clamp), остаток отбрасывается
  и НЕ переносится на другие строки
- Скидка на корзину распределяется по строкам пропорционально их
  оставшейся базе (метод наибольших остатков) для расчёта налога по строкам

ПОЛИТИКА ОКРУГЛЕНИЯ:
- Каждое значение округляется до минорной единицы в момент финализации
  (налог записи, сумма процентной скидки)
- Итог собирается из уже округлённых компонент
"""

from src.core.domain.derived_set import DerivedSet
from src.core.domain.discount import Discount, DiscountRequest, DiscountScope
from src.core.domain.money import (
    DEFAULT_ROUNDING,
    SUPPORTED_ROUNDING_MODES,
    Currency,
    Money,
    sum_money,
)
from src.core.domain.tax import SHIPPING_SOURCE, TaxBreakdownEntry, TaxContext, TaxRate
from src.observability.logging import get_logger
from src.pricing.exceptions import ConfigurationError, InvalidLineError
from src.pricing.snapshot import CartSnapshot

logger = get_logger("pricing_manager")


class PricingManager:
    """
    Stateless движок расчёта корзины.

    Передаётся явно (dependency injection) в ComputedPropertyCache; глобального
    экземпляра нет.
    """

    def __init__(self, rounding: str = DEFAULT_ROUNDING):
        """
        Args:
            rounding: режим округления decimal для финализации значений

        Raises:
            ConfigurationError: если режим округления не поддерживается
        """
        if rounding not in SUPPORTED_ROUNDING_MODES:
            raise ConfigurationError(f"Unsupported rounding mode: {rounding}")
        self.rounding = rounding

    @classmethod
    def from_settings(cls, settings) -> "PricingManager":
        return cls(rounding=settings.rounding_mode)

    def compute(self, snapshot: CartSnapshot) -> DerivedSet:
        """Полный расчёт производных значений корзины.

        Args:
            snapshot: снимок корзины (строки, скидки, доставка, налоговый контекст)

        Returns:
            DerivedSet со всеми семью полями

        Raises:
            ConfigurationError: нет валюты / налогового контекста, чужая валюта
                в скидке, ставке или доставке
            InvalidLineError: отрицательные количество/цена, чужая валюта строки,
                дубликат ID строки, скидка на несуществующую строку
        """
        # 1. Контекст и валидация входа
        currency, tax_context = self._require_context(snapshot)
        self._validate_lines(snapshot, currency)
        self._validate_discounts(snapshot.discounts, currency)
        zero = Money.zero(currency)

        # 2. Subtotal (точно, без округления)
        bases: dict[str, Money] = {line.id: line.line_total() for line in snapshot.lines}
        sub_total = sum_money(list(bases.values()), currency)

        # 3. Скидки: line → cart → shipping
        applied: list[Discount] = []
        for request in self._requests(snapshot, DiscountScope.LINE):
            self._apply_line_discount(request, bases, applied)

        for request in self._requests(snapshot, DiscountScope.CART):
            self._apply_cart_discount(request, bases, applied, zero)

        shipping_total = self._shipping_total(snapshot, currency)
        shipping_base = shipping_total
        for request in self._requests(snapshot, DiscountScope.SHIPPING):
            amount = self._clamped_amount(request, shipping_base)
            if amount.is_zero():
                continue
            shipping_base = shipping_base - amount
            applied.append(
                Discount(identifier=request.identifier, amount=amount, scope=DiscountScope.SHIPPING)
            )

        discount_total = sum_money([d.amount for d in applied], currency)

        # 4. Налог по строкам и доставке
        entries: list[TaxBreakdownEntry] = []
        for line in snapshot.lines:
            entries.extend(
                self._tax_entries(
                    source=line.id,
                    base=bases[line.id],
                    quantity=line.quantity,
                    rates=tax_context.rates_for(line.tax_class),
                    currency=currency,
                )
            )

        # Пустая корзина: total = shipping_total, доставка налогом не облагается
        option = snapshot.shipping_option
        if snapshot.lines and option is not None and option.taxable:
            entries.extend(
                self._tax_entries(
                    source=SHIPPING_SOURCE,
                    base=shipping_base,
                    quantity=1,
                    rates=tax_context.rates_for(option.tax_class),
                    currency=currency,
                )
            )

        tax_total = sum_money([e.amount for e in entries], currency)

        # 5. Итог из уже округлённых компонент
        total = sub_total - discount_total + tax_total + shipping_total

        logger.debug(
            "pricing_computed",
            cart_id=snapshot.cart_id,
            sub_total=sub_total.value,
            discount_total=discount_total.value,
            tax_total=tax_total.value,
            shipping_total=shipping_total.value,
            total=total.value,
        )

        return DerivedSet(
            total=total,
            sub_total=sub_total,
            tax_total=tax_total,
            discount_total=discount_total,
            tax_breakdown=entries,
            shipping_total=shipping_total,
            discounts=applied,
        )

    # =========================================================================
    # Валидация
    # =========================================================================

    def _require_context(self, snapshot: CartSnapshot) -> tuple[Currency, TaxContext]:
        if snapshot.currency is None:
            raise ConfigurationError(f"Cart {snapshot.cart_id} has no currency")
        if snapshot.tax_context is None:
            raise ConfigurationError(f"Tax context unresolved for cart {snapshot.cart_id}")
        if snapshot.tax_context.currency != snapshot.currency:
            raise ConfigurationError(
                f"Tax context currency {snapshot.tax_context.currency.code} "
                f"does not match cart currency {snapshot.currency.code}"
            )
        return snapshot.currency, snapshot.tax_context

    def _validate_lines(self, snapshot: CartSnapshot, currency: Currency) -> None:
        seen: set[str] = set()
        for line in snapshot.lines:
            if line.id in seen:
                raise InvalidLineError(f"Duplicate line id: {line.id}")
            seen.add(line.id)
            if line.quantity < 0:
                raise InvalidLineError(f"Line {line.id}: negative quantity {line.quantity}")
            if line.unit_price.is_negative():
                raise InvalidLineError(
                    f"Line {line.id}: negative unit price {line.unit_price.value}"
                )
            if line.unit_price.currency != currency:
                raise InvalidLineError(
                    f"Line {line.id}: priced in {line.unit_price.currency.code}, "
                    f"cart currency is {currency.code}"
                )

        option = snapshot.shipping_option
        if option is not None and option.price.currency != currency:
            raise ConfigurationError(
                f"Shipping option {option.identifier} priced in {option.price.currency.code}"
            )

    def _validate_discounts(self, requests: list[DiscountRequest], currency: Currency) -> None:
        for request in requests:
            if request.amount is not None and request.amount.currency != currency:
                raise ConfigurationError(
                    f"Discount {request.identifier} is in {request.amount.currency.code}, "
                    f"cart currency is {currency.code}"
                )

    # =========================================================================
    # Скидки
    # =========================================================================

    @staticmethod
    def _requests(snapshot: CartSnapshot, scope: DiscountScope) -> list[DiscountRequest]:
        return [r for r in snapshot.discounts if r.scope == scope]

    def _clamped_amount(self, request: DiscountRequest, base: Money) -> Money:
        """Запрошенная сумма, обрезанная до оставшейся базы."""
        if request.amount is not None:
            requested = request.amount
        else:
            requested = base.percentage(request.percentage, self.rounding)
        return requested.min(base)

    def _apply_line_discount(
        self,
        request: DiscountRequest,
        bases: dict[str, Money],
        applied: list[Discount],
    ) -> None:
        if request.line_id not in bases:
            raise InvalidLineError(
                f"Discount {request.identifier} targets unknown line {request.line_id}"
            )
        base = bases[request.line_id]
        amount = self._clamped_amount(request, base)
        if amount.is_zero():
            return
        bases[request.line_id] = base - amount
        applied.append(
            Discount(
                identifier=request.identifier,
                amount=amount,
                scope=DiscountScope.LINE,
                line_id=request.line_id,
            )
        )

    def _apply_cart_discount(
        self,
        request: DiscountRequest,
        bases: dict[str, Money],
        applied: list[Discount],
        zero: Money,
    ) -> None:
        remaining = sum_money(list(bases.values()), zero.currency)
        amount = self._clamped_amount(request, remaining)
        if amount.is_zero():
            return

        line_ids = list(bases)
        shares = amount.allocate([bases[line_id].value for line_id in line_ids])
        for line_id, share in zip(line_ids, shares):
            bases[line_id] = bases[line_id] - share

        applied.append(
            Discount(identifier=request.identifier, amount=amount, scope=DiscountScope.CART)
        )

    # =========================================================================
    # Доставка и налог
    # =========================================================================

    @staticmethod
    def _shipping_total(snapshot: CartSnapshot, currency: Currency) -> Money:
        if snapshot.shipping_option is None:
            return Money.zero(currency)
        return snapshot.shipping_option.price

    def _tax_entries(
        self,
        source: str,
        base: Money,
        quantity: int,
        rates: list[TaxRate],
        currency: Currency,
    ) -> list[TaxBreakdownEntry]:
        """Одна запись на каждую ставку для строки или доставки."""
        entries = []
        for rate in rates:
            if rate.percentage is not None:
                amount = base.percentage(rate.percentage, self.rounding)
            else:
                if rate.fixed_amount.currency != currency:
                    raise ConfigurationError(
                        f"Tax rate {rate.identifier} is in {rate.fixed_amount.currency.code}"
                    )
                # Фиксированный налог не начисляется на нулевую базу
                if base.is_zero():
                    continue
                amount = rate.fixed_amount * quantity

            entries.append(
                TaxBreakdownEntry(
                    identifier=rate.identifier,
                    jurisdiction=rate.jurisdiction,
                    percentage=rate.percentage,
                    taxable=base,
                    amount=amount,
                    source=source,
                )
            )
        return entries
