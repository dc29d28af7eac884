"""
Cart — Агрегат корзины

Владеет строками, адресами, валютой, запрошенными скидками, способом
доставки и кэшированными производными значениями.

Композиция вместо mixin'ов: корзина держит ComputedPropertyCache и
CartEventEmitter как явных коллабораторов.

ИНВАРИАНТЫ:
1. Не более одного адреса каждого типа (shipping / billing)
2. Каждая мутация строк, адресов, скидок, доставки или валюты вызывает invalidate
3. Корзина с заказом (order_id) или слитая (merged_id) неактивна и не мутируется
4. Некорректная мутация отвергается до изменения состояния
5. Корзина с несохранёнными изменениями не пишет производные значения в хранилище
   в обход записи самой корзины (has_unsaved_changes)
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Iterable, Optional

from src.cart.cache import DerivedState
from src.cart.events import (
    CartCompleted,
    CartEventEmitter,
    CartLineChanged,
    CartMerged,
)
from src.core.domain.derived_set import DerivedSet
from src.core.domain.discount import Discount, DiscountRequest
from src.core.domain.lines import AddressType, CartAddress, CartLine, ShippingOption
from src.core.domain.money import Currency, Money
from src.core.domain.tax import TaxBreakdownEntry
from src.pricing.exceptions import CartInactiveError, InvalidLineError

if TYPE_CHECKING:
    from src.cart.cache import ComputedPropertyCache


class Cart:
    """Агрегат корзины (Cart Aggregate)."""

    def __init__(
        self,
        id: str,
        cache: "ComputedPropertyCache",
        emitter: Optional[CartEventEmitter] = None,
        currency: Optional[Currency] = None,
        user_id: Optional[str] = None,
        order_id: Optional[str] = None,
        merged_id: Optional[str] = None,
        meta: Optional[dict[str, Any]] = None,
        completed_at: Optional[datetime] = None,
        lines: Iterable[CartLine] = (),
        addresses: Iterable[CartAddress] = (),
        discounts: Iterable[DiscountRequest] = (),
        shipping_option: Optional[ShippingOption] = None,
    ):
        if not id:
            raise ValueError("Cart id must not be empty")

        self.id = id
        self.currency = currency
        self.user_id = user_id
        self.order_id = order_id
        self.merged_id = merged_id
        self.meta: dict[str, Any] = dict(meta or {})
        self.completed_at = completed_at
        self.shipping_option = shipping_option

        self._cache = cache
        self.emitter = emitter or CartEventEmitter()
        self.derived_state: DerivedState = DerivedState()
        # Сбрасывается репозиторием после add / save
        self.has_unsaved_changes = False

        self._lines: list[CartLine] = list(lines)
        self._addresses: dict[AddressType, CartAddress] = {}
        for address in addresses:
            if address.type in self._addresses:
                raise ValueError(f"Cart {id} has more than one {address.type.value} address")
            self._addresses[address.type] = address
        self._discounts: list[DiscountRequest] = list(discounts)

    def __repr__(self) -> str:
        return f"Cart(id={self.id!r}, lines={len(self._lines)}, active={self.is_active})"

    # =========================================================================
    # Состояние
    # =========================================================================

    @property
    def is_active(self) -> bool:
        """Активна, пока не связана с заказом и не слита в другую корзину."""
        return self.order_id is None and self.merged_id is None

    @property
    def lines(self) -> tuple[CartLine, ...]:
        return tuple(self._lines)

    @property
    def addresses(self) -> tuple[CartAddress, ...]:
        return tuple(self._addresses.values())

    @property
    def shipping_address(self) -> Optional[CartAddress]:
        return self._addresses.get(AddressType.SHIPPING)

    @property
    def billing_address(self) -> Optional[CartAddress]:
        return self._addresses.get(AddressType.BILLING)

    @property
    def discounts(self) -> tuple[DiscountRequest, ...]:
        """Запрошенные скидки (результаты правил). Применённые: applied_discounts."""
        return tuple(self._discounts)

    def line(self, line_id: str) -> Optional[CartLine]:
        for line in self._lines:
            if line.id == line_id:
                return line
        return None

    # =========================================================================
    # Производные значения (через кэш)
    # =========================================================================

    @property
    def total(self) -> Money:
        return self._cache.get(self, "total")

    @property
    def sub_total(self) -> Money:
        return self._cache.get(self, "sub_total")

    @property
    def tax_total(self) -> Money:
        return self._cache.get(self, "tax_total")

    @property
    def discount_total(self) -> Money:
        return self._cache.get(self, "discount_total")

    @property
    def shipping_total(self) -> Money:
        return self._cache.get(self, "shipping_total")

    @property
    def tax_breakdown(self) -> tuple[TaxBreakdownEntry, ...]:
        return tuple(self._cache.get(self, "tax_breakdown"))

    @property
    def applied_discounts(self) -> tuple[Discount, ...]:
        return tuple(self._cache.get(self, "discounts"))

    def derived(self) -> DerivedSet:
        return self._cache.derived_set(self)

    def recalculate(self) -> DerivedSet:
        """Принудительный пересчёт: invalidate + get."""
        self._cache.invalidate(self, reason="recalculate")
        return self._cache.derived_set(self)

    # =========================================================================
    # Мутации
    # =========================================================================

    def _require_active(self) -> None:
        if not self.is_active:
            raise CartInactiveError(
                f"Cart {self.id} is inactive (order_id={self.order_id}, merged_id={self.merged_id})"
            )

    def _changed(self, reason: str) -> None:
        self.has_unsaved_changes = True
        self._cache.invalidate(self, reason=reason)

    def mark_saved(self) -> None:
        """Состояние корзины записано в хранилище (вызывается репозиторием)."""
        self.has_unsaved_changes = False

    def _check_line(self, line: CartLine) -> None:
        if line.quantity < 0:
            raise InvalidLineError(f"Line {line.id}: negative quantity {line.quantity}")
        if line.unit_price.is_negative():
            raise InvalidLineError(f"Line {line.id}: negative unit price {line.unit_price.value}")
        if self.currency is not None and line.unit_price.currency != self.currency:
            raise InvalidLineError(
                f"Line {line.id}: priced in {line.unit_price.currency.code}, "
                f"cart currency is {self.currency.code}"
            )

    def add_line(self, line: CartLine) -> None:
        """
        Добавить строку.

        Raises:
            CartInactiveError: корзина неактивна
            InvalidLineError: дубликат ID, отрицательные значения, чужая валюта
        """
        self._require_active()
        if self.line(line.id) is not None:
            raise InvalidLineError(f"Line {line.id} already exists in cart {self.id}")
        self._check_line(line)

        self._lines.append(line)
        self.emitter.emit(CartLineChanged(cart_id=self.id, line_id=line.id, quantity=line.quantity))
        self._changed("line_added")

    def update_quantity(self, line_id: str, quantity: int) -> None:
        """Изменить количество строки; quantity=0 удаляет строку."""
        self._require_active()
        if quantity < 0:
            raise InvalidLineError(f"Line {line_id}: negative quantity {quantity}")
        if quantity == 0:
            self.remove_line(line_id)
            return

        for index, line in enumerate(self._lines):
            if line.id == line_id:
                self._lines[index] = line.model_copy(update={"quantity": quantity})
                break
        else:
            raise InvalidLineError(f"Line {line_id} not found in cart {self.id}")

        self.emitter.emit(CartLineChanged(cart_id=self.id, line_id=line_id, quantity=quantity))
        self._changed("quantity_changed")

    def remove_line(self, line_id: str) -> None:
        self._require_active()
        line = self.line(line_id)
        if line is None:
            raise InvalidLineError(f"Line {line_id} not found in cart {self.id}")

        self._lines.remove(line)
        # Строковые скидки удалённой строки теряют цель
        self._discounts = [d for d in self._discounts if d.line_id != line_id]
        self.emitter.emit(CartLineChanged(cart_id=self.id, line_id=line_id, quantity=0))
        self._changed("line_removed")

    def set_address(self, address: CartAddress) -> None:
        """Установить адрес; адрес того же типа заменяется."""
        self._require_active()
        self._addresses[address.type] = address
        self._changed(f"{address.type.value}_address_set")

    def remove_address(self, address_type: AddressType) -> None:
        self._require_active()
        if self._addresses.pop(address_type, None) is not None:
            self._changed(f"{address_type.value}_address_removed")

    def set_currency(self, currency: Currency) -> None:
        """
        Raises:
            InvalidLineError: существующие строки оценены в другой валюте
        """
        self._require_active()
        mismatched = [line.id for line in self._lines if line.unit_price.currency != currency]
        if mismatched:
            raise InvalidLineError(
                f"Lines {mismatched} are not priced in {currency.code}"
            )
        self.currency = currency
        self._changed("currency_changed")

    def apply_discount(self, request: DiscountRequest) -> None:
        """Добавить результат правила скидки (повторный identifier заменяется)."""
        self._require_active()
        if request.line_id is not None and self.line(request.line_id) is None:
            raise InvalidLineError(
                f"Discount {request.identifier} targets unknown line {request.line_id}"
            )
        self._discounts = [d for d in self._discounts if d.identifier != request.identifier]
        self._discounts.append(request)
        self._changed("discount_applied")

    def remove_discount(self, identifier: str) -> None:
        self._require_active()
        remaining = [d for d in self._discounts if d.identifier != identifier]
        if len(remaining) != len(self._discounts):
            self._discounts = remaining
            self._changed("discount_removed")

    def set_shipping_option(self, option: Optional[ShippingOption]) -> None:
        self._require_active()
        self.shipping_option = option
        self._changed("shipping_option_changed")

    # =========================================================================
    # Жизненный цикл
    # =========================================================================

    def mark_ordered(self, order_id: str, completed_at: Optional[datetime] = None) -> None:
        """Связать корзину с заказом; после этого корзина неактивна."""
        self._require_active()
        self.order_id = order_id
        self.has_unsaved_changes = True
        self.completed_at = completed_at or datetime.now(timezone.utc)
        self.emitter.emit(CartCompleted(cart_id=self.id, order_id=order_id))

    def merge_into(self, target_cart_id: str) -> None:
        """Пометить корзину слитой в target_cart_id; после этого корзина неактивна."""
        self._require_active()
        if target_cart_id == self.id:
            raise ValueError(f"Cart {self.id} cannot be merged into itself")
        self.merged_id = target_cart_id
        self.has_unsaved_changes = True
        self.emitter.emit(CartMerged(cart_id=self.id, merged_id=target_cart_id))
