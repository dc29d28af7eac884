"""
Cart storage — repository protocol, record mapping and in-memory repository.

Загрузка корзины является единственной точкой восстановления кэша: load-рутина
репозитория явно вызывает cache.restore() для persisted набора.
"""

import copy
from datetime import datetime
from typing import Any, Optional, Protocol

from pydantic import BaseModel, Field

from src.cart.aggregate import Cart
from src.cart.cache import ComputedPropertyCache
from src.cart.events import CartEventEmitter
from src.core.domain.discount import DiscountRequest
from src.core.domain.lines import CartAddress, CartLine, ShippingOption
from src.core.domain.money import Currency
from src.observability.logging import get_logger

logger = get_logger("cart_repository")


# =============================================================================
# RECORD
# =============================================================================


class CartRecord(BaseModel):
    """Durable-представление корзины вместе с persisted производными значениями."""

    id: str = Field(..., min_length=1)
    currency: Optional[Currency] = None
    user_id: Optional[str] = None
    order_id: Optional[str] = None
    merged_id: Optional[str] = None
    meta: dict[str, Any] = Field(default_factory=dict)
    completed_at: Optional[datetime] = None
    lines: list[CartLine] = Field(default_factory=list)
    addresses: list[CartAddress] = Field(default_factory=list)
    discounts: list[DiscountRequest] = Field(default_factory=list)
    shipping_option: Optional[ShippingOption] = None
    derived: Optional[dict[str, Any]] = Field(
        None, description='Persisted набор: {"valid": bool, "values": {...}}'
    )


def record_from_cart(cart: Cart) -> CartRecord:
    return CartRecord(
        id=cart.id,
        currency=cart.currency,
        user_id=cart.user_id,
        order_id=cart.order_id,
        merged_id=cart.merged_id,
        meta=cart.meta,
        completed_at=cart.completed_at,
        lines=list(cart.lines),
        addresses=list(cart.addresses),
        discounts=list(cart.discounts),
        shipping_option=cart.shipping_option,
        derived=cart.derived_state.payload(),
    )


def cart_from_record(
    record: CartRecord,
    cache: ComputedPropertyCache,
    emitter: Optional[CartEventEmitter] = None,
) -> Cart:
    """
    Сборка агрегата из записи + явное восстановление кэша.

    Args:
        record: durable-запись корзины
        cache: кэш производных значений для новой корзины
        emitter: эмиттер событий (None → новый пустой)
    """
    cart = Cart(
        id=record.id,
        cache=cache,
        emitter=emitter,
        currency=record.currency,
        user_id=record.user_id,
        order_id=record.order_id,
        merged_id=record.merged_id,
        meta=record.meta,
        completed_at=record.completed_at,
        lines=record.lines,
        addresses=record.addresses,
        discounts=record.discounts,
        shipping_option=record.shipping_option,
    )
    cache.restore(cart, record.derived)
    return cart


# =============================================================================
# REPOSITORY PROTOCOL
# =============================================================================


class CartRepository(Protocol):
    """Repository: get by id, add new, save existing, atomic derived update."""

    def get(
        self,
        cart_id: str,
        cache: ComputedPropertyCache,
        emitter: Optional[CartEventEmitter] = None,
    ) -> Optional[Cart]:
        ...

    def add(self, cart: Cart) -> None:
        ...

    def save(self, cart: Cart) -> None:
        ...

    def save_derived(self, cart_id: str, payload: dict[str, Any]) -> bool:
        ...

    def delete(self, cart_id: str) -> bool:
        ...

    def active_for_user(
        self,
        user_id: str,
        cache: ComputedPropertyCache,
        emitter: Optional[CartEventEmitter] = None,
    ) -> list[Cart]:
        ...


# =============================================================================
# IN-MEMORY REPOSITORY
# =============================================================================


class InMemoryCartRepository:
    """
    In-memory репозиторий.

    Хранит сериализованные записи, поэтому каждый get возвращает новый
    агрегат, как после перезагрузки из базы данных.
    """

    def __init__(self) -> None:
        self._records: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._records)

    def get(
        self,
        cart_id: str,
        cache: ComputedPropertyCache,
        emitter: Optional[CartEventEmitter] = None,
    ) -> Optional[Cart]:
        raw = self._records.get(cart_id)
        if raw is None:
            return None
        return cart_from_record(CartRecord.model_validate_json(raw), cache, emitter)

    def add(self, cart: Cart) -> None:
        """
        Raises:
            ValueError: корзина с таким id уже существует
        """
        if cart.id in self._records:
            raise ValueError(f"Cart {cart.id} already exists")
        self._records[cart.id] = record_from_cart(cart).model_dump_json()
        cart.mark_saved()
        logger.debug("cart_added", cart_id=cart.id)

    def save(self, cart: Cart) -> None:
        self._records[cart.id] = record_from_cart(cart).model_dump_json()
        cart.mark_saved()
        logger.debug("cart_saved", cart_id=cart.id)

    def save_derived(self, cart_id: str, payload: dict[str, Any]) -> bool:
        raw = self._records.get(cart_id)
        if raw is None:
            return False
        record = CartRecord.model_validate_json(raw)
        record.derived = copy.deepcopy(payload)
        self._records[cart_id] = record.model_dump_json()
        return True

    def delete(self, cart_id: str) -> bool:
        # Строки и адреса хранятся внутри записи и удаляются вместе с ней
        return self._records.pop(cart_id, None) is not None

    def active_for_user(
        self,
        user_id: str,
        cache: ComputedPropertyCache,
        emitter: Optional[CartEventEmitter] = None,
    ) -> list[Cart]:
        carts = []
        for raw in self._records.values():
            record = CartRecord.model_validate_json(raw)
            if record.user_id != user_id:
                continue
            if record.order_id is not None or record.merged_id is not None:
                continue
            carts.append(cart_from_record(record, cache, emitter))
        return carts
