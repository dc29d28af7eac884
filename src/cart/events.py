"""Cart events and synchronous in-process emitter.

Агрегат корзины держит эмиттер как явного коллаборатора. Обработчики
вызываются синхронно в порядке подписки; исключения обработчиков
пробрасываются вызывающему коду.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Optional


# =============================================================================
# EVENTS
# =============================================================================


@dataclass(frozen=True)
class CartEvent:
    """Базовое событие корзины."""

    cart_id: str


@dataclass(frozen=True)
class CartLineChanged(CartEvent):
    """Строка добавлена, изменена или удалена (quantity=0 при удалении)."""

    line_id: str
    quantity: int


@dataclass(frozen=True)
class CartInvalidated(CartEvent):
    """Производные значения помечены устаревшими."""

    reason: str


@dataclass(frozen=True)
class DerivedSetComputed(CartEvent):
    """Производные значения пересчитаны."""

    total: int
    currency_code: str
    committed: bool


@dataclass(frozen=True)
class CartRestored(CartEvent):
    """Производные значения восстановлены из хранилища."""

    valid: bool


@dataclass(frozen=True)
class CartCompleted(CartEvent):
    """Корзина связана с заказом."""

    order_id: str


@dataclass(frozen=True)
class CartMerged(CartEvent):
    """Корзина слита в другую корзину."""

    merged_id: str


# =============================================================================
# EMITTER
# =============================================================================


class CartEventEmitter:
    """Emitter: subscribe by event type, emit invokes handlers.

    Подписка на базовый тип (например, CartEvent) получает все его подтипы.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable[[CartEvent], None]]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Callable[[CartEvent], None]) -> None:
        self._handlers[event_type].append(handler)

    def emit(self, event: CartEvent) -> None:
        for event_type in type(event).__mro__:
            for handler in self._handlers.get(event_type, []):
                handler(event)


def default_emitter(activity_log: Optional[Callable[[CartEvent], None]] = None) -> CartEventEmitter:
    """Эмиттер с подпиской журнала активности на все события корзины."""
    emitter = CartEventEmitter()
    if activity_log is not None:
        emitter.subscribe(CartEvent, activity_log)
    return emitter
