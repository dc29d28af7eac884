"""
ComputedPropertyCache — Кэш производных значений корзины

Мемоизация результата PricingManager на экземпляре корзины с сохранением в
durable-состоянии корзины и восстановлением при загрузке.

Контракт:
- get(cart, field): валидное значение → без расчёта; иначе расчёт, атомарная
  запись всех семи полей, пометка valid
- invalidate(cart): все поля устаревшие; вызывается каждой мутацией строк,
  адресов, скидок, доставки или валюты
- restore(cart, payload): явный шаг после загрузки из хранилища

СЛАБАЯ СОГЛАСОВАННОСТЬ:
Межпроцессного сигнала инвалидации нет, версий нет. Устаревание фиксируется
только явным invalidate в том же процессе/транзакции. При конкурентной
мутации одной корзины из двух процессов побеждает последняя запись; читатель
между ними может увидеть набор, вычисленный из уже заменённого состояния.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Protocol

from jsonschema import ValidationError as ContractViolation
from pydantic import ValidationError

from src.cart.events import CartInvalidated, CartRestored, DerivedSetComputed
from src.core.contracts import DerivedSetValidator
from src.core.domain.derived_set import DerivedSet
from src.observability.logging import get_logger
from src.pricing.exceptions import CartPricingError, StalePersistedStateError
from src.pricing.manager import PricingManager
from src.pricing.snapshot import build_snapshot
from src.pricing.tax_resolver import TaxContextResolver

if TYPE_CHECKING:
    from src.cart.aggregate import Cart

logger = get_logger("computed_property_cache")


# =============================================================================
# СОСТОЯНИЕ КЭША НА КОРЗИНЕ
# =============================================================================


@dataclass
class DerivedState:
    """Производные значения, хранящиеся вместе с корзиной."""

    derived_set: Optional[DerivedSet] = None
    valid: bool = False

    def commit(self, derived_set: DerivedSet) -> None:
        # Набор заменяется одним присваиванием: поля никогда не смешиваются
        self.derived_set = derived_set
        self.valid = True

    def expire(self) -> None:
        # Прежние значения сохраняются, но больше не отдаются без пересчёта
        self.valid = False

    def payload(self) -> Optional[dict[str, Any]]:
        """Persisted представление: {"valid": bool, "values": {...}} или None."""
        if self.derived_set is None:
            return None
        return {"valid": self.valid, "values": self.derived_set.to_payload()}


class DerivedSetStorage(Protocol):
    """Хранилище, умеющее атомарно обновить persisted набор корзины."""

    def save_derived(self, cart_id: str, payload: dict[str, Any]) -> bool:
        ...


# =============================================================================
# CACHE
# =============================================================================


class ComputedPropertyCache:
    """
    Кэш производных значений.

    Внутренних блокировок нет: кэш доверяет дисциплине инвалидации
    вызывающего кода (single-threaded-per-request).
    """

    def __init__(
        self,
        manager: PricingManager,
        tax_resolver: TaxContextResolver,
        storage: Optional[DerivedSetStorage] = None,
        persist_on_compute: bool = True,
    ):
        """
        Args:
            manager: движок расчёта (явная зависимость)
            tax_resolver: резолвер налогового контекста для сборки снапшота
            storage: хранилище persisted набора (None → только in-memory)
            persist_on_compute: писать набор в хранилище сразу после расчёта
        """
        self._manager = manager
        self._tax_resolver = tax_resolver
        self._storage = storage
        self._persist_on_compute = persist_on_compute
        self._validator = DerivedSetValidator()

    @classmethod
    def from_settings(
        cls,
        settings,
        tax_resolver: TaxContextResolver,
        storage: Optional[DerivedSetStorage] = None,
    ) -> "ComputedPropertyCache":
        """Кэш с PricingManager и persist_on_compute из PricingSettings."""
        return cls(
            PricingManager.from_settings(settings),
            tax_resolver,
            storage=storage,
            persist_on_compute=settings.persist_on_compute,
        )

    @property
    def persist_on_compute(self) -> bool:
        return self._persist_on_compute

    @property
    def manager(self) -> PricingManager:
        return self._manager

    # -------------------------------------------------------------------------
    # get
    # -------------------------------------------------------------------------

    def get(self, cart: "Cart", field: str) -> Any:
        """
        Производное значение корзины.

        Args:
            cart: агрегат корзины
            field: имя поля ('sub_total' или persisted 'subTotal')

        Returns:
            Значение поля из валидного набора (пересчитанного при необходимости)

        Raises:
            ValueError: неизвестное поле
            ConfigurationError / InvalidLineError: из PricingManager; прежние
                значения корзины остаются нетронутыми
        """
        name = DerivedSet.resolve_field(field)
        return getattr(self.derived_set(cart), name)

    def derived_set(self, cart: "Cart") -> DerivedSet:
        """Весь набор производных значений (с пересчётом при необходимости)."""
        state = cart.derived_state
        if state.valid and state.derived_set is not None:
            logger.debug("cache_hit", cart_id=cart.id)
            return state.derived_set

        logger.debug("cache_miss", cart_id=cart.id, had_values=state.derived_set is not None)
        return self._recompute(cart)

    def _recompute(self, cart: "Cart") -> DerivedSet:
        snapshot = build_snapshot(cart, self._tax_resolver)
        try:
            derived = self._manager.compute(snapshot)
        except CartPricingError as exc:
            logger.warning(
                "recompute_failed",
                cart_id=cart.id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise

        if not cart.is_active:
            # Корзина с заказом или слитая не изменяется операциями расчёта
            logger.info("recompute_not_committed_inactive_cart", cart_id=cart.id)
            cart.emitter.emit(
                DerivedSetComputed(
                    cart_id=cart.id,
                    total=derived.total.value,
                    currency_code=derived.total.currency.code,
                    committed=False,
                )
            )
            return derived

        # Сначала durable-запись: при её ошибке in-memory состояние не меняется.
        # Несохранённая корзина: набор уходит в хранилище только с repository.save()
        if self._storage is not None and self._persist_on_compute:
            if cart.has_unsaved_changes:
                logger.debug("derived_not_persisted_unsaved_changes", cart_id=cart.id)
            else:
                payload = {"valid": True, "values": derived.to_payload()}
                stored = self._storage.save_derived(cart.id, payload)
                if not stored:
                    logger.debug("derived_not_persisted_unknown_cart", cart_id=cart.id)

        cart.derived_state.commit(derived)
        cart.emitter.emit(
            DerivedSetComputed(
                cart_id=cart.id,
                total=derived.total.value,
                currency_code=derived.total.currency.code,
                committed=True,
            )
        )
        return derived

    # -------------------------------------------------------------------------
    # invalidate
    # -------------------------------------------------------------------------

    def invalidate(self, cart: "Cart", reason: str = "mutation") -> None:
        """Пометить все производные значения корзины устаревшими."""
        cart.derived_state.expire()
        logger.debug("cache_invalidated", cart_id=cart.id, reason=reason)
        cart.emitter.emit(CartInvalidated(cart_id=cart.id, reason=reason))

    # -------------------------------------------------------------------------
    # restore
    # -------------------------------------------------------------------------

    def restore(self, cart: "Cart", payload: Optional[dict[str, Any]]) -> bool:
        """
        Восстановление persisted набора в in-memory состояние корзины.

        Непригодный payload не пробрасывает ошибку: состояние остаётся пустым,
        следующий get выполнит пересчёт.

        Args:
            cart: только что загруженная корзина
            payload: {"valid": bool, "values": {...}} или None

        Returns:
            True если восстановлен валидный набор (get обслуживается без расчёта)
        """
        if payload is None:
            return False

        try:
            derived = self._deserialize(cart, payload)
        except StalePersistedStateError as exc:
            logger.warning("restore_rejected", cart_id=cart.id, reason=str(exc))
            cart.derived_state.derived_set = None
            cart.derived_state.valid = False
            return False

        valid = bool(payload["valid"])
        cart.derived_state.derived_set = derived
        cart.derived_state.valid = valid
        logger.debug("cache_restored", cart_id=cart.id, valid=valid)
        cart.emitter.emit(CartRestored(cart_id=cart.id, valid=valid))
        return valid

    def _deserialize(self, cart: "Cart", payload: dict[str, Any]) -> DerivedSet:
        """
        Raises:
            StalePersistedStateError: payload нарушает контракт или валюту корзины
        """
        try:
            self._validator.validate(payload)
            derived = DerivedSet.from_payload(payload["values"])
        except (ContractViolation, ValidationError) as exc:
            raise StalePersistedStateError(f"Persisted derived set rejected: {exc}") from exc

        if cart.currency is not None and derived.total.currency != cart.currency:
            raise StalePersistedStateError(
                f"Persisted derived set is in {derived.total.currency.code}, "
                f"cart currency is {cart.currency.code}"
            )
        return derived
