"""
Тесты для репозиториев корзин: InMemoryCartRepository и SqlAlchemyCartRepository

Оба репозитория проверяются одним набором тестов (parametrize):
1. add / get / save / delete
2. Восстановление производных значений при загрузке без пересчёта
3. save_derived: атомарная запись persisted набора
4. active_for_user: без корзин с заказом и слитых
5. Каскадное удаление строк (SQLAlchemy)
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.cart import Cart, ComputedPropertyCache
from src.config import PricingSettings
from src.core.domain import (
    AddressType,
    CartAddress,
    CartLine,
    Currency,
    DiscountRequest,
    DiscountScope,
    Money,
    ShippingOption,
    TaxRate,
)
from src.pricing import PricingManager, StaticTaxResolver
from src.storage import (
    CartRecord,
    InMemoryCartRepository,
    SqlAlchemyCartRepository,
    record_from_cart,
)
from src.storage.sqlalchemy_repository import CartLineRow


USD = Currency(code="USD")
FLAT_10 = TaxRate(identifier="FLAT-10", jurisdiction="XX", percentage=Decimal("10"))


def usd(value: int) -> Money:
    return Money(value=value, currency=USD)


class CountingPricingManager(PricingManager):
    def __init__(self):
        super().__init__()
        self.calls = 0

    def compute(self, snapshot):
        self.calls += 1
        return super().compute(snapshot)


def count_lines(repository: SqlAlchemyCartRepository, cart_id: str) -> int:
    """Количество строк корзины в таблице cart_lines."""
    with Session(repository.engine) as session:
        stmt = select(func.count()).select_from(CartLineRow).where(CartLineRow.cart_id == cart_id)
        return session.execute(stmt).scalar_one()


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture(params=["memory", "sqlalchemy"])
def repository(request):
    if request.param == "memory":
        return InMemoryCartRepository()
    return SqlAlchemyCartRepository("sqlite:///:memory:")


@pytest.fixture
def manager():
    return CountingPricingManager()


@pytest.fixture
def cache(manager, repository):
    resolver = StaticTaxResolver(default_rates={"default": [FLAT_10]})
    return ComputedPropertyCache(manager, resolver, storage=repository)


def build_cart(cache, cart_id: str = "cart-1", user_id: str = "user-1") -> Cart:
    cart = Cart(id=cart_id, cache=cache, currency=USD, user_id=user_id, meta={"channel": "web"})
    cart.add_line(
        CartLine(
            id="l1",
            purchasable_id="sku-1",
            unit_price=usd(1000),
            quantity=2,
            meta={"gift": True},
        )
    )
    cart.add_line(CartLine(id="l2", purchasable_id="sku-2", unit_price=usd(250), quantity=1))
    cart.set_address(CartAddress(type=AddressType.SHIPPING, country_code="GB", city="London"))
    cart.set_address(CartAddress(type=AddressType.BILLING, country_code="GB", postcode="N1"))
    cart.apply_discount(
        DiscountRequest(identifier="HALF", scope=DiscountScope.LINE, percentage=Decimal("50"), line_id="l2")
    )
    cart.set_shipping_option(
        ShippingOption(identifier="std", name="Standard", price=usd(500), taxable=False)
    )
    return cart


# =============================================================================
# ТЕСТЫ: CRUD
# =============================================================================


class TestRepositoryCrud:
    """Сохранение и загрузка корзины."""

    def test_get_unknown(self, repository, cache):
        assert repository.get("missing", cache) is None

    def test_round_trip(self, repository, cache):
        cart = build_cart(cache)
        repository.add(cart)

        loaded = repository.get("cart-1", cache)

        assert loaded is not cart
        assert loaded.currency == USD
        assert loaded.user_id == "user-1"
        assert loaded.meta == {"channel": "web"}
        assert [line.id for line in loaded.lines] == ["l1", "l2"]
        assert loaded.line("l1").meta == {"gift": True}
        assert loaded.line("l1").unit_price == usd(1000)
        assert loaded.shipping_address.city == "London"
        assert loaded.billing_address.postcode == "N1"
        assert loaded.discounts == cart.discounts
        assert loaded.shipping_option == cart.shipping_option
        assert loaded.is_active

    def test_add_duplicate(self, repository, cache):
        repository.add(build_cart(cache))
        with pytest.raises(ValueError, match="already exists"):
            repository.add(build_cart(cache))

    def test_save_replaces_lines(self, repository, cache):
        cart = build_cart(cache)
        repository.add(cart)
        cart.remove_line("l1")
        cart.add_line(CartLine(id="l3", purchasable_id="sku-3", unit_price=usd(10), quantity=4))
        repository.save(cart)

        loaded = repository.get("cart-1", cache)
        assert [line.id for line in loaded.lines] == ["l2", "l3"]

    def test_save_new_cart(self, repository, cache):
        repository.save(build_cart(cache, cart_id="cart-new"))
        assert repository.get("cart-new", cache) is not None

    def test_delete(self, repository, cache):
        repository.add(build_cart(cache))
        assert repository.delete("cart-1") is True
        assert repository.get("cart-1", cache) is None
        assert repository.delete("cart-1") is False

    def test_completed_cart_round_trip(self, repository, cache):
        cart = build_cart(cache)
        cart.mark_ordered("order-1", completed_at=datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc))
        repository.add(cart)

        loaded = repository.get("cart-1", cache)
        assert loaded.order_id == "order-1"
        assert not loaded.is_active
        assert loaded.completed_at.replace(tzinfo=None) == datetime(2026, 3, 1, 9, 30)


# =============================================================================
# ТЕСТЫ: производные значения
# =============================================================================


class TestDerivedPersistence:
    """Persisted набор производных значений."""

    def test_values_survive_reload(self, repository, cache, manager):
        cart = build_cart(cache)
        repository.add(cart)
        # 2000 + 250 - 125 = 2125, налог 200 + 13, доставка 500
        assert cart.total == usd(2838)
        assert manager.calls == 1

        loaded = repository.get("cart-1", cache)

        assert loaded.derived_state.valid is True
        assert loaded.total == usd(2838)
        assert loaded.discount_total == usd(125)
        assert loaded.applied_discounts == cart.applied_discounts
        assert loaded.tax_breakdown == cart.tax_breakdown
        assert manager.calls == 1

    def test_save_derived_unknown_cart(self, repository):
        assert repository.save_derived("missing", {"valid": True, "values": {}}) is False

    def test_corrupted_payload_recomputes(self, repository, cache, manager):
        cart = build_cart(cache)
        repository.add(cart)
        cart.total
        assert repository.save_derived("cart-1", {"valid": True, "values": {"total": "broken"}})

        loaded = repository.get("cart-1", cache)

        assert loaded.derived_state.derived_set is None
        assert loaded.total == usd(2838)
        assert manager.calls == 2

    def test_recompute_after_reload_is_persisted(self, repository, cache, manager):
        cart = build_cart(cache)
        repository.add(cart)

        first = repository.get("cart-1", cache)
        assert first.total == usd(2838)
        second = repository.get("cart-1", cache)
        assert second.total == usd(2838)
        assert manager.calls == 1

    def test_record_carries_payload(self, cache):
        cart = build_cart(cache)
        assert record_from_cart(cart).derived is None
        cart.total
        record = record_from_cart(cart)
        assert record.derived["valid"] is True
        assert record.derived["values"]["total"]["value"] == 2838
        assert isinstance(CartRecord.model_validate_json(record.model_dump_json()), CartRecord)


# =============================================================================
# ТЕСТЫ: выборки
# =============================================================================


class TestActiveForUser:
    """Активные корзины пользователя."""

    def test_excludes_ordered_and_merged(self, repository, cache):
        repository.add(build_cart(cache, cart_id="a-active"))

        ordered = build_cart(cache, cart_id="b-ordered")
        ordered.mark_ordered("order-1")
        repository.add(ordered)

        merged = build_cart(cache, cart_id="c-merged")
        merged.merge_into("a-active")
        repository.add(merged)

        repository.add(build_cart(cache, cart_id="d-other", user_id="user-2"))

        carts = repository.active_for_user("user-1", cache)
        assert [cart.id for cart in carts] == ["a-active"]

    def test_no_carts(self, repository, cache):
        assert repository.active_for_user("nobody", cache) == []


# =============================================================================
# ТЕСТЫ: SQLAlchemy
# =============================================================================


class TestSqlAlchemyRepository:
    """Особенности SQLAlchemy-хранилища."""

    @pytest.fixture
    def sql_repository(self):
        return SqlAlchemyCartRepository("sqlite:///:memory:")

    @pytest.fixture
    def sql_cache(self, sql_repository):
        resolver = StaticTaxResolver(default_rates={"default": [FLAT_10]})
        return ComputedPropertyCache(PricingManager(), resolver, storage=sql_repository)

    def test_delete_cascades_lines(self, sql_repository, sql_cache):
        sql_repository.add(build_cart(sql_cache))
        assert count_lines(sql_repository, "cart-1") == 2

        sql_repository.delete("cart-1")

        assert count_lines(sql_repository, "cart-1") == 0

    def test_save_does_not_duplicate_lines(self, sql_repository, sql_cache):
        cart = build_cart(sql_cache)
        sql_repository.add(cart)
        sql_repository.save(cart)
        sql_repository.save(cart)
        assert count_lines(sql_repository, "cart-1") == 2

    def test_from_settings(self, monkeypatch):
        monkeypatch.setenv("CART_PRICING_DATABASE_URL", "sqlite:///:memory:")
        repository = SqlAlchemyCartRepository.from_settings(PricingSettings())
        assert repository.engine.url.drivername == "sqlite"
        assert repository.engine.url.database == ":memory:"
