"""
SQLAlchemy cart storage.

Таблицы:
- carts: корзина + JSON-колонки скидок, доставки, meta и persisted набора (derived)
- cart_lines: строки корзины (каскадное удаление вместе с корзиной)
- cart_addresses: адреса корзины (каскадное удаление вместе с корзиной)

save_derived выполняет один UPDATE колонки derived, поэтому все семь полей пишутся атомарно.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, create_engine, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    relationship,
    selectinload,
    sessionmaker,
)

from src.cart.aggregate import Cart
from src.cart.cache import ComputedPropertyCache
from src.cart.events import CartEventEmitter
from src.observability.logging import get_logger
from src.storage.repository import CartRecord, cart_from_record, record_from_cart

logger = get_logger("sqlalchemy_cart_repository")


# =============================================================================
# MODELS
# =============================================================================


class Base(DeclarativeBase):
    pass


class CartRow(Base):
    __tablename__ = "carts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    currency: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    order_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    merged_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    meta: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    discounts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    shipping_option: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    # Persisted набор производных значений: {"valid": bool, "values": {...}}
    derived: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    lines: Mapped[list["CartLineRow"]] = relationship(
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartLineRow.position",
    )
    addresses: Mapped[list["CartAddressRow"]] = relationship(
        back_populates="cart",
        cascade="all, delete-orphan",
    )


class CartLineRow(Base):
    __tablename__ = "cart_lines"

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cart_id: Mapped[str] = mapped_column(
        ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    line_id: Mapped[str] = mapped_column(String(64), nullable=False)
    purchasable_id: Mapped[str] = mapped_column(String(64), nullable=False)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    currency_decimal_places: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    tax_class: Mapped[str] = mapped_column(String(64), nullable=False)
    meta: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    cart: Mapped[CartRow] = relationship(back_populates="lines")


class CartAddressRow(Base):
    __tablename__ = "cart_addresses"

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cart_id: Mapped[str] = mapped_column(
        ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    country_code: Mapped[str] = mapped_column(String(2), nullable=False)
    state: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    postcode: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    line_one: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    cart: Mapped[CartRow] = relationship(back_populates="addresses")


# =============================================================================
# MAPPING
# =============================================================================


def _record_to_row(record: CartRecord, row: CartRow) -> None:
    data = record.model_dump(mode="json")

    row.currency = data["currency"]
    row.user_id = record.user_id
    row.order_id = record.order_id
    row.merged_id = record.merged_id
    row.meta = data["meta"]
    row.completed_at = record.completed_at
    row.discounts = data["discounts"]
    row.shipping_option = data["shipping_option"]
    row.derived = data["derived"]

    row.lines = [
        CartLineRow(
            position=position,
            line_id=line["id"],
            purchasable_id=line["purchasable_id"],
            unit_price=line["unit_price"]["value"],
            currency_code=line["unit_price"]["currency"]["code"],
            currency_decimal_places=line["unit_price"]["currency"]["decimal_places"],
            quantity=line["quantity"],
            tax_class=line["tax_class"],
            meta=line["meta"],
        )
        for position, line in enumerate(data["lines"])
    ]
    row.addresses = [CartAddressRow(**address) for address in data["addresses"]]


def _row_to_record(row: CartRow) -> CartRecord:
    return CartRecord.model_validate(
        {
            "id": row.id,
            "currency": row.currency,
            "user_id": row.user_id,
            "order_id": row.order_id,
            "merged_id": row.merged_id,
            "meta": row.meta or {},
            "completed_at": row.completed_at,
            "lines": [
                {
                    "id": line.line_id,
                    "purchasable_id": line.purchasable_id,
                    "unit_price": {
                        "value": line.unit_price,
                        "currency": {
                            "code": line.currency_code,
                            "decimal_places": line.currency_decimal_places,
                        },
                    },
                    "quantity": line.quantity,
                    "tax_class": line.tax_class,
                    "meta": line.meta or {},
                }
                for line in row.lines
            ],
            "addresses": [
                {
                    "type": address.type,
                    "country_code": address.country_code,
                    "state": address.state,
                    "postcode": address.postcode,
                    "city": address.city,
                    "line_one": address.line_one,
                }
                for address in row.addresses
            ],
            "discounts": row.discounts or [],
            "shipping_option": row.shipping_option,
            "derived": row.derived,
        }
    )


# =============================================================================
# REPOSITORY
# =============================================================================


class SqlAlchemyCartRepository:
    """Репозиторий корзин поверх SQLAlchemy ORM (синхронные сессии)."""

    def __init__(self, engine: Engine | str):
        self.engine = create_engine(engine, echo=False) if isinstance(engine, str) else engine
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

        # Создаем таблицы
        Base.metadata.create_all(bind=self.engine)

    @classmethod
    def from_settings(cls, settings) -> "SqlAlchemyCartRepository":
        return cls(settings.database_url)

    def _session(self) -> Session:
        return self._session_factory()

    def _load_row(self, session: Session, cart_id: str) -> Optional[CartRow]:
        stmt = (
            select(CartRow)
            .where(CartRow.id == cart_id)
            .options(selectinload(CartRow.lines), selectinload(CartRow.addresses))
        )
        return session.execute(stmt).scalar_one_or_none()

    def get(
        self,
        cart_id: str,
        cache: ComputedPropertyCache,
        emitter: Optional[CartEventEmitter] = None,
    ) -> Optional[Cart]:
        with self._session() as session:
            row = self._load_row(session, cart_id)
            if row is None:
                return None
            record = _row_to_record(row)
        return cart_from_record(record, cache, emitter)

    def add(self, cart: Cart) -> None:
        """
        Raises:
            ValueError: корзина с таким id уже существует
        """
        with self._session() as session, session.begin():
            if session.get(CartRow, cart.id) is not None:
                raise ValueError(f"Cart {cart.id} already exists")
            row = CartRow(id=cart.id)
            _record_to_row(record_from_cart(cart), row)
            session.add(row)
        cart.mark_saved()
        logger.debug("cart_added", cart_id=cart.id)

    def save(self, cart: Cart) -> None:
        with self._session() as session, session.begin():
            row = self._load_row(session, cart.id)
            if row is None:
                row = CartRow(id=cart.id)
                session.add(row)
            _record_to_row(record_from_cart(cart), row)
        cart.mark_saved()
        logger.debug("cart_saved", cart_id=cart.id)

    def save_derived(self, cart_id: str, payload: dict[str, Any]) -> bool:
        with self._session() as session, session.begin():
            result = session.execute(
                update(CartRow).where(CartRow.id == cart_id).values(derived=payload)
            )
            return result.rowcount > 0

    def delete(self, cart_id: str) -> bool:
        with self._session() as session, session.begin():
            row = self._load_row(session, cart_id)
            if row is None:
                return False
            # ORM cascade удаляет строки и адреса
            session.delete(row)
            return True

    def active_for_user(
        self,
        user_id: str,
        cache: ComputedPropertyCache,
        emitter: Optional[CartEventEmitter] = None,
    ) -> list[Cart]:
        with self._session() as session:
            stmt = (
                select(CartRow)
                .where(
                    CartRow.user_id == user_id,
                    CartRow.order_id.is_(None),
                    CartRow.merged_id.is_(None),
                )
                .order_by(CartRow.id)
                .options(selectinload(CartRow.lines), selectinload(CartRow.addresses))
            )
            records = [_row_to_record(row) for row in session.execute(stmt).scalars()]
        return [cart_from_record(record, cache, emitter) for record in records]
