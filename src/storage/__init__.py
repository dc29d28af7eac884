"""
Cart storage.

Репозитории корзин: in-memory и SQLAlchemy. Persisted набор производных
значений хранится в записи корзины; load-рутина явно вызывает cache.restore().
"""

from .repository import (
    CartRecord,
    CartRepository,
    InMemoryCartRepository,
    cart_from_record,
    record_from_cart,
)
from .sqlalchemy_repository import SqlAlchemyCartRepository

__all__ = [
    "CartRecord",
    "CartRepository",
    "InMemoryCartRepository",
    "SqlAlchemyCartRepository",
    "cart_from_record",
    "record_from_cart",
]
