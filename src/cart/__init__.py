"""
Cart aggregate, computed-property cache and cart events.

Корзина держит кэш производных значений и эмиттер событий как явных
коллабораторов.
"""

from .aggregate import Cart
from .cache import ComputedPropertyCache, DerivedSetStorage, DerivedState
from .events import (
    CartCompleted,
    CartEvent,
    CartEventEmitter,
    CartInvalidated,
    CartLineChanged,
    CartMerged,
    CartRestored,
    DerivedSetComputed,
    default_emitter,
)

__all__ = [
    # Aggregate
    "Cart",
    # Cache
    "ComputedPropertyCache",
    "DerivedSetStorage",
    "DerivedState",
    # Events
    "CartEvent",
    "CartLineChanged",
    "CartInvalidated",
    "DerivedSetComputed",
    "CartRestored",
    "CartCompleted",
    "CartMerged",
    "CartEventEmitter",
    "default_emitter",
]
