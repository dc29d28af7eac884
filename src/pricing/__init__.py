"""
Cart pricing engine.

PricingManager — чистый расчёт производных значений корзины из снапшота.
"""

from .exceptions import (
    CartInactiveError,
    CartPricingError,
    ConfigurationError,
    InvalidLineError,
    StalePersistedStateError,
)
from .manager import PricingManager
from .snapshot import CartSnapshot, build_snapshot
from .tax_resolver import StaticTaxResolver, TaxContextResolver

__all__ = [
    # Exceptions
    "CartPricingError",
    "ConfigurationError",
    "InvalidLineError",
    "StalePersistedStateError",
    "CartInactiveError",
    # Engine
    "PricingManager",
    "CartSnapshot",
    "build_snapshot",
    # Tax context
    "TaxContextResolver",
    "StaticTaxResolver",
]
