"""
Domain models and value objects.

Contains fundamental cart pricing values: Money, Discount, TaxBreakdownEntry,
cart lines/addresses and the DerivedSet.
"""

from src.core.domain.derived_set import DERIVED_FIELDS, DerivedSet
from src.core.domain.discount import Discount, DiscountRequest, DiscountScope
from src.core.domain.lines import AddressType, CartAddress, CartLine, ShippingOption
from src.core.domain.money import (
    DEFAULT_ROUNDING,
    SUPPORTED_ROUNDING_MODES,
    Currency,
    Money,
    round_minor,
    sum_money,
)
from src.core.domain.tax import (
    SHIPPING_SOURCE,
    TaxBreakdownEntry,
    TaxContext,
    TaxRate,
    summarize_by_rate,
)

__all__ = [
    # Money module
    "DEFAULT_ROUNDING",
    "SUPPORTED_ROUNDING_MODES",
    "Currency",
    "Money",
    "round_minor",
    "sum_money",
    # Discount module
    "Discount",
    "DiscountRequest",
    "DiscountScope",
    # Tax module
    "SHIPPING_SOURCE",
    "TaxBreakdownEntry",
    "TaxContext",
    "TaxRate",
    "summarize_by_rate",
    # Lines module
    "AddressType",
    "CartAddress",
    "CartLine",
    "ShippingOption",
    # Derived set
    "DERIVED_FIELDS",
    "DerivedSet",
]
