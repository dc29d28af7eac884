"""Configuration for the cart pricing core."""

from .settings import PricingSettings

__all__ = ["PricingSettings"]
