"""
Test suite for cart-pricing-core

Contains:
- tests/unit/          : Unit tests for money, pricing, cache, cart and storage
"""
