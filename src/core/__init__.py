"""
Core domain models and persisted contracts.

This module contains the foundational building blocks that are independent
of storage and pricing engines: money, discounts, taxes, cart lines and the
derived set contract.
"""
