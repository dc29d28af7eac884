"""
Contract Validation Module

Модуль для валидации persisted JSON контрактов корзины.
"""

from .validators import (
    ContractValidator,
    DerivedSetValidator,
    SchemaLoader,
    validate_derived_set_payload,
)

__all__ = [
    # Classes
    "SchemaLoader",
    "ContractValidator",
    "DerivedSetValidator",
    # Functions
    "validate_derived_set_payload",
]
