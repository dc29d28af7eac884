"""
Money — Денежные значения в минорных единицах

Единственный допустимый способ представления денег в системе:
- value: целое число минорных единиц (центы, копейки)
- currency: валюта с количеством знаков после запятой

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Никакой двоичной плавающей точки: value всегда int, дроби только через Decimal
2. Арифметика только между одинаковыми валютами
3. Округление до минорной единицы выполняется в момент финализации значения
4. Равенство и порядок определяются значением (value-based)
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Final

from pydantic import BaseModel, Field, StrictInt


# =============================================================================
# ПАРАМЕТРЫ ОКРУГЛЕНИЯ
# =============================================================================

# Режим округления по умолчанию для финализации денежных значений
DEFAULT_ROUNDING: Final[str] = ROUND_HALF_UP

# Допустимые режимы округления (имена констант модуля decimal)
SUPPORTED_ROUNDING_MODES: Final[frozenset[str]] = frozenset(
    {
        "ROUND_HALF_UP",
        "ROUND_HALF_EVEN",
        "ROUND_HALF_DOWN",
        "ROUND_UP",
        "ROUND_DOWN",
        "ROUND_CEILING",
        "ROUND_FLOOR",
    }
)

_ONE: Final[Decimal] = Decimal(1)
_HUNDRED: Final[Decimal] = Decimal(100)


def round_minor(amount: Decimal, rounding: str = DEFAULT_ROUNDING) -> int:
    """
    Округление дробной суммы минорных единиц до целого.

    Args:
        amount: Сумма в минорных единицах (может содержать дробную часть)
        rounding: Режим округления decimal (default ROUND_HALF_UP)

    Returns:
        Целое количество минорных единиц

    Raises:
        ValueError: Если режим округления не поддерживается
    """
    if rounding not in SUPPORTED_ROUNDING_MODES:
        raise ValueError(f"Unsupported rounding mode: {rounding}")
    return int(amount.quantize(_ONE, rounding=rounding))


# =============================================================================
# CURRENCY
# =============================================================================


class Currency(BaseModel):
    """
    Валюта корзины.

    decimal_places определяет точность минорной единицы (USD → 2, JPY → 0).
    """

    code: str = Field(..., pattern="^[A-Z]{3}$", description="ISO 4217 код валюты")
    decimal_places: int = Field(2, ge=0, le=6, description="Знаков после запятой")

    model_config = {"frozen": True}

    @property
    def factor(self) -> int:
        """Количество минорных единиц в одной major-единице."""
        return 10**self.decimal_places


# =============================================================================
# MONEY
# =============================================================================


class Money(BaseModel):
    """
    Денежное значение (Monetary Value).

    Immutable модель (frozen=True). Все операции возвращают новый экземпляр.
    """

    value: StrictInt = Field(..., description="Сумма в минорных единицах")
    currency: Currency = Field(..., description="Валюта")

    model_config = {"frozen": True}

    # -------------------------------------------------------------------------
    # Конструкторы
    # -------------------------------------------------------------------------

    @classmethod
    def zero(cls, currency: Currency) -> "Money":
        return cls(value=0, currency=currency)

    @classmethod
    def from_decimal(
        cls,
        amount: Decimal | str,
        currency: Currency,
        rounding: str = DEFAULT_ROUNDING,
    ) -> "Money":
        """
        Создание из major-единиц (например, Decimal("10.99") USD → 1099).

        Args:
            amount: Сумма в major-единицах (Decimal или строка, не float)
            currency: Валюта
            rounding: Режим округления до минорной единицы

        Raises:
            TypeError: Если передан float
        """
        if isinstance(amount, float):
            raise TypeError("Money.from_decimal does not accept float amounts")
        minor = Decimal(amount) * currency.factor
        return cls(value=round_minor(minor, rounding), currency=currency)

    # -------------------------------------------------------------------------
    # Представление
    # -------------------------------------------------------------------------

    def to_decimal(self) -> Decimal:
        """Сумма в major-единицах (точное значение)."""
        return Decimal(self.value).scaleb(-self.currency.decimal_places)

    def format(self) -> str:
        return f"{self.to_decimal():.{self.currency.decimal_places}f} {self.currency.code}"

    def is_zero(self) -> bool:
        return self.value == 0

    def is_negative(self) -> bool:
        return self.value < 0

    # -------------------------------------------------------------------------
    # Арифметика
    # -------------------------------------------------------------------------

    def _require_same_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise ValueError(
                f"Currency mismatch: {self.currency.code} vs {other.currency.code}"
            )

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return Money(value=self.value + other.value, currency=self.currency)

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return Money(value=self.value - other.value, currency=self.currency)

    def __neg__(self) -> "Money":
        return Money(value=-self.value, currency=self.currency)

    def __mul__(self, factor: int) -> "Money":
        # Только целые множители (количество), дробные — через percentage()
        if not isinstance(factor, int) or isinstance(factor, bool):
            return NotImplemented
        return Money(value=self.value * factor, currency=self.currency)

    __rmul__ = __mul__

    def percentage(self, percent: Decimal, rounding: str = DEFAULT_ROUNDING) -> "Money":
        """
        Процент от суммы, округлённый до минорной единицы.

        Args:
            percent: Процент (Decimal("20") = 20%)
            rounding: Режим округления

        Returns:
            Money с округлённым значением
        """
        raw = Decimal(self.value) * Decimal(percent) / _HUNDRED
        return Money(value=round_minor(raw, rounding), currency=self.currency)

    def min(self, other: "Money") -> "Money":
        return self if self <= other else other

    def allocate(self, weights: list[int]) -> list["Money"]:
        """
        Распределение суммы пропорционально весам без потери минорных единиц.

        Метод наибольших остатков: сначала целые доли, затем остаток по одной
        минорной единице в порядке убывания дробной части (при равенстве —
        в порядке следования весов).

        Args:
            weights: Неотрицательные целые веса

        Returns:
            Список долей, сумма которых точно равна self

        Raises:
            ValueError: Если веса отрицательные или их сумма равна нулю
        """
        if any(w < 0 for w in weights):
            raise ValueError(f"Allocation weights must be non-negative: {weights}")
        total_weight = sum(weights)
        if total_weight == 0:
            raise ValueError("Allocation weights sum to zero")

        shares = [self.value * w // total_weight for w in weights]
        remainders = [self.value * w % total_weight for w in weights]
        leftover = self.value - sum(shares)

        order = sorted(range(len(weights)), key=lambda i: (-remainders[i], i))
        for i in order[:leftover]:
            shares[i] += 1

        return [Money(value=s, currency=self.currency) for s in shares]

    # -------------------------------------------------------------------------
    # Сравнение (value-based)
    # -------------------------------------------------------------------------

    def __lt__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return self.value < other.value

    def __le__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return self.value <= other.value

    def __gt__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return self.value > other.value

    def __ge__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return self.value >= other.value


def sum_money(amounts: list[Money], currency: Currency) -> Money:
    """Сумма списка Money (пустой список → ноль в валюте currency)."""
    total = Money.zero(currency)
    for amount in amounts:
        total = total + amount
    return total
