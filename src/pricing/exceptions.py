"""
Cart pricing exceptions.

Иерархия ошибок движка расчёта и кэша производных значений:
- ConfigurationError: отсутствует/некорректна валюта или налоговый контекст
- InvalidLineError: некорректные входные строки (состояние корзины не меняется)
- StalePersistedStateError: persisted набор непригоден → принудительный пересчёт
- CartInactiveError: мутация корзины с заказом или слитой в другую корзину
"""


class CartPricingError(Exception):
    """Базовая ошибка расчёта корзины."""
    pass


class ConfigurationError(CartPricingError):
    """
    Отсутствует или некорректна валюта / налоговый контекст.

    Локально не восстанавливается, пробрасывается вызывающему коду.
    """
    pass


class InvalidLineError(CartPricingError):
    """
    Некорректная строка корзины (отрицательное количество/цена, чужая валюта,
    дубликат ID, скидка на несуществующую строку).
    """
    pass


class StalePersistedStateError(CartPricingError):
    """
    Persisted производные значения не проходят контракт или не соответствуют
    корзине. Не пробрасывается наружу: вызывает принудительный пересчёт.
    """
    pass


class CartInactiveError(CartPricingError):
    """Корзина связана с заказом или слита в другую корзину."""
    pass
