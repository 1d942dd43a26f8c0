class BotStatusError(Exception):
    """Базовое исключение сервиса статуса бота"""


class ValidationError(BotStatusError):
    """Некорректные входные данные (форма, enum). Не ретраится."""


class StoreError(BotStatusError):
    """Ошибка чтения/записи в хранилище"""


class RpcEndpointError(BotStatusError):
    """Сбой одного RPC эндпоинта. Обрабатывается локально переходом к следующему."""

    def __init__(self, endpoint: str, reason: str):
        super().__init__(f"{endpoint}: {reason}")
        self.endpoint = endpoint
        self.reason = reason


class BalanceUnavailable(BotStatusError):
    """Все RPC эндпоинты исчерпаны, баланс определить не удалось"""

    def __init__(self, address: str, errors: list[RpcEndpointError] | None = None):
        self.address = address
        self.errors = errors or []
        tried = ", ".join(e.endpoint for e in self.errors) or "no endpoints"
        super().__init__(f"Balance unavailable for {address} (tried: {tried})")
