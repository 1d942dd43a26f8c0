import asyncio
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable

from ..api.solana_rpc import SolanaRpcClient
from ..errors import BalanceUnavailable, StoreError, ValidationError
from ..logger import get_app_logger
from ..monitoring.statistics import ProfitStatistics
from ..storage.database import Database, DEFAULT_TRADES_LIMIT
from ..storage.models import BotStatus, StrategyConfig, TradeRecord

logger = get_app_logger(__name__)

DEFAULT_TIMEFRAME = "day"
BOT_ACTIONS = ("start", "stop")


class FailureKind(str, Enum):
    VALIDATION = "validation"
    STORE = "store"
    BALANCE_UNAVAILABLE = "balance_unavailable"


@dataclass
class OperationResult:
    success: bool
    data: Any = None
    error: str | None = None
    kind: FailureKind | None = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, kind: FailureKind, error: str, data: Any = None) -> "OperationResult":
        return cls(success=False, data=data, error=error, kind=kind)


def _failure(operation: str, exc: Exception) -> OperationResult:
    if isinstance(exc, ValidationError):
        logger.warning(f"{operation}: {exc}")
        return OperationResult.fail(FailureKind.VALIDATION, str(exc))
    logger.error(f"{operation} failed: {exc}")
    return OperationResult.fail(FailureKind.STORE, f"Failed to {operation}")


class StatusService:
    """
    Операции дашборда поверх хранилища и RPC клиента.

    Публичные методы не бросают исключений: результат всегда OperationResult,
    а kind различает ошибку валидации, недоступность хранилища и недоступность баланса.
    """

    def __init__(
            self,
            database: Database,
            rpc_client: SolanaRpcClient,
            wallet_address: str,
            rpc_endpoints: Iterable[str] | None = None,
    ):
        self.database = database
        self.rpc_client = rpc_client
        self.wallet_address = wallet_address
        self.rpc_endpoints = list(rpc_endpoints) if rpc_endpoints is not None else None
        self.statistics = ProfitStatistics(database)

        logger.info(f"StatusService initialized for wallet {wallet_address}")

    # ====== Bot status ======

    def get_current_status(self) -> OperationResult:
        try:
            return OperationResult.ok(self.database.get_current_status())
        except StoreError as e:
            return _failure("fetch bot status", e)

    def _toggle(self, running: bool) -> OperationResult:
        # Счётчики сбрасываются при каждом переключении: так вёл себя исходный сервис
        status = BotStatus(
            is_running=running,
            total_trades=0,
            active_positions=0,
            backend_connected=True,
        )
        action = "start" if running else "stop"
        try:
            saved = self.database.append_status(status)
        except StoreError as e:
            self.database.log_interaction(self.wallet_address, f"bot_{action}", status="failed")
            return _failure(f"{action} bot", e)

        self.database.log_interaction(self.wallet_address, f"bot_{action}")
        logger.info(f"Bot {'started' if running else 'stopped'}")
        return OperationResult.ok(saved)

    def start_bot(self) -> OperationResult:
        return self._toggle(True)

    def stop_bot(self) -> OperationResult:
        return self._toggle(False)

    def control_bot(self, action: Any) -> OperationResult:
        if action not in BOT_ACTIONS:
            logger.warning(f"Invalid bot action: {action!r}")
            return OperationResult.fail(FailureKind.VALIDATION, "Invalid action")
        return self.start_bot() if action == "start" else self.stop_bot()

    # ====== Trades ======

    def list_recent_trades(self, limit: int = DEFAULT_TRADES_LIMIT) -> OperationResult:
        try:
            return OperationResult.ok(self.database.list_recent_trades(limit))
        except (ValidationError, StoreError) as e:
            return _failure("fetch trades", e)

    def record_trade(self, payload: dict | TradeRecord) -> OperationResult:
        """Записать сделку; data=True если вставлена, False если trade_id уже был"""
        try:
            trade = payload if isinstance(payload, TradeRecord) else TradeRecord.from_payload(payload)
            return OperationResult.ok(self.database.record_trade(trade))
        except (ValidationError, StoreError) as e:
            return _failure("record trade", e)

    def update_trade_status(self, trade_id: str, status: str) -> OperationResult:
        try:
            return OperationResult.ok(self.database.update_trade_status(trade_id, status))
        except (ValidationError, StoreError) as e:
            return _failure("update trade status", e)

    # ====== Profit ======

    def get_profit_report(self, timeframe: str | None = None) -> OperationResult:
        timeframe = timeframe or DEFAULT_TIMEFRAME
        try:
            return OperationResult.ok(self.database.get_profit_aggregate(timeframe))
        except StoreError as e:
            return _failure("fetch profit data", e)

    def refresh_profit_report(self, timeframe: str | None = None) -> OperationResult:
        timeframe = timeframe or DEFAULT_TIMEFRAME
        if not isinstance(timeframe, str):
            return OperationResult.fail(FailureKind.VALIDATION, f"Invalid timeframe: {timeframe!r}")
        try:
            return OperationResult.ok(self.statistics.refresh(timeframe))
        except (ValidationError, StoreError) as e:
            return _failure("refresh profit data", e)

    # ====== Strategy ======

    def get_current_strategy(self) -> OperationResult:
        try:
            return OperationResult.ok(self.database.get_current_strategy())
        except StoreError as e:
            return _failure("fetch strategy", e)

    def update_strategy(self, payload: dict | StrategyConfig) -> OperationResult:
        try:
            strategy = payload if isinstance(payload, StrategyConfig) else StrategyConfig.from_payload(payload)
            strategy = self.database.upsert_strategy(strategy)
        except (ValidationError, StoreError) as e:
            return _failure("update strategy", e)

        self.database.log_interaction(
            self.wallet_address,
            "strategy_update",
            metadata={"name": strategy.name, "enabled": strategy.enabled},
        )
        return OperationResult.ok(strategy)

    # ====== Wallet ======

    def get_wallet_address(self) -> OperationResult:
        return OperationResult.ok(self.wallet_address)

    async def poll_and_record_balance(self, address: str | None = None) -> OperationResult:
        """
        Опросить баланс и записать снапшот.

        При недоступности всех эндпоинтов снапшот не пишется: нулевой баланс
        в ответе сопровождается success=False и kind=BALANCE_UNAVAILABLE.
        """
        address = address or self.wallet_address
        unavailable = {"balance": Decimal("0"), "address": address}

        try:
            reading = await self.rpc_client.fetch_balance(address, self.rpc_endpoints)
        except ValidationError as e:
            logger.warning(f"Balance poll rejected: {e}")
            return OperationResult.fail(FailureKind.VALIDATION, str(e), data=unavailable)
        except BalanceUnavailable as e:
            logger.error(str(e))
            return OperationResult.fail(FailureKind.BALANCE_UNAVAILABLE, "Failed to fetch bot balance", data=unavailable)

        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self.database.record_balance_snapshot, address, reading.balance)
        except StoreError as e:
            return _failure("record balance snapshot", e)

        return OperationResult.ok({
            "balance": reading.balance,
            "address": address,
            "endpoint": reading.endpoint,
        })

    def get_balance_history(self, address: str | None = None, limit: int = DEFAULT_TRADES_LIMIT) -> OperationResult:
        try:
            return OperationResult.ok(self.database.list_balance_snapshots(address or self.wallet_address, limit))
        except (ValidationError, StoreError) as e:
            return _failure("fetch balance history", e)
