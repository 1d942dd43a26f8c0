import json
import sqlite3
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterator

from .models import (
    BotStatus, TradeRecord, ProfitAggregate, StrategyConfig, WalletBalanceSnapshot, UserInteraction,
    DEFAULT_STRATEGY, TERMINAL_TRADE_STATUSES, TRADE_STATUSES, PERCENT_QUANT, chart_skeleton, to_decimal, utcnow,
)
from .sql import SCHEMA
from ..errors import StoreError, ValidationError
from ..logger import get_app_logger

logger = get_app_logger(__name__)

DEFAULT_TRADES_LIMIT = 100


def _adapt_datetime(val: datetime) -> str:
    if val.tzinfo is None:
        val = val.replace(tzinfo=timezone.utc)
    return val.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _convert_timestamp(raw: bytes) -> datetime:
    text = raw.decode()
    try:
        value = datetime.fromisoformat(text)
    except ValueError:
        # строки старого формата "YYYY-MM-DD HH:MM:SS"
        value = datetime.strptime(text[:19], "%Y-%m-%d %H:%M:%S")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


sqlite3.register_adapter(datetime, _adapt_datetime)
sqlite3.register_adapter(Decimal, str)
sqlite3.register_converter("TIMESTAMP", _convert_timestamp)
sqlite3.register_converter("DECIMAL_TEXT", lambda raw: Decimal(raw.decode()))
sqlite3.register_converter("BOOLEAN", lambda raw: raw not in (b"0", b""))
sqlite3.register_converter("JSON", lambda raw: json.loads(raw.decode()))


class Database:
    """
    Хранилище статуса бота, журнала сделок, агрегатов прибыли, стратегии и снапшотов баланса.

    Каждая операция открывает своё соединение и выполняет один атомарный
    INSERT / INSERT ... ON CONFLICT, поэтому конкурентные вызовы не требуют
    блокировок в процессе: конфликты разрешает уникальный ключ SQLite.
    """

    def __init__(self, db_path: str = "data/bot_status.db", timeout: float = 5.0):
        self.db_path = db_path
        self.timeout = timeout
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(
                self.db_path,
                timeout=self.timeout,
                detect_types=sqlite3.PARSE_DECLTYPES,
            )
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise StoreError(f"Database operation failed: {e}") from e
        finally:
            conn.close()

    def _init_db(self):
        """Создание таблиц. Ошибка здесь фатальна для старта процесса."""
        try:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot create database directory for {self.db_path}: {e}") from e

        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            for statement in SCHEMA:
                conn.execute(statement)

        logger.info(f"Database initialized: {self.db_path}")

    # ====== Bot status ======

    @staticmethod
    def _row_to_status(row: sqlite3.Row) -> BotStatus:
        return BotStatus(
            id=row["id"],
            is_running=row["is_running"],
            last_update=row["last_update"],
            total_trades=row["total_trades"],
            active_positions=row["active_positions"],
            backend_connected=row["backend_connected"],
        )

    def get_current_status(self) -> BotStatus:
        """Последняя записанная строка статуса или дефолт (дефолт не сохраняется)"""
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT id, is_running, last_update, total_trades, active_positions, backend_connected
                FROM bot_status
                ORDER BY created_at DESC, id DESC
                LIMIT 1
                """
            ).fetchone()

        if row is None:
            return BotStatus(
                is_running=False,
                last_update=utcnow(),
                total_trades=0,
                active_positions=0,
                backend_connected=True,
            )
        return self._row_to_status(row)

    def append_status(self, status: BotStatus) -> BotStatus:
        now = utcnow()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO bot_status (is_running, last_update, total_trades, active_positions,
                                        backend_connected, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    bool(status.is_running),
                    now,
                    int(status.total_trades),
                    int(status.active_positions),
                    bool(status.backend_connected),
                    now,
                ),
            )
            status_id = cursor.lastrowid

        logger.debug(f"Bot status appended: id={status_id} running={status.is_running}")
        return BotStatus(
            id=status_id,
            is_running=bool(status.is_running),
            last_update=now,
            total_trades=int(status.total_trades),
            active_positions=int(status.active_positions),
            backend_connected=bool(status.backend_connected),
        )

    # ====== Trades ======

    @staticmethod
    def _row_to_trade(row: sqlite3.Row) -> TradeRecord:
        return TradeRecord(
            id=row["id"],
            trade_id=row["trade_id"],
            token_symbol=row["token_symbol"],
            action=row["action"],
            amount=row["amount"],
            price=row["price"],
            profit_loss=row["profit_loss"],
            status=row["status"],
            timestamp=row["timestamp"],
        )

    def record_trade(self, trade: TradeRecord) -> bool:
        """
        Запись сделки. Повтор trade_id: no-op.

        Returns:
            True если строка вставлена, False если trade_id уже был
        """
        if not trade.status:
            trade = replace(trade, status="completed")
        trade.validate()

        now = utcnow()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO trades (trade_id, token_symbol, action, amount, price, profit_loss,
                                    timestamp, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(trade_id) DO NOTHING
                """,
                (
                    trade.trade_id,
                    trade.token_symbol,
                    trade.action,
                    trade.amount,
                    to_decimal(trade.price, field_name="price"),
                    to_decimal(trade.profit_loss, field_name="profit_loss"),
                    now,
                    trade.status,
                    now,
                ),
            )
            inserted = cursor.rowcount == 1

        if inserted:
            logger.info(f"Trade recorded: {trade.trade_id} {trade.action} {trade.amount} {trade.token_symbol}")
        else:
            logger.debug(f"Trade {trade.trade_id} already recorded, skipped")
        return inserted

    def get_trade(self, trade_id: str) -> TradeRecord | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM trades WHERE trade_id = ?", (trade_id,)).fetchone()
        return self._row_to_trade(row) if row else None

    def list_recent_trades(self, limit: int = DEFAULT_TRADES_LIMIT) -> list[TradeRecord]:
        """Сделки от новых к старым; при равном timestamp: по порядку вставки"""
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise ValidationError(f"limit must be a positive integer, got {limit!r}")

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM trades ORDER BY timestamp DESC, id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [self._row_to_trade(row) for row in rows]

    def list_trades_since(self, since: datetime | None = None, status: str = "completed") -> list[TradeRecord]:
        """Сделки с заданным статусом начиная с момента since (все, если since=None)"""
        query = "SELECT * FROM trades WHERE status = ?"
        params: list[Any] = [status]
        if since is not None:
            query += " AND timestamp >= ?"
            params.append(since)
        query += " ORDER BY timestamp ASC, id ASC"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_trade(row) for row in rows]

    def update_trade_status(self, trade_id: str, status: str) -> TradeRecord:
        """
        Переход статуса сделки: pending -> completed | failed.
        completed и failed: терминальные.
        """
        if status not in TRADE_STATUSES:
            raise ValidationError(f"Invalid trade status: {status!r}")
        if status not in TERMINAL_TRADE_STATUSES:
            raise ValidationError(f"Trade can only transition to {', '.join(TERMINAL_TRADE_STATUSES)}")

        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE trades SET status = ? WHERE trade_id = ? AND status = 'pending'",
                (status, trade_id),
            )
            updated = cursor.rowcount == 1
            row = conn.execute("SELECT * FROM trades WHERE trade_id = ?", (trade_id,)).fetchone()

        if row is None:
            raise ValidationError(f"Unknown trade: {trade_id}")
        trade = self._row_to_trade(row)
        if not updated:
            raise ValidationError(f"Trade {trade_id} is already {trade.status}, transition to {status} not allowed")

        logger.info(f"Trade {trade_id} status -> {status}")
        return trade

    # ====== Profit aggregates ======

    def get_profit_aggregate(self, timeframe: str) -> ProfitAggregate:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT timeframe, total_profit, total_loss, net_profit, win_rate, total_trades,
                       chart_data, updated_at
                FROM profit_data
                WHERE timeframe = ?
                ORDER BY updated_at DESC
                LIMIT 1
                """,
                (timeframe,),
            ).fetchone()

        if row is None:
            return ProfitAggregate(timeframe=timeframe, chart_data=chart_skeleton())

        return ProfitAggregate(
            timeframe=row["timeframe"],
            total_profit=row["total_profit"],
            total_loss=row["total_loss"],
            net_profit=row["net_profit"],
            win_rate=row["win_rate"],
            total_trades=row["total_trades"],
            chart_data=row["chart_data"] if row["chart_data"] is not None else [],
            updated_at=row["updated_at"],
        )

    def upsert_profit_aggregate(self, timeframe: str, data: ProfitAggregate) -> ProfitAggregate:
        """Вставка или обновление по timeframe. Возвращает сохранённую копию, исходный объект не меняется."""
        data = replace(data, timeframe=timeframe)
        data.validate()

        try:
            chart_json = json.dumps(data.chart_data)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"chart_data is not serializable: {e}") from e

        now = utcnow()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO profit_data (timeframe, total_profit, total_loss, net_profit, win_rate,
                                         total_trades, chart_data, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(timeframe) DO UPDATE SET
                    total_profit = excluded.total_profit,
                    total_loss = excluded.total_loss,
                    net_profit = excluded.net_profit,
                    win_rate = excluded.win_rate,
                    total_trades = excluded.total_trades,
                    chart_data = excluded.chart_data,
                    updated_at = excluded.updated_at
                """,
                (
                    timeframe,
                    to_decimal(data.total_profit, field_name="total_profit"),
                    to_decimal(data.total_loss, field_name="total_loss"),
                    to_decimal(data.net_profit, field_name="net_profit"),
                    to_decimal(data.win_rate, PERCENT_QUANT, "win_rate"),
                    data.total_trades,
                    chart_json,
                    now,
                    now,
                ),
            )

        logger.info(f"Profit aggregate saved for '{timeframe}': net={data.net_profit} trades={data.total_trades}")
        return replace(data, updated_at=now)

    # ====== Strategy ======

    @staticmethod
    def _row_to_strategy(row: sqlite3.Row) -> StrategyConfig:
        return StrategyConfig(
            name=row["name"],
            description=row["description"],
            risk_level=row["risk_level"],
            expected_return=row["expected_return"],
            max_position=row["max_position"],
            stop_loss=row["stop_loss"],
            take_profit=row["take_profit"],
            enabled=row["enabled"],
            updated_at=row["updated_at"],
        )

    def get_current_strategy(self) -> StrategyConfig:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM bot_strategy ORDER BY updated_at DESC, id DESC LIMIT 1"
            ).fetchone()

        if row is None:
            return replace(DEFAULT_STRATEGY)
        return self._row_to_strategy(row)

    def upsert_strategy(self, strategy: StrategyConfig) -> StrategyConfig:
        strategy.validate()

        now = utcnow()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO bot_strategy (name, description, risk_level, expected_return, max_position,
                                          stop_loss, take_profit, enabled, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    description = excluded.description,
                    risk_level = excluded.risk_level,
                    expected_return = excluded.expected_return,
                    max_position = excluded.max_position,
                    stop_loss = excluded.stop_loss,
                    take_profit = excluded.take_profit,
                    enabled = excluded.enabled,
                    updated_at = excluded.updated_at
                """,
                (
                    strategy.name,
                    strategy.description,
                    strategy.risk_level,
                    strategy.expected_return,
                    strategy.max_position,
                    strategy.stop_loss,
                    strategy.take_profit,
                    strategy.enabled,
                    now,
                    now,
                ),
            )

        logger.info(f"Strategy saved: {strategy.name} (enabled={strategy.enabled})")
        return replace(strategy, updated_at=now)

    # ====== Wallet balances ======

    def record_balance_snapshot(self, address: str, balance: Decimal) -> WalletBalanceSnapshot:
        if not address:
            raise ValidationError("wallet address is required")

        snapshot = WalletBalanceSnapshot(
            wallet_address=address,
            balance=to_decimal(balance, field_name="balance"),
            timestamp=utcnow(),
        )
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO wallet_balances (wallet_address, balance, timestamp) VALUES (?, ?, ?)",
                (snapshot.wallet_address, snapshot.balance, snapshot.timestamp),
            )
            snapshot.id = cursor.lastrowid

        logger.debug(f"Balance snapshot for {address}: {snapshot.balance}")
        return snapshot

    def list_balance_snapshots(self, address: str, limit: int = DEFAULT_TRADES_LIMIT) -> list[WalletBalanceSnapshot]:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise ValidationError(f"limit must be a positive integer, got {limit!r}")

        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, wallet_address, balance, timestamp
                FROM wallet_balances
                WHERE wallet_address = ?
                ORDER BY timestamp DESC, id DESC
                LIMIT ?
                """,
                (address, limit),
            ).fetchall()

        return [
            WalletBalanceSnapshot(
                id=row["id"],
                wallet_address=row["wallet_address"],
                balance=row["balance"],
                timestamp=row["timestamp"],
            )
            for row in rows
        ]

    # ====== User interactions (аудит) ======

    def log_interaction(
            self,
            user_wallet: str | None,
            action: str,
            amount: Any = None,
            status: str = "completed",
            metadata: dict | None = None,
    ) -> bool:
        """Запись в журнал аудита. Никогда не бросает: ошибки только логируются."""
        try:
            interaction = UserInteraction(
                user_wallet=user_wallet,
                action=action,
                amount=to_decimal(amount, field_name="amount") if amount is not None else None,
                status=status,
                metadata=dict(metadata or {}),
                timestamp=utcnow(),
            )
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO user_interactions (user_wallet, action, amount, status, timestamp, metadata)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        interaction.user_wallet,
                        interaction.action,
                        interaction.amount,
                        interaction.status,
                        interaction.timestamp,
                        json.dumps(interaction.metadata, default=str),
                    ),
                )
            return True
        except Exception as e:
            logger.error(f"Failed to log user interaction '{action}': {e}")
            return False
