from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Literal

from ..errors import ValidationError

TRADE_ACTIONS = ("buy", "sell")
TRADE_STATUSES = ("pending", "completed", "failed")
TERMINAL_TRADE_STATUSES = ("completed", "failed")

# DECIMAL(20, 8) / DECIMAL(5, 2)
AMOUNT_QUANT = Decimal("0.00000001")
PERCENT_QUANT = Decimal("0.01")

# quant -> число знаков до запятой, которое вмещает колонка
INTEGER_DIGITS = {
    AMOUNT_QUANT: 12,
    PERCENT_QUANT: 3,
}

CHART_SKELETON_TIMES = ("00:00", "06:00", "12:00", "18:00")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_decimal(value: Any, quant: Decimal = AMOUNT_QUANT, field_name: str = "value") -> Decimal:
    """Точное приведение к Decimal. float идёт через repr, чтобы не тащить двоичный хвост."""
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number, got bool")
    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, float):
            result = Decimal(repr(value))
        else:
            result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field_name} is not a valid decimal: {value!r}") from None
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be finite: {value!r}")

    try:
        result = result.quantize(quant)
    except InvalidOperation:
        raise ValidationError(f"{field_name} is out of range: {value!r}") from None

    digits = INTEGER_DIGITS.get(quant)
    if digits is not None and abs(result) >= Decimal(10) ** digits:
        raise ValidationError(f"{field_name} exceeds {digits} integer digits: {value!r}")
    return result


def _pick(payload: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return default


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class BotStatus:
    is_running: bool = False
    last_update: datetime | None = None
    total_trades: int = 0
    active_positions: int = 0
    backend_connected: bool = True
    id: int | None = None

    def to_payload(self) -> dict:
        return {
            "isRunning": self.is_running,
            "lastUpdate": _iso(self.last_update),
            "totalTrades": self.total_trades,
            "activePositions": self.active_positions,
            "backendConnected": self.backend_connected,
        }


@dataclass
class TradeRecord:
    trade_id: str = ""
    token_symbol: str = ""
    action: Literal["buy", "sell"] = "buy"
    amount: int = 0
    price: Decimal = Decimal("0")
    profit_loss: Decimal = Decimal("0")
    status: Literal["pending", "completed", "failed"] = "completed"
    timestamp: datetime | None = None
    id: int | None = None

    def validate(self) -> None:
        if not self.trade_id or not str(self.trade_id).strip():
            raise ValidationError("trade_id is required")
        if not self.token_symbol or not str(self.token_symbol).strip():
            raise ValidationError("token_symbol is required")
        if self.action not in TRADE_ACTIONS:
            raise ValidationError(f"Invalid trade action: {self.action!r} (expected buy or sell)")
        if self.status not in TRADE_STATUSES:
            raise ValidationError(f"Invalid trade status: {self.status!r}")
        if isinstance(self.amount, bool) or not isinstance(self.amount, int) or self.amount < 0:
            raise ValidationError(f"amount must be a non-negative integer, got {self.amount!r}")
        to_decimal(self.price, field_name="price")
        to_decimal(self.profit_loss, field_name="profit_loss")

    @classmethod
    def from_payload(cls, payload: dict) -> "TradeRecord":
        """Разбор JSON трейда дашборда (поддерживает короткие и полные имена полей)"""
        if not isinstance(payload, dict):
            raise ValidationError("Trade payload must be an object")

        amount = _pick(payload, "amount", default=0)
        if isinstance(amount, str) and amount.strip().isdigit():
            amount = int(amount.strip())
        elif isinstance(amount, float) and amount.is_integer():
            amount = int(amount)

        price = _pick(payload, "price")
        if price is None:
            raise ValidationError("price is required")

        trade = cls(
            trade_id=str(_pick(payload, "tradeId", "trade_id", "id", default="")),
            token_symbol=str(_pick(payload, "tokenSymbol", "token_symbol", "token", default="")),
            action=str(_pick(payload, "action", default="")).lower(),
            amount=amount,
            price=to_decimal(price, field_name="price"),
            profit_loss=to_decimal(_pick(payload, "profitLoss", "profit_loss", "profit", default=0),
                                   field_name="profitLoss"),
            status=str(_pick(payload, "status", default="completed")).lower(),
        )
        trade.validate()
        return trade

    def to_payload(self) -> dict:
        return {
            "id": self.trade_id,
            "token": self.token_symbol,
            "action": self.action,
            "amount": self.amount,
            "price": self.price,
            "profit": self.profit_loss,
            "timestamp": _iso(self.timestamp),
            "status": self.status,
        }


def chart_skeleton() -> list[dict]:
    return [{"time": t, "profit": 0} for t in CHART_SKELETON_TIMES]


@dataclass
class ProfitAggregate:
    timeframe: str
    total_profit: Decimal = Decimal("0")
    total_loss: Decimal = Decimal("0")
    net_profit: Decimal = Decimal("0")
    win_rate: Decimal = Decimal("0")
    total_trades: int = 0
    chart_data: list[dict] = field(default_factory=chart_skeleton)
    updated_at: datetime | None = field(default=None, compare=False)

    def validate(self) -> None:
        if not self.timeframe or not str(self.timeframe).strip():
            raise ValidationError("timeframe is required")
        for name in ("total_profit", "total_loss", "net_profit"):
            to_decimal(getattr(self, name), field_name=name)
        if not (Decimal("0") <= to_decimal(self.win_rate, PERCENT_QUANT, "win_rate") <= Decimal("100")):
            raise ValidationError(f"win_rate must be within 0-100, got {self.win_rate}")
        if isinstance(self.total_trades, bool) or not isinstance(self.total_trades, int) or self.total_trades < 0:
            raise ValidationError(f"total_trades must be a non-negative integer, got {self.total_trades!r}")
        if not isinstance(self.chart_data, list):
            raise ValidationError("chart_data must be a list of points")

    @classmethod
    def from_payload(cls, timeframe: str, payload: dict) -> "ProfitAggregate":
        if not isinstance(payload, dict):
            raise ValidationError("Profit payload must be an object")
        aggregate = cls(
            timeframe=timeframe,
            total_profit=to_decimal(_pick(payload, "totalProfit", "total_profit", default=0), field_name="totalProfit"),
            total_loss=to_decimal(_pick(payload, "totalLoss", "total_loss", default=0), field_name="totalLoss"),
            net_profit=to_decimal(_pick(payload, "netProfit", "net_profit", default=0), field_name="netProfit"),
            win_rate=to_decimal(_pick(payload, "winRate", "win_rate", default=0), PERCENT_QUANT, "winRate"),
            total_trades=_pick(payload, "trades", "totalTrades", "total_trades", default=0),
            chart_data=list(_pick(payload, "chartData", "chart_data", default=[])),
        )
        aggregate.validate()
        return aggregate

    def to_payload(self) -> dict:
        return {
            "timeframe": self.timeframe,
            "totalProfit": self.total_profit,
            "totalLoss": self.total_loss,
            "netProfit": self.net_profit,
            "winRate": self.win_rate,
            "trades": self.total_trades,
            "chartData": self.chart_data,
        }


@dataclass
class StrategyConfig:
    name: str
    risk_level: str
    description: str | None = None
    expected_return: str | None = None
    max_position: str | None = None
    stop_loss: str | None = None
    take_profit: str | None = None
    enabled: bool = True
    updated_at: datetime | None = field(default=None, compare=False)

    def validate(self) -> None:
        if not self.name or not str(self.name).strip():
            raise ValidationError("Strategy name is required")
        if not self.risk_level or not str(self.risk_level).strip():
            raise ValidationError("Strategy risk level is required")
        if not isinstance(self.enabled, bool):
            raise ValidationError(f"enabled must be a boolean, got {self.enabled!r}")

    @classmethod
    def from_payload(cls, payload: dict) -> "StrategyConfig":
        if not isinstance(payload, dict):
            raise ValidationError("Strategy payload must be an object")

        def text(*keys: str) -> str | None:
            value = _pick(payload, *keys)
            return None if value is None else str(value)

        strategy = cls(
            name=text("name") or "",
            risk_level=text("riskLevel", "risk_level") or "",
            description=text("description"),
            expected_return=text("expectedReturn", "expected_return"),
            max_position=text("maxPosition", "max_position"),
            stop_loss=text("stopLoss", "stop_loss"),
            take_profit=text("takeProfit", "take_profit"),
            enabled=_pick(payload, "enabled", default=True),
        )
        strategy.validate()
        return strategy

    def to_payload(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "riskLevel": self.risk_level,
            "expectedReturn": self.expected_return,
            "maxPosition": self.max_position,
            "stopLoss": self.stop_loss,
            "takeProfit": self.take_profit,
            "enabled": self.enabled,
        }


DEFAULT_STRATEGY = StrategyConfig(
    name="Default Strategy",
    description="Basic trading strategy",
    risk_level="Medium",
    expected_return="10% daily",
    max_position="5%",
    stop_loss="3%",
    take_profit="10%",
    enabled=True,
)


@dataclass
class WalletBalanceSnapshot:
    wallet_address: str
    balance: Decimal
    timestamp: datetime | None = None
    id: int | None = None

    def to_payload(self) -> dict:
        return {
            "address": self.wallet_address,
            "balance": self.balance,
            "timestamp": _iso(self.timestamp),
        }


@dataclass
class UserInteraction:
    action: str
    user_wallet: str | None = None
    amount: Decimal | None = None
    status: str = "completed"
    metadata: dict = field(default_factory=dict)
    timestamp: datetime | None = None
