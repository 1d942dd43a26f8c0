import sqlite3
from decimal import Decimal
from unittest.mock import patch

import pytest

from bot_status.errors import BalanceUnavailable, RpcEndpointError, StoreError, ValidationError
from bot_status.service.status_service import FailureKind, StatusService

WALLET = "DGPrryYStTsmKkMhkJrTzapbCYKvN3srHJvSHqZCWYP6"
ENDPOINT_A = "https://rpc-a.example.com"
ENDPOINT_B = "https://rpc-b.example.com"


def _count(db_path: str, table: str) -> int:
    with sqlite3.connect(db_path) as conn:
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


@pytest.mark.unit
class TestBotControl:
    """Тесты старта/остановки бота"""

    def test_start_then_stop(self, service, temp_db):
        started = service.start_bot()
        stopped = service.stop_bot()

        assert started.success and stopped.success
        assert started.data.is_running is True
        assert stopped.data.is_running is False
        assert _count(temp_db, "bot_status") == 2
        for status in (started.data, stopped.data):
            assert status.total_trades == 0
            assert status.active_positions == 0
            assert status.backend_connected is True

    def test_toggle_resets_counters(self, service, database):
        from bot_status.storage.models import BotStatus
        database.append_status(BotStatus(is_running=True, total_trades=12, active_positions=3))

        result = service.stop_bot()

        assert result.data.total_trades == 0
        assert database.get_current_status().active_positions == 0

    def test_control_bot_actions(self, service):
        assert service.control_bot("start").data.is_running is True
        assert service.control_bot("stop").data.is_running is False

    def test_invalid_action(self, service, temp_db):
        result = service.control_bot("restart")

        assert result.success is False
        assert result.kind is FailureKind.VALIDATION
        assert result.error == "Invalid action"
        assert _count(temp_db, "bot_status") == 0

    def test_control_actions_audited(self, service, temp_db):
        service.start_bot()

        with sqlite3.connect(temp_db) as conn:
            actions = [row[0] for row in conn.execute("SELECT action FROM user_interactions")]

        assert actions == ["bot_start"]

    def test_audit_failure_does_not_fail_operation(self, service):
        with patch.object(service.database, "log_interaction", return_value=False):
            assert service.start_bot().success is True

    def test_store_failure(self, service):
        with patch.object(service.database, "append_status", side_effect=StoreError("disk full")):
            result = service.start_bot()

        assert result.success is False
        assert result.kind is FailureKind.STORE

    def test_current_status(self, service):
        service.start_bot()

        result = service.get_current_status()

        assert result.success
        assert result.data.is_running is True


@pytest.mark.unit
class TestTradesAndProfit:

    def test_record_and_list_trade(self, service, sample_trade_payload):
        """recordTrade(t1 BONK buy) -> listRecentTrades(10) содержит ровно одну запись"""
        assert service.record_trade(sample_trade_payload).data is True

        result = service.list_recent_trades(10)

        payloads = [t.to_payload() for t in result.data]
        assert len(payloads) == 1
        assert payloads[0]["id"] == "t1"
        assert payloads[0]["token"] == "BONK"
        assert payloads[0]["action"] == "buy"

    def test_record_trade_idempotent(self, service, sample_trade_payload, temp_db):
        first = service.record_trade(sample_trade_payload)
        second = service.record_trade(sample_trade_payload)

        assert first.success and second.success
        assert second.data is False
        assert _count(temp_db, "trades") == 1

    def test_record_trade_validation(self, service, sample_trade_payload):
        sample_trade_payload["action"] = "short"

        result = service.record_trade(sample_trade_payload)

        assert result.success is False
        assert result.kind is FailureKind.VALIDATION

    def test_record_trade_oversized_price(self, service, sample_trade_payload, temp_db):
        sample_trade_payload["price"] = 1e21

        result = service.record_trade(sample_trade_payload)

        assert result.success is False
        assert result.kind is FailureKind.VALIDATION
        assert _count(temp_db, "trades") == 0

    def test_invalid_limit(self, service):
        assert service.list_recent_trades(-1).kind is FailureKind.VALIDATION

    def test_update_trade_status(self, service, sample_trade_payload):
        sample_trade_payload["status"] = "pending"
        service.record_trade(sample_trade_payload)

        assert service.update_trade_status("t1", "failed").data.status == "failed"
        assert service.update_trade_status("t1", "completed").kind is FailureKind.VALIDATION

    def test_profit_report_defaults_to_day(self, service):
        result = service.get_profit_report()

        assert result.success
        assert result.data.timeframe == "day"
        assert len(result.data.chart_data) == 4

    def test_refresh_profit_report(self, service, sample_trade_payload):
        sample_trade_payload["profitLoss"] = "1.5"
        service.record_trade(sample_trade_payload)

        result = service.refresh_profit_report("week")

        assert result.success
        assert service.get_profit_report("week").data.net_profit == Decimal("1.5")

    def test_refresh_profit_report_bad_timeframe(self, service):
        assert service.refresh_profit_report(42).kind is FailureKind.VALIDATION


@pytest.mark.unit
class TestStrategy:

    def test_default_strategy(self, service):
        assert service.get_current_strategy().data.name == "Default Strategy"

    def test_update_strategy(self, service, sample_strategy_payload):
        result = service.update_strategy(sample_strategy_payload)

        assert result.success
        assert service.get_current_strategy().data.name == sample_strategy_payload["name"]

    def test_update_strategy_validation(self, service):
        result = service.update_strategy({"name": "No risk"})

        assert result.kind is FailureKind.VALIDATION


@pytest.mark.unit
class TestBalancePolling:
    """Тесты опроса баланса и записи снапшотов"""

    @pytest.mark.asyncio
    async def test_poll_records_snapshot(self, service, mock_rpc_client, database):
        result = await service.poll_and_record_balance()

        assert result.success
        assert result.data["balance"] == Decimal("2.5")
        assert result.data["address"] == WALLET
        mock_rpc_client.fetch_balance.assert_awaited_once_with(WALLET, [ENDPOINT_A, ENDPOINT_B])

        snapshots = database.list_balance_snapshots(WALLET)
        assert len(snapshots) == 1
        assert snapshots[0].balance == Decimal("2.5")

    @pytest.mark.asyncio
    async def test_total_failure_writes_nothing(self, service, mock_rpc_client, database):
        mock_rpc_client.fetch_balance.side_effect = BalanceUnavailable(
            WALLET, [RpcEndpointError(ENDPOINT_A, "refused"), RpcEndpointError(ENDPOINT_B, "refused")]
        )

        with patch.object(database, "record_balance_snapshot") as record:
            result = await service.poll_and_record_balance()

        assert result.success is False
        assert result.kind is FailureKind.BALANCE_UNAVAILABLE
        assert result.data == {"balance": Decimal("0"), "address": WALLET}
        record.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_address(self, service, mock_rpc_client):
        mock_rpc_client.fetch_balance.side_effect = ValidationError("Invalid wallet address")

        result = await service.poll_and_record_balance("bad")

        assert result.kind is FailureKind.VALIDATION

    @pytest.mark.asyncio
    async def test_snapshot_store_failure(self, service, database):
        with patch.object(database, "record_balance_snapshot", side_effect=StoreError("locked")):
            result = await service.poll_and_record_balance()

        assert result.success is False
        assert result.kind is FailureKind.STORE

    @pytest.mark.asyncio
    async def test_balance_history(self, service):
        await service.poll_and_record_balance()
        await service.poll_and_record_balance()

        result = service.get_balance_history(limit=1)

        assert len(result.data) == 1

    def test_wallet_address(self, database, mock_rpc_client):
        service = StatusService(database, mock_rpc_client, WALLET)

        assert service.get_wallet_address().data == WALLET
        assert service.rpc_endpoints is None
