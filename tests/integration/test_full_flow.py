from decimal import Decimal
from unittest.mock import patch

import aiohttp
import pytest

WALLET = "DGPrryYStTsmKkMhkJrTzapbCYKvN3srHJvSHqZCWYP6"
ENDPOINT_A = "https://rpc-a.example.com"
ENDPOINT_B = "https://rpc-b.example.com"
ENDPOINT_C = "https://rpc-c.example.com"


def balance_body(lamports: int) -> dict:
    return {"jsonrpc": "2.0", "id": 1, "result": {"context": {"slot": 1}, "value": lamports}}


@pytest.mark.integration
class TestFullFlow:
    """Тесты потока: RPC failover → снапшот баланса → отчёты"""

    @pytest.fixture
    def backend(self, temp_db):
        from bot_status.api.solana_rpc import SolanaRpcClient
        from bot_status.service.status_service import StatusService
        from bot_status.storage.database import Database

        database = Database(temp_db)
        client = SolanaRpcClient([ENDPOINT_A, ENDPOINT_B, ENDPOINT_C], timeout=1)
        return StatusService(database, client, WALLET, [ENDPOINT_A, ENDPOINT_B, ENDPOINT_C])

    @pytest.mark.asyncio
    async def test_failover_then_snapshot(self, backend, rpc_session_factory):
        session = rpc_session_factory({
            ENDPOINT_A: aiohttp.ClientConnectionError("refused"),
            ENDPOINT_B: (200, balance_body(2_500_000_000)),
            ENDPOINT_C: (200, balance_body(1)),
        })

        with patch("aiohttp.ClientSession", return_value=session):
            result = await backend.poll_and_record_balance()

        assert result.success
        assert result.data["balance"] == Decimal("2.5")
        assert result.data["endpoint"] == ENDPOINT_B
        assert [c["url"] for c in session.calls] == [ENDPOINT_A, ENDPOINT_B]

        snapshots = backend.database.list_balance_snapshots(WALLET)
        assert [s.balance for s in snapshots] == [Decimal("2.5")]

    @pytest.mark.asyncio
    async def test_total_failure_does_not_pollute_series(self, backend, rpc_session_factory):
        backend.rpc_endpoints = [ENDPOINT_A, ENDPOINT_B]
        session = rpc_session_factory({
            ENDPOINT_A: aiohttp.ClientConnectionError("refused"),
            ENDPOINT_B: (502, {}),
        })

        with patch("aiohttp.ClientSession", return_value=session), \
                patch.object(backend.database, "record_balance_snapshot") as record:
            result = await backend.poll_and_record_balance()

        assert result.success is False
        assert result.data["balance"] == 0
        record.assert_not_called()
        assert backend.database.list_balance_snapshots(WALLET) == []

    @pytest.mark.asyncio
    async def test_lifecycle_trades_and_profit(self, backend):
        backend.start_bot()
        for i, profit in enumerate(["3", "-1", "2"]):
            backend.record_trade({
                "tradeId": f"trade-{i}",
                "tokenSymbol": "BONK",
                "action": "sell",
                "amount": 1000,
                "price": "0.00002",
                "profitLoss": profit,
            })
        backend.stop_bot()

        report = backend.refresh_profit_report("day").data
        status = backend.get_current_status().data

        assert status.is_running is False
        assert status.total_trades == 0
        assert report.total_trades == 3
        assert report.net_profit == Decimal("4")
        assert report.win_rate == Decimal("66.67")
        assert [t.trade_id for t in backend.list_recent_trades().data] == ["trade-2", "trade-1", "trade-0"]
