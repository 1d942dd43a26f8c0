import json
from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import pytest

WALLET = "DGPrryYStTsmKkMhkJrTzapbCYKvN3srHJvSHqZCWYP6"
ENDPOINT_A = "https://rpc-a.example.com"
ENDPOINT_B = "https://rpc-b.example.com"
ENDPOINT_C = "https://rpc-c.example.com"


@pytest.fixture
def temp_db(tmp_path):
    """Временная база данных"""
    return str(tmp_path / "data" / "test.db")


@pytest.fixture
def database(temp_db):
    from bot_status.storage.database import Database
    return Database(temp_db)


@pytest.fixture
def wallet_address():
    return WALLET


@pytest.fixture
def sample_trade_payload():
    """Трейд в формате дашборда"""
    return {
        "tradeId": "t1",
        "tokenSymbol": "BONK",
        "action": "buy",
        "amount": 1000000,
        "price": 0.00001234,
        "profitLoss": 0,
    }


@pytest.fixture
def sample_strategy_payload():
    return {
        "name": "Aggressive Meme Token Strategy",
        "description": "High-frequency trading strategy focused on Solana meme tokens",
        "riskLevel": "High",
        "expectedReturn": "15-25% daily",
        "maxPosition": "10%",
        "stopLoss": "5%",
        "takeProfit": "15%",
        "enabled": True,
    }


@pytest.fixture
def mock_rpc_client():
    """Мок Solana RPC клиента"""
    from bot_status.api.common import BalanceReading

    client = AsyncMock()
    client.fetch_balance.return_value = BalanceReading(
        balance=Decimal("2.5"),
        endpoint=ENDPOINT_A,
        lamports=2_500_000_000,
    )
    client.get_stats = Mock(return_value={
        "request_count": 1,
        "error_count": 0,
        "error_rate": "0.00%",
        "last_request_time": 0,
        "last_endpoint": ENDPOINT_A,
    })
    return client


@pytest.fixture
def service(database, mock_rpc_client):
    from bot_status.service.status_service import StatusService
    return StatusService(database, mock_rpc_client, WALLET, [ENDPOINT_A, ENDPOINT_B])


def balance_body(lamports: int) -> dict:
    return {"jsonrpc": "2.0", "id": 1, "result": {"context": {"slot": 1}, "value": lamports}}


def make_rpc_session(outcomes: dict):
    """
    Мок aiohttp.ClientSession для getBalance.

    outcomes: url -> Exception (бросается из post) | (status, body) | (status, async-функция json)
    Вызовы post складываются в session.calls.
    """
    calls = []

    def post(url, json=None, headers=None, **kwargs):
        calls.append({"url": url, "json": json, "headers": headers})
        outcome = outcomes[url]
        if isinstance(outcome, Exception):
            raise outcome

        status, body = outcome
        response = AsyncMock()
        response.status = status
        if callable(body):
            response.json = AsyncMock(side_effect=body)
        else:
            response.json = AsyncMock(return_value=body)
        response.__aenter__.return_value = response
        response.__aexit__.return_value = None
        return response

    session = AsyncMock()
    session.post = Mock(side_effect=post)
    session.__aenter__.return_value = session
    session.__aexit__.return_value = None
    session.calls = calls
    return session


@pytest.fixture
def rpc_session_factory():
    return make_rpc_session


@pytest.fixture
def sample_config_dict():
    return {
        "rpc": {
            "endpoints": [ENDPOINT_A, ENDPOINT_B],
            "timeout": 3,
        },
        "bot": {"wallet_address": WALLET},
        "server": {"host": "127.0.0.1", "port": 8080},
        "global": {
            "database_path": "test.db",
            "logging_level": "DEBUG",
        },
    }


@pytest.fixture
def temp_config_file(tmp_path, sample_config_dict):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(sample_config_dict), encoding="utf-8")
    return str(path)


def pytest_configure(config):
    """Конфигурация маркеров"""
    config.addinivalue_line("markers", "unit: unit tests")
    config.addinivalue_line("markers", "integration: integration tests")
    config.addinivalue_line("markers", "config: configuration tests")
    config.addinivalue_line("markers", "rpc: rpc client tests")
