from __future__ import annotations

import asyncio
import time

from typing import Any, Iterable

import aiohttp

from .common import BalanceReading, lamports_to_sol, validate_address
from ..errors import BalanceUnavailable, RpcEndpointError
from ..logger import get_app_logger

logger = get_app_logger(__name__)

USER_AGENT = "TradingBot/1.0"
COMMITMENT = "confirmed"
DEFAULT_TIMEOUT = 10.0


class SolanaRpcClient:
    """
    Клиент Solana JSON-RPC с failover по списку эндпоинтов.

    Эндпоинты перебираются строго по порядку, на каждый ровно одна попытка
    за вызов (без ретраев и backoff). Первый успешный ответ прерывает перебор.
    Каждая попытка ограничена таймаутом, чтобы один зависший эндпоинт
    не блокировал всю цепочку.
    """

    def __init__(self, endpoints: Iterable[str], timeout: float = DEFAULT_TIMEOUT):
        self.endpoints: list[str] = list(endpoints)
        self.timeout = timeout

        self.request_count = 0
        self.error_count = 0
        self.last_request_time = 0.0
        self.last_endpoint: str | None = None

        logger.info(f"SolanaRpcClient initialized with {len(self.endpoints)} endpoints, timeout {timeout}s")

    @staticmethod
    def _build_request(address: str) -> dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "getBalance",
            "params": [address, {"commitment": COMMITMENT}],
        }

    @staticmethod
    def _parse_balance(endpoint: str, body: Any) -> int:
        """Извлечение lamports из ответа getBalance: {"result": {"context": ..., "value": <int>}}"""
        if not isinstance(body, dict):
            raise RpcEndpointError(endpoint, "malformed response: not a JSON object")

        if body.get("error"):
            error = body["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise RpcEndpointError(endpoint, f"rpc error: {message}")

        result = body.get("result")
        value = result.get("value") if isinstance(result, dict) else None
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise RpcEndpointError(endpoint, f"malformed response: unexpected balance value {value!r}")
        return value

    async def _request_balance(self, session: aiohttp.ClientSession, endpoint: str, address: str) -> int:
        self.request_count += 1
        self.last_request_time = time.time()

        async with session.post(
            endpoint,
            json=self._build_request(address),
            headers={"User-Agent": USER_AGENT, "Content-Type": "application/json"},
        ) as response:
            if response.status != 200:
                raise RpcEndpointError(endpoint, f"HTTP {response.status}")
            try:
                body = await response.json(content_type=None)
            except ValueError as e:
                raise RpcEndpointError(endpoint, f"malformed response: {e}") from e

        return self._parse_balance(endpoint, body)

    async def fetch_balance(self, address: str, endpoints: Iterable[str] | None = None) -> BalanceReading:
        """
        Баланс кошелька в SOL с первого ответившего эндпоинта.

        Raises:
            ValidationError: некорректный адрес (эндпоинты не опрашиваются)
            BalanceUnavailable: все эндпоинты вернули ошибку
        """
        address = validate_address(address)
        candidates = list(endpoints) if endpoints is not None else self.endpoints
        errors: list[RpcEndpointError] = []

        async with aiohttp.ClientSession() as session:
            for endpoint in candidates:
                try:
                    lamports = await asyncio.wait_for(
                        self._request_balance(session, endpoint, address),
                        timeout=self.timeout,
                    )
                except asyncio.TimeoutError:
                    error = RpcEndpointError(endpoint, f"timeout after {self.timeout}s")
                except RpcEndpointError as e:
                    error = e
                except Exception as e:
                    error = RpcEndpointError(endpoint, str(e) or type(e).__name__)
                else:
                    self.last_endpoint = endpoint
                    balance = lamports_to_sol(lamports)
                    logger.debug(f"Balance for {address} from {endpoint}: {balance} SOL")
                    return BalanceReading(balance=balance, endpoint=endpoint, lamports=lamports)

                self.error_count += 1
                errors.append(error)
                logger.warning(f"Failed to get balance from {endpoint}: {error.reason}")

        logger.error(f"All {len(candidates)} RPC endpoints failed for {address}")
        raise BalanceUnavailable(address, errors)

    def get_stats(self) -> dict[str, Any]:
        return {
            "request_count": self.request_count,
            "error_count": self.error_count,
            "error_rate": f"{(self.error_count / max(self.request_count, 1)) * 100:.2f}%",
            "last_request_time": self.last_request_time,
            "last_endpoint": self.last_endpoint,
        }
