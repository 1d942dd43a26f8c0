import asyncio
import functools
import json
import platform
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable

from aiohttp import web

from ..logger import get_app_logger
from ..service.status_service import FailureKind, OperationResult, StatusService

logger = get_app_logger(__name__)

VERSION = "1.0.0"
SERVICE_KEY = web.AppKey("status_service", StatusService)
EXECUTOR_KEY = web.AppKey("store_executor", ThreadPoolExecutor)

FAILURE_STATUS = {
    FailureKind.VALIDATION: 400,
    FailureKind.STORE: 500,
    FailureKind.BALANCE_UNAVAILABLE: 503,
}


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


_dumps = functools.partial(json.dumps, default=_json_default)


def _json(body: dict, status: int = 200) -> web.Response:
    return web.json_response(body, status=status, dumps=_dumps)


def _respond(result: OperationResult, key: str | None = None, value: Any = None, **extra: Any) -> web.Response:
    if result.success:
        body = {"success": True, **extra}
        if key is not None:
            body[key] = value
        return _json(body)

    body = {"success": False, "error": result.error}
    if isinstance(result.data, dict):
        body.update(result.data)
    return _json(body, status=FAILURE_STATUS.get(result.kind, 500))


async def _run(request: web.Request, func: Callable[..., OperationResult], *args: Any) -> OperationResult:
    """Синхронные вызовы sqlite уходят в пул потоков, event loop не блокируется"""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(request.app[EXECUTOR_KEY], functools.partial(func, *args))


async def _read_json(request: web.Request) -> dict:
    try:
        payload = await request.json()
    except ValueError:
        raise web.HTTPBadRequest(
            text=_dumps({"success": False, "error": "Invalid JSON body"}),
            content_type="application/json",
        )
    if not isinstance(payload, dict):
        raise web.HTTPBadRequest(
            text=_dumps({"success": False, "error": "JSON body must be an object"}),
            content_type="application/json",
        )
    return payload


def _limit(request: web.Request) -> int:
    raw = request.query.get("limit", "100")
    try:
        return int(raw)
    except ValueError:
        # 0 отклоняется на уровне хранилища как ValidationError
        return 0


@web.middleware
async def cors_middleware(request: web.Request, handler):
    if request.method == "OPTIONS":
        response = web.Response(status=204)
    else:
        response = await handler(request)
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    return response


async def health(request: web.Request) -> web.Response:
    return _json({
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": VERSION,
        "pythonVersion": platform.python_version(),
    })


async def wallet_address(request: web.Request) -> web.Response:
    result = request.app[SERVICE_KEY].get_wallet_address()
    return _respond(result, "address", result.data)


async def bot_balance(request: web.Request) -> web.Response:
    result = await request.app[SERVICE_KEY].poll_and_record_balance()
    if not result.success:
        return _respond(result)
    return _json({"success": True, "balance": result.data["balance"], "address": result.data["address"]})


async def balance_history(request: web.Request) -> web.Response:
    result = await _run(request, request.app[SERVICE_KEY].get_balance_history, None, _limit(request))
    snapshots = [s.to_payload() for s in result.data] if result.success else None
    return _respond(result, "snapshots", snapshots)


async def get_status(request: web.Request) -> web.Response:
    result = await _run(request, request.app[SERVICE_KEY].get_current_status)
    return _respond(result, "status", result.data.to_payload() if result.success else None)


async def control_bot(request: web.Request) -> web.Response:
    payload = await _read_json(request)
    action = payload.get("action")
    result = await _run(request, request.app[SERVICE_KEY].control_bot, action)
    if not result.success:
        return _respond(result)
    message = "Bot started successfully" if action == "start" else "Bot stopped successfully"
    return _respond(result, "status", result.data.to_payload(), message=message)


async def list_trades(request: web.Request) -> web.Response:
    result = await _run(request, request.app[SERVICE_KEY].list_recent_trades, _limit(request))
    trades = [t.to_payload() for t in result.data] if result.success else None
    return _respond(result, "trades", trades)


async def record_trade(request: web.Request) -> web.Response:
    payload = await _read_json(request)
    result = await _run(request, request.app[SERVICE_KEY].record_trade, payload)
    return _respond(result, "inserted", result.data)


async def profit(request: web.Request) -> web.Response:
    result = await _run(request, request.app[SERVICE_KEY].get_profit_report, request.query.get("timeframe"))
    return _respond(result, "data", result.data.to_payload() if result.success else None)


async def refresh_profit(request: web.Request) -> web.Response:
    payload = await _read_json(request) if request.can_read_body else {}
    result = await _run(request, request.app[SERVICE_KEY].refresh_profit_report, payload.get("timeframe"))
    return _respond(result, "data", result.data.to_payload() if result.success else None)


async def get_strategy(request: web.Request) -> web.Response:
    result = await _run(request, request.app[SERVICE_KEY].get_current_strategy)
    return _respond(result, "strategy", result.data.to_payload() if result.success else None)


async def update_strategy(request: web.Request) -> web.Response:
    payload = await _read_json(request)
    result = await _run(request, request.app[SERVICE_KEY].update_strategy, payload)
    strategy = result.data.to_payload() if result.success else None
    return _respond(result, "strategy", strategy, message="Strategy updated successfully")


async def _shutdown_executor(app: web.Application):
    app[EXECUTOR_KEY].shutdown(wait=True)


def create_app(service: StatusService, max_workers: int = 10) -> web.Application:
    app = web.Application(middlewares=[cors_middleware])
    app[SERVICE_KEY] = service
    app[EXECUTOR_KEY] = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="store")
    app.on_cleanup.append(_shutdown_executor)
    app.add_routes([
        web.get("/health", health),
        web.get("/api/bot/wallet-address", wallet_address),
        web.get("/api/bot/balance", bot_balance),
        web.get("/api/bot/balance/history", balance_history),
        web.get("/api/bot/status", get_status),
        web.post("/api/bot/status", control_bot),
        web.get("/api/trades", list_trades),
        web.post("/api/trades", record_trade),
        web.get("/api/profit", profit),
        web.post("/api/profit/refresh", refresh_profit),
        web.get("/api/bot/strategy", get_strategy),
        web.post("/api/bot/strategy", update_strategy),
    ])
    return app
