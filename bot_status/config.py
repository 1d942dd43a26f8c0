import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

DEFAULT_RPC_ENDPOINTS = [
    "https://api.mainnet-beta.solana.com",
    "https://rpc.ankr.com/solana",
    "https://solana-api.projectserum.com",
]
DEFAULT_WALLET_ADDRESS = "DGPrryYStTsmKkMhkJrTzapbCYKvN3srHJvSHqZCWYP6"
DEFAULT_DATABASE_PATH = "data/bot_status.db"
DEFAULT_PORT = 3001
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _parse_endpoints(raw: Any) -> list[str]:
    if isinstance(raw, str):
        items = raw.split(",")
    else:
        items = list(raw)
    return [str(item).strip() for item in items if str(item).strip()]


@dataclass
class Config:
    # rpc
    rpc_endpoints: list[str] = field(default_factory=lambda: list(DEFAULT_RPC_ENDPOINTS))
    rpc_timeout: float = 10.0

    # кошелёк бота
    wallet_address: str = DEFAULT_WALLET_ADDRESS

    # db
    database_path: str = DEFAULT_DATABASE_PATH

    # http
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT

    logging_level: str = "INFO"

    def __post_init__(self):
        if not self.rpc_endpoints:
            raise ValueError("rpc_endpoints не может быть пустым")
        if self.rpc_timeout <= 0:
            raise ValueError(f"rpc_timeout должен быть > 0, got {self.rpc_timeout}")
        if not self.wallet_address:
            raise ValueError("wallet_address не может быть пустым")
        if not 0 < self.port < 65536:
            raise ValueError(f"port должен быть 1-65535, got {self.port}")
        if self.logging_level.upper() not in LOG_LEVELS:
            self.logging_level = "INFO"

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        """
        Загрузка конфигурации.

        Приоритет: переменные окружения > JSON файл > значения по умолчанию.
        Явно указанный, но отсутствующий файл: ошибка.
        """
        data: dict = {}
        if config_path is not None:
            if not Path(config_path).exists():
                raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)

        rpc_data = data.get("rpc", {})
        bot_data = data.get("bot", {})
        server_data = data.get("server", {})
        global_data = data.get("global", {})

        env_endpoints = os.getenv("RPC_ENDPOINTS")
        if env_endpoints:
            rpc_endpoints = _parse_endpoints(env_endpoints)
        else:
            rpc_endpoints = _parse_endpoints(rpc_data.get("endpoints", DEFAULT_RPC_ENDPOINTS))

        return cls(
            rpc_endpoints=rpc_endpoints,
            rpc_timeout=float(os.getenv("RPC_TIMEOUT") or rpc_data.get("timeout", 10.0)),
            wallet_address=os.getenv("BOT_WALLET_ADDRESS") or bot_data.get("wallet_address", DEFAULT_WALLET_ADDRESS),
            database_path=os.getenv("DATABASE_PATH") or global_data.get("database_path", DEFAULT_DATABASE_PATH),
            host=os.getenv("HOST") or server_data.get("host", "0.0.0.0"),
            port=int(os.getenv("PORT") or server_data.get("port", DEFAULT_PORT)),
            logging_level=(os.getenv("LOG_LEVEL") or global_data.get("logging_level", "INFO")).upper(),
        )
