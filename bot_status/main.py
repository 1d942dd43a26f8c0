import os
import sys
from typing import Optional

from aiohttp import web

from .api.solana_rpc import SolanaRpcClient
from .config import Config
from .errors import StoreError
from .logger import get_app_logger, setup_logger
from .service.status_service import StatusService
from .storage.database import Database
from .web.server import create_app

logger = get_app_logger()


class StatusBackend:
    """Сборка компонентов: один Database и один RPC клиент на процесс"""

    def __init__(self, config: Config):
        self.config = config

        # Ошибка инициализации схемы фатальна: StoreError уходит наверх
        self.database = Database(config.database_path)
        self.rpc_client = SolanaRpcClient(config.rpc_endpoints, timeout=config.rpc_timeout)
        self.service = StatusService(
            database=self.database,
            rpc_client=self.rpc_client,
            wallet_address=config.wallet_address,
            rpc_endpoints=config.rpc_endpoints,
        )
        self.app = create_app(self.service)
        self.app.on_shutdown.append(self._on_shutdown)

        logger.info("═" * 70)
        logger.info(" " * 22 + "TRADING BOT STATUS BACKEND")
        logger.info("═" * 70)
        logger.info(f"Database: {config.database_path}")
        logger.info(f"Bot wallet: {config.wallet_address}")
        logger.info(f"RPC endpoints: {', '.join(config.rpc_endpoints)}")
        logger.info(f"Listening on: http://{config.host}:{config.port}")
        logger.info(f"Health check: http://localhost:{config.port}/health")
        logger.info("═" * 70)

    async def _on_shutdown(self, app: web.Application):
        stats = self.rpc_client.get_stats()
        logger.info(
            f"Shutting down. RPC requests: {stats['request_count']}, "
            f"errors: {stats['error_count']} ({stats['error_rate']})"
        )

    def run(self):
        web.run_app(self.app, host=self.config.host, port=self.config.port, print=None)


def main(config_path: Optional[str] = None):
    """Точка входа"""
    config = Config.load(config_path or os.getenv("CONFIG_PATH"))
    setup_logger(level=config.logging_level)

    try:
        backend = StatusBackend(config)
    except StoreError as e:
        logger.critical(f"Database initialization failed: {e}")
        sys.exit(1)

    backend.run()


if __name__ == "__main__":
    main()
