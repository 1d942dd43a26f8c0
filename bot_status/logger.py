import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

DEFAULT_LOG_NAME = "bot_status"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_FILE = "bot_status.log"
DEFAULT_ERR_FILE = "errors.log"

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


class _BridgeHandler(logging.Handler):
    """Пересылает записи корневого логгера в логгер приложения"""

    def __init__(self, target: logging.Logger):
        super().__init__()
        self.target = target

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == self.target.name or record.name.startswith(self.target.name + "."):
            # уже обработано логгером приложения
            return
        self.target.handle(record)


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logger(
    name: Optional[str] = None,
    level: Optional[str] = None,
    log_dir: Optional[str] = None,
    log_file: Optional[str] = None,
    err_file: Optional[str] = None,
    console: Optional[bool] = None,
) -> logging.Logger:
    """
    Конфигурирует логгер приложения и мост от корневого логгера.

    Приоритет источников настроек:
    1) Параметры функции
    2) Переменные окружения: LOG_NAME, LOG_LEVEL, LOG_DIR, LOG_FILE, LOG_ERR_FILE, LOG_CONSOLE
    3) Значения по умолчанию

    Модульные логгеры (`bot_status.storage.database`, `aiohttp.access`, ...)
    попадают в те же хэндлеры через корневой логгер.
    """
    log_name = name or os.getenv("LOG_NAME", DEFAULT_LOG_NAME)
    log_level_name = (level or os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL)).upper()
    log_level = getattr(logging, log_level_name, logging.INFO)

    dir_path = Path(log_dir or os.getenv("LOG_DIR", DEFAULT_LOG_DIR))
    file_name = log_file or os.getenv("LOG_FILE", DEFAULT_LOG_FILE)
    err_name = err_file or os.getenv("LOG_ERR_FILE", DEFAULT_ERR_FILE)

    if console is None:
        env_console = os.getenv("LOG_CONSOLE")
        enable_console = True if env_console is None else env_console == "1"
    else:
        enable_console = console

    dir_path.mkdir(parents=True, exist_ok=True)

    app_logger = logging.getLogger(log_name)
    app_logger.setLevel(log_level)
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()
    app_logger.propagate = False

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        app_logger.addHandler(console_handler)

    app_logger.addHandler(_rotating_handler(dir_path / file_name, logging.DEBUG, formatter))
    app_logger.addHandler(_rotating_handler(dir_path / err_name, logging.ERROR, formatter))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(_BridgeHandler(app_logger))

    return app_logger


def get_app_logger(name: Optional[str] = None) -> logging.Logger:
    """Логгер приложения или его дочерний логгер (`bot_status.<name>`)"""
    if name is None:
        return logging.getLogger(DEFAULT_LOG_NAME)
    if name == DEFAULT_LOG_NAME or name.startswith(DEFAULT_LOG_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{DEFAULT_LOG_NAME}.{name}")
