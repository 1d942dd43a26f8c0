#!/usr/bin/env python3
"""
Точка входа для trading-bot status backend
Запуск: python main.py [config.json]
"""

import sys

from bot_status.main import main

if __name__ == "__main__":
    try:
        main(sys.argv[1] if len(sys.argv) > 1 else None)
    except KeyboardInterrupt:
        print("\n⏹ Остановка сервиса пользователем...")
        sys.exit(0)
