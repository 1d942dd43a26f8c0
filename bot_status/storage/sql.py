# DECIMAL_TEXT даёт TEXT affinity: значения хранятся точной десятичной строкой,
# а конвертер "DECIMAL_TEXT" (PARSE_DECLTYPES) возвращает Decimal при чтении.

BOT_STATUS_TABLE = """
CREATE TABLE IF NOT EXISTS bot_status (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    is_running BOOLEAN NOT NULL DEFAULT 0,
    last_update TIMESTAMP NOT NULL,
    total_trades INTEGER NOT NULL DEFAULT 0,
    active_positions INTEGER NOT NULL DEFAULT 0,
    backend_connected BOOLEAN NOT NULL DEFAULT 1,
    created_at TIMESTAMP NOT NULL
)"""


TRADES_TABLE = """
CREATE TABLE IF NOT EXISTS trades (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    trade_id VARCHAR(255) UNIQUE NOT NULL,
    token_symbol VARCHAR(50) NOT NULL,
    action VARCHAR(10) NOT NULL CHECK (action IN ('buy', 'sell')),
    amount BIGINT NOT NULL CHECK (amount >= 0),
    price DECIMAL_TEXT(20, 8) NOT NULL,
    profit_loss DECIMAL_TEXT(20, 8) NOT NULL DEFAULT '0',
    timestamp TIMESTAMP NOT NULL,
    status VARCHAR(20) NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'completed', 'failed')),
    created_at TIMESTAMP NOT NULL
)"""


PROFIT_DATA_TABLE = """
CREATE TABLE IF NOT EXISTS profit_data (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timeframe VARCHAR(20) UNIQUE NOT NULL,
    total_profit DECIMAL_TEXT(20, 8) NOT NULL DEFAULT '0',
    total_loss DECIMAL_TEXT(20, 8) NOT NULL DEFAULT '0',
    net_profit DECIMAL_TEXT(20, 8) NOT NULL DEFAULT '0',
    win_rate DECIMAL_TEXT(5, 2) NOT NULL DEFAULT '0',
    total_trades INTEGER NOT NULL DEFAULT 0,
    chart_data JSON,
    created_at TIMESTAMP NOT NULL,
    updated_at TIMESTAMP NOT NULL
)"""


BOT_STRATEGY_TABLE = """
CREATE TABLE IF NOT EXISTS bot_strategy (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name VARCHAR(255) UNIQUE NOT NULL,
    description TEXT,
    risk_level VARCHAR(20) NOT NULL,
    expected_return VARCHAR(50),
    max_position VARCHAR(20),
    stop_loss VARCHAR(20),
    take_profit VARCHAR(20),
    enabled BOOLEAN NOT NULL DEFAULT 1,
    created_at TIMESTAMP NOT NULL,
    updated_at TIMESTAMP NOT NULL
)"""


WALLET_BALANCES_TABLE = """
CREATE TABLE IF NOT EXISTS wallet_balances (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    wallet_address VARCHAR(255) NOT NULL,
    balance DECIMAL_TEXT(20, 8) NOT NULL,
    timestamp TIMESTAMP NOT NULL
)"""


USER_INTERACTIONS_TABLE = """
CREATE TABLE IF NOT EXISTS user_interactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_wallet VARCHAR(255),
    action VARCHAR(100) NOT NULL,
    amount DECIMAL_TEXT(20, 8),
    status VARCHAR(20) NOT NULL DEFAULT 'pending',
    timestamp TIMESTAMP NOT NULL,
    metadata JSON
)"""


BOT_STATUS_CREATED_INDEX = """CREATE INDEX IF NOT EXISTS idx_bot_status_created ON bot_status(created_at)"""
TRADES_TIMESTAMP_INDEX = """CREATE INDEX IF NOT EXISTS idx_trades_timestamp ON trades(timestamp)"""
STRATEGY_UPDATED_INDEX = """CREATE INDEX IF NOT EXISTS idx_bot_strategy_updated ON bot_strategy(updated_at)"""
WALLET_BALANCES_ADDRESS_INDEX = (
    """CREATE INDEX IF NOT EXISTS idx_wallet_balances_address ON wallet_balances(wallet_address, timestamp)"""
)

SCHEMA = (
    BOT_STATUS_TABLE,
    TRADES_TABLE,
    PROFIT_DATA_TABLE,
    BOT_STRATEGY_TABLE,
    WALLET_BALANCES_TABLE,
    USER_INTERACTIONS_TABLE,
    BOT_STATUS_CREATED_INDEX,
    TRADES_TIMESTAMP_INDEX,
    STRATEGY_UPDATED_INDEX,
    WALLET_BALANCES_ADDRESS_INDEX,
)
