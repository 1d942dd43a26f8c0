import re
from dataclasses import dataclass
from decimal import Decimal

from ..errors import ValidationError

LAMPORTS_PER_SOL = 1_000_000_000
SOL_DECIMALS = 9

# base58 без 0, O, I, l; публичный ключ Solana: 32 байта (32-44 символа)
_BASE58_ADDRESS = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


@dataclass(frozen=True)
class BalanceReading:
    balance: Decimal  # SOL
    endpoint: str
    lamports: int


def lamports_to_sol(lamports: int) -> Decimal:
    """Точный перевод lamports -> SOL (сдвиг порядка, без деления float)"""
    return Decimal(lamports).scaleb(-SOL_DECIMALS)


def validate_address(address: str) -> str:
    if not isinstance(address, str) or not _BASE58_ADDRESS.match(address.strip()):
        raise ValidationError(f"Invalid wallet address: {address!r}")
    return address.strip()
