import enum
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class Currency(str, enum.Enum):
    """
    Currencies a wallet may hold.
    """
    USD = 'USD'
    VND = 'VND'
    IDR = 'IDR'
    PHP = 'PHP'


class Wallet(BaseModel):
    """
    Wallet row. A user may hold several wallets, one of them default.
    """
    id: str
    user_id: Optional[str] = None
    currency: str
    name: str
    is_default: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        extra = "allow"


class WalletWithBalance(Wallet):
    """
    Wallet with its balance as reported by ``get_wallet_balance``.
    """
    balance: float = 0.0
