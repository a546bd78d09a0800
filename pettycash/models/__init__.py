"""
Models package initialization.

Row models mirror what the platform returns for each table; none of them
are persisted by this service.
"""

from pettycash.models.user import UserRole, UserProfile, CurrentUser
from pettycash.models.wallet import Currency, Wallet, WalletWithBalance
from pettycash.models.transaction import (
    TransactionType,
    DisplayType,
    FundTransaction,
    Expense,
    EXPENSE_CATEGORIES,
)

__all__ = [
    "UserRole",
    "UserProfile",
    "CurrentUser",
    "Currency",
    "Wallet",
    "WalletWithBalance",
    "TransactionType",
    "DisplayType",
    "FundTransaction",
    "Expense",
    "EXPENSE_CATEGORIES",
]
