import enum
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class TransactionType(str, enum.Enum):
    """
    Enum for fund transaction types.
    """
    FUND_IN = 'fund_in'
    FUND_OUT = 'fund_out'
    EXPENSE = 'expense'
    DEPOSIT = 'deposit'
    WITHDRAWAL = 'withdrawal'


# Money moving into the row's user balance.
INCOMING_TYPES = {TransactionType.FUND_IN.value, TransactionType.DEPOSIT.value}

# Money moving out of the row's user balance to an admin or the system.
OUTGOING_TYPES = {TransactionType.FUND_OUT.value, TransactionType.WITHDRAWAL.value}


class DisplayType(str, enum.Enum):
    CREDIT = 'credit'
    DEBIT = 'debit'


EXPENSE_CATEGORIES = (
    "Food",
    "Transportation",
    "Office Supplies",
    "Equipment",
    "Travel",
    "Utilities",
    "Marketing",
    "Software",
    "Training",
    "Entertainment",
    "Maintenance",
    "Other",
)


class FundTransaction(BaseModel):
    """
    Immutable ledger row from ``fund_transactions``.

    ``user_id`` is the account whose balance changed; ``admin_id`` is the
    admin on the other side of the movement, or None for system top-ups.
    """
    id: str
    user_id: str
    admin_id: Optional[str] = None
    wallet_id: Optional[str] = None
    transaction_type: str
    amount: float
    previous_balance: Optional[float] = None
    new_balance: Optional[float] = None
    description: Optional[str] = None
    expense_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        extra = "ignore"


class Expense(BaseModel):
    """
    Expense row. Edits are recorded in ``expense_edit_history``.
    """
    id: str
    user_id: str
    wallet_id: Optional[str] = None
    date: str
    amount: float
    category: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        extra = "allow"

    def snapshot(self) -> dict:
        """
        The editable fields, as stored in edit history.
        """
        return {
            "amount": self.amount,
            "category": self.category,
            "description": self.description,
            "date": self.date,
        }
