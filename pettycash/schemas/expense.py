import datetime
from typing import Annotated, Optional
from pydantic import AfterValidator, BaseModel, Field, StringConstraints
from pettycash.models.transaction import EXPENSE_CATEGORIES
from pettycash.schemas.common import Amount


def _check_category(v: str) -> str:
    if v not in EXPENSE_CATEGORIES:
        raise ValueError(f"Invalid category: {v}. Must be one of {', '.join(EXPENSE_CATEGORIES)}")
    return v


Category = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1),
    AfterValidator(_check_category),
]


def _clean_description(description: Optional[str]) -> Optional[str]:
    return (description or "").strip() or None


class ExpenseCreateRequest(BaseModel):
    """
    Schema for recording a new expense.
    """
    date: datetime.date
    amount: Amount = Field(..., description="Expense amount (Must be greater than 0)")
    category: Category
    description: Optional[str] = None
    wallet_id: Optional[str] = None

    def to_row(self) -> dict:
        row = self.model_dump(mode="json", exclude_none=True)
        row["description"] = _clean_description(self.description)
        return row


class ExpenseUpdateRequest(BaseModel):
    """
    Schema for editing an expense. ``reason`` is kept in the edit history.
    """
    amount: Amount
    category: Category
    description: Optional[str] = None
    date: datetime.date
    reason: Optional[str] = None

    def changes(self) -> dict:
        return {
            "amount": self.amount,
            "category": self.category,
            "description": _clean_description(self.description),
            "date": self.date.isoformat(),
        }
