from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from pettycash.middleware.auth import get_current_user
from pettycash.models.user import CurrentUser
from pettycash.platform import PlatformClient, get_platform
from pettycash.schemas.expense import ExpenseCreateRequest, ExpenseUpdateRequest
from pettycash.services.transaction_service import TransactionService

# Create router
router = APIRouter(prefix="/api/transactions", tags=["Transactions"])


def _flag(value: Optional[str]) -> bool:
    return value == "true"


@router.get("/funds")
def list_fund_transactions(
        all_users: Optional[str] = Query(None, alias="allUsers"),
        date_from: Optional[str] = Query(None, alias="dateFrom"),
        date_to: Optional[str] = Query(None, alias="dateTo"),
        current_user: CurrentUser = Depends(get_current_user),
        platform: PlatformClient = Depends(get_platform),
):
    """
    Fund ledger as seen by the caller, newest first.

    Query Parameters:
    - allUsers: "true" for admins to include every user they created
    - dateFrom / dateTo: inclusive YYYY-MM-DD bounds on created_at

    Each row carries sender, recipient and display_type (credit/debit)
    from the caller's perspective.
    """
    transactions = TransactionService.list_fund_transactions(
        platform,
        current_user,
        all_users=_flag(all_users),
        date_from=date_from,
        date_to=date_to,
    )
    return {"transactions": transactions}


@router.get("/expenses")
def list_expenses(
        all_users: Optional[str] = Query(None, alias="allUsers"),
        date_from: Optional[str] = Query(None, alias="dateFrom"),
        date_to: Optional[str] = Query(None, alias="dateTo"),
        category: Optional[str] = None,
        min_amount: Optional[str] = Query(None, alias="minAmount"),
        max_amount: Optional[str] = Query(None, alias="maxAmount"),
        wallet_id: Optional[str] = Query(None, alias="walletId"),
        current_user: CurrentUser = Depends(get_current_user),
        platform: PlatformClient = Depends(get_platform),
):
    """
    Expenses visible to the caller, newest date first.

    "all" for category or walletId means no filter.
    """
    expenses = TransactionService.list_expenses(
        platform,
        current_user,
        all_users=_flag(all_users),
        date_from=date_from,
        date_to=date_to,
        category=category,
        min_amount=min_amount,
        max_amount=max_amount,
        wallet_id=wallet_id,
    )
    return {"expenses": expenses}


@router.post("/expenses", status_code=status.HTTP_201_CREATED)
def create_expense(
        request: ExpenseCreateRequest,
        current_user: CurrentUser = Depends(get_current_user),
        platform: PlatformClient = Depends(get_platform),
):
    """
    Record an expense for the caller.

    Balances may go negative; the platform records the debit.
    """
    expense = TransactionService.create_expense(platform, current_user, request.to_row())
    return {"message": "Expense created successfully", "expense": expense}


@router.put("/expenses/{expense_id}")
def update_expense(
        expense_id: str,
        request: ExpenseUpdateRequest,
        current_user: CurrentUser = Depends(get_current_user),
        platform: PlatformClient = Depends(get_platform),
):
    """
    Edit one of the caller's expenses. The previous values are kept in the
    expense's edit history along with the optional reason.
    """
    TransactionService.update_expense(
        platform, current_user, expense_id, request.changes(), reason=request.reason,
    )
    return {"message": "Expense updated successfully"}


@router.delete("/expenses/{expense_id}")
def delete_expense(
        expense_id: str,
        current_user: CurrentUser = Depends(get_current_user),
        platform: PlatformClient = Depends(get_platform),
):
    """
    Delete one of the caller's expenses.
    """
    TransactionService.delete_expense(platform, current_user, expense_id)
    return {"message": "Expense deleted successfully"}


@router.get("/expenses/{expense_id}/history")
def get_expense_history(
        expense_id: str,
        current_user: CurrentUser = Depends(get_current_user),
        platform: PlatformClient = Depends(get_platform),
):
    """
    Edit history of one of the caller's expenses, newest first.
    """
    history = TransactionService.get_expense_history(platform, current_user, expense_id)
    return {"history": history}
