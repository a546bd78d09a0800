import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from pettycash.core.errors import NotFoundError, PettyCashError, PlatformError, ValidationError
from pettycash.models.transaction import (
    INCOMING_TYPES,
    OUTGOING_TYPES,
    DisplayType,
    Expense,
    FundTransaction,
)
from pettycash.models.user import CurrentUser
from pettycash.platform import PlatformClient, Query
from pettycash.services.user_service import UserService

logger = logging.getLogger(__name__)

YOU = "You"
SYSTEM = "System"

# Appended to a bare YYYY-MM-DD upper bound so the whole day is included.
END_OF_DAY = "T23:59:59.999Z"


def describe_transaction(row: dict, viewer_id: str, usernames: Dict[str, str]) -> dict:
    """
    Resolve sender, recipient and credit/debit direction of one ledger row
    from the viewer's perspective.

    Money into ``user_id`` (fund_in, deposit) comes from ``admin_id`` or
    the system; money out of ``user_id`` (fund_out, withdrawal) goes to
    ``admin_id`` or the system. The viewer is shown as "You".

    :param row: Ledger row as returned by the platform
    :param viewer_id: ID of the user looking at the ledger
    :param usernames: Map of user ID to username
    :return: The row's own fields (id renamed to transaction_id) plus
        username, admin_username, sender, recipient and display_type
    """
    txn = FundTransaction.model_validate(row)
    user_name = usernames.get(txn.user_id)
    admin_name = usernames.get(txn.admin_id) if txn.admin_id else None
    viewer_is_user = txn.user_id == viewer_id
    viewer_is_admin = txn.admin_id is not None and txn.admin_id == viewer_id

    sender = SYSTEM
    recipient = "Unknown"
    display_type = DisplayType.CREDIT

    if txn.transaction_type in INCOMING_TYPES:
        if viewer_is_user:
            sender = (admin_name or "Admin") if txn.admin_id else SYSTEM
            recipient = YOU
        elif viewer_is_admin:
            display_type = DisplayType.DEBIT
            sender = YOU
            recipient = user_name or "Unknown User"
        else:
            sender = (admin_name or "Unknown Admin") if txn.admin_id else SYSTEM
            recipient = user_name or "User"
    elif txn.transaction_type in OUTGOING_TYPES:
        if viewer_is_user:
            sender = user_name or "User"
            recipient = YOU
        elif viewer_is_admin:
            display_type = DisplayType.DEBIT
            sender = YOU
            recipient = user_name or "User"
        else:
            display_type = DisplayType.DEBIT
            sender = user_name or "User"
            recipient = (admin_name or "Unknown Admin") if txn.admin_id else SYSTEM

    view = {key: value for key, value in row.items() if key != "id"}
    view.update({
        "transaction_id": txn.id,
        "username": user_name or "Unknown User",
        "admin_username": (admin_name or "Unknown Admin") if txn.admin_id else None,
        "sender": sender,
        "recipient": recipient,
        "display_type": display_type.value,
    })
    return view


def _parse_amount(value: Optional[str], name: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        raise ValidationError(f"Invalid {name}: {value}")


class TransactionService:
    """
    Service layer for the fund ledger and expenses.
    """

    @staticmethod
    def scope_user_ids(platform: PlatformClient, current_user: CurrentUser) -> List[str]:
        """
        Users whose rows an admin sees in "all users" mode: the admin and
        every user the admin created.
        """
        return [current_user.id, *UserService.created_user_ids(platform, current_user.id)]

    @staticmethod
    def _apply_scope(query: Query, platform: PlatformClient, current_user: CurrentUser, all_users: bool) -> None:
        if all_users and current_user.is_admin:
            query.in_("user_id", TransactionService.scope_user_ids(platform, current_user))
        else:
            query.eq("user_id", current_user.id)

    @staticmethod
    def get_usernames(platform: PlatformClient, user_ids: Iterable[str]) -> Dict[str, str]:
        ids = sorted({uid for uid in user_ids if uid})
        if not ids:
            return {}
        rows = platform.table("users").select("id, username").in_("id", ids).execute()
        return {row["id"]: row["username"] for row in rows or []}

    @staticmethod
    def list_fund_transactions(
            platform: PlatformClient,
            current_user: CurrentUser,
            all_users: bool = False,
            date_from: Optional[str] = None,
            date_to: Optional[str] = None,
    ) -> List[dict]:
        """
        Ledger rows visible to the caller, newest first, enriched with
        sender/recipient names.

        Own mode shows rows where the caller is the user or the admin.
        "All users" mode (admins only) shows rows of the caller and of
        every user the caller created.

        :raises PettyCashError: 500 if the ledger query fails
        """
        query = platform.table("fund_transactions").select(
            "id, user_id, admin_id, transaction_type, amount, new_balance, description, created_at"
        ).order("created_at", desc=True)

        if all_users and current_user.is_admin:
            query.in_("user_id", TransactionService.scope_user_ids(platform, current_user))
        else:
            query.or_(("user_id", "eq", current_user.id), ("admin_id", "eq", current_user.id))

        if date_from:
            query.gte("created_at", date_from)
        if date_to:
            query.lte("created_at", f"{date_to}{END_OF_DAY}")

        try:
            rows = query.execute() or []
        except PlatformError as e:
            logger.error(
                f"Error fetching fund transactions: {e.message}",
                extra={"user_id": current_user.id, "table": "fund_transactions"},
            )
            raise PettyCashError("Failed to fetch fund transactions", 500, details=e.message)

        usernames = TransactionService.get_usernames(
            platform,
            [row.get("user_id") for row in rows] + [row.get("admin_id") for row in rows],
        )
        return [describe_transaction(row, current_user.id, usernames) for row in rows]

    @staticmethod
    def list_expenses(
            platform: PlatformClient,
            current_user: CurrentUser,
            all_users: bool = False,
            date_from: Optional[str] = None,
            date_to: Optional[str] = None,
            category: Optional[str] = None,
            min_amount: Optional[str] = None,
            max_amount: Optional[str] = None,
            wallet_id: Optional[str] = None,
    ) -> List[dict]:
        """
        Expenses visible to the caller, newest date first, with wallet.

        :raises ValidationError: If an amount bound is not a number
        :raises PettyCashError: 500 if the expense query fails
        """
        min_value = _parse_amount(min_amount, "minAmount")
        max_value = _parse_amount(max_amount, "maxAmount")

        query = platform.table("expenses").select(
            "*, wallet:wallets(id, name, currency)"
        ).order("date", desc=True)
        TransactionService._apply_scope(query, platform, current_user, all_users)

        if date_from:
            query.gte("date", date_from)
        if date_to:
            query.lte("date", date_to)
        if category and category != "all":
            query.eq("category", category)
        if min_value is not None:
            query.gte("amount", min_value)
        if max_value is not None:
            query.lte("amount", max_value)
        if wallet_id and wallet_id != "all":
            query.eq("wallet_id", wallet_id)

        try:
            return query.execute() or []
        except PlatformError as e:
            logger.error(
                f"Error fetching expenses: {e.message}",
                extra={"user_id": current_user.id, "table": "expenses"},
            )
            raise PettyCashError("Failed to fetch expenses", 500, details=e.message)

    @staticmethod
    def create_expense(platform: PlatformClient, current_user: CurrentUser, data: dict) -> dict:
        """
        Record an expense for the caller. The platform debits the balance
        and writes the matching ledger row.
        """
        row = {"user_id": current_user.id, **data}
        try:
            created = platform.table("expenses").insert(row).execute()
        except PlatformError as e:
            logger.error(
                f"Error creating expense: {e.message}",
                extra={"user_id": current_user.id, "table": "expenses"},
            )
            raise PettyCashError(
                "Failed to create expense",
                403 if e.is_permission_error else 500,
                details=e.message,
            )
        if isinstance(created, list):
            created = created[0] if created else row
        return created

    @staticmethod
    def get_own_expense(platform: PlatformClient, current_user: CurrentUser, expense_id: str) -> Expense:
        """
        :raises NotFoundError: If the expense is missing or not the caller's
        """
        try:
            row = platform.table("expenses").select("*") \
                .eq("id", expense_id) \
                .eq("user_id", current_user.id) \
                .maybe_single().execute()
        except PlatformError as e:
            logger.warning(f"Error fetching expense {expense_id}: {e.message}")
            row = None
        if not row:
            raise NotFoundError("Expense not found or access denied")
        return Expense.model_validate(row)

    @staticmethod
    def update_expense(
            platform: PlatformClient,
            current_user: CurrentUser,
            expense_id: str,
            changes: dict,
            reason: Optional[str] = None,
    ) -> None:
        """
        Edit one of the caller's expenses and append an edit-history row
        holding the previous and new snapshots.

        A failed history insert is logged but does not fail the edit.

        :raises NotFoundError: If the expense is missing or not the caller's
        :raises PettyCashError: 500 if the update fails
        """
        current = TransactionService.get_own_expense(platform, current_user, expense_id)

        try:
            platform.table("expenses").update({
                **changes,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }).eq("id", expense_id).eq("user_id", current_user.id).execute()
        except PlatformError as e:
            logger.error(
                f"Error updating expense: {e.message}",
                extra={"user_id": current_user.id, "table": "expenses"},
            )
            raise PettyCashError("Failed to update expense", 500)

        try:
            platform.table("expense_edit_history").insert({
                "expense_id": expense_id,
                "edited_by": current_user.id,
                "previous_data": current.snapshot(),
                "new_data": changes,
                "reason": reason,
            }).execute()
        except PlatformError as e:
            logger.warning(
                f"Error creating edit history: {e.message}",
                extra={"user_id": current_user.id, "table": "expense_edit_history"},
            )

    @staticmethod
    def delete_expense(platform: PlatformClient, current_user: CurrentUser, expense_id: str) -> None:
        """
        Delete one of the caller's expenses. Edit history cascades on the
        platform side.

        :raises PettyCashError: 500 if the delete fails
        """
        try:
            platform.table("expenses").delete() \
                .eq("id", expense_id) \
                .eq("user_id", current_user.id) \
                .execute()
        except PlatformError as e:
            logger.error(
                f"Error deleting expense: {e.message}",
                extra={"user_id": current_user.id, "table": "expenses"},
            )
            raise PettyCashError("Failed to delete expense", 500)

    @staticmethod
    def get_expense_history(platform: PlatformClient, current_user: CurrentUser, expense_id: str) -> List[dict]:
        """
        Edit history of one of the caller's expenses, newest first.
        """
        TransactionService.get_own_expense(platform, current_user, expense_id)
        return platform.table("expense_edit_history").select("*") \
            .eq("expense_id", expense_id) \
            .order("edited_at", desc=True) \
            .execute() or []
