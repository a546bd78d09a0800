import logging
from typing import List

from pettycash.core.errors import ValidationError
from pettycash.models.user import CurrentUser
from pettycash.platform import PlatformClient

logger = logging.getLogger(__name__)

# How many ledger rows accompany a balance read.
OWN_HISTORY_LIMIT = 10
ADMIN_HISTORY_LIMIT = 20


class BalanceService:
    """
    Service layer for balances and fund top-ups.

    Balances and ledgers come from stored procedures; this layer only
    forwards parameters and normalizes empty results.
    """

    @staticmethod
    def get_balance(platform: PlatformClient, user_id: str) -> float:
        """
        Current balance via ``get_user_balance``. Null reads as 0.
        :raises PlatformError: If the procedure fails
        """
        balance = platform.rpc("get_user_balance", {"target_user_id": user_id})
        return float(balance or 0)

    @staticmethod
    def get_fund_transactions(platform: PlatformClient, user_id: str, limit: int) -> List[dict]:
        """
        Most recent ledger rows via ``get_user_fund_transactions``.
        :raises PlatformError: If the procedure fails
        """
        return platform.rpc("get_user_fund_transactions", {
            "target_user_id": user_id,
            "limit_count": limit,
        }) or []

    @staticmethod
    def get_balance_summary(platform: PlatformClient, user_id: str, limit: int = OWN_HISTORY_LIMIT) -> dict:
        """
        Balance plus recent ledger rows for one user.
        :param platform:
        :param user_id:
        :param limit: Number of ledger rows
        :return: {"balance": float, "transactions": [...]}
        """
        balance = BalanceService.get_balance(platform, user_id)
        transactions = BalanceService.get_fund_transactions(platform, user_id, limit)
        return {"balance": balance, "transactions": transactions}

    @staticmethod
    def add_funds(
            platform: PlatformClient,
            admin: CurrentUser,
            recipient_id: str,
            amount: float,
            description: str = None,
    ) -> str:
        """
        Credit a user's balance via ``add_user_funds``.

        The procedure reports business failures (unknown user, not managed
        by this admin, ...) as a string starting with "Error:" rather than
        as a database error.

        :return: Confirmation message
        :raises ValidationError: If the procedure returns an error string
        :raises PlatformError: If the procedure call itself fails
        """
        result = platform.rpc("add_user_funds", {
            "target_user_id": recipient_id,
            "amount": amount,
            "admin_user_id": admin.id,
            "description": description or f"Fund deposit by {admin.profile.username}",
        })

        if isinstance(result, str) and result.startswith("Error:"):
            raise ValidationError(result)

        logger.info(
            f"Added {amount} to user {recipient_id}",
            extra={"user_id": admin.id, "rpc": "add_user_funds"},
        )
        return result or "Funds added successfully"
