import logging
from typing import List, Optional

from pettycash.core.errors import NotFoundError, PlatformError, ValidationError
from pettycash.models.wallet import Currency, WalletWithBalance
from pettycash.platform import PlatformClient

logger = logging.getLogger(__name__)

MAX_WALLETS_PER_USER = 5


class WalletService:
    """
    Service layer for wallet-related operations.
    Handles wallet listing with balances, creation, defaults and deletion.
    Balances are always read from the platform, never computed here.
    """

    @staticmethod
    def validate_currency(currency: str) -> str:
        """
        :raises ValidationError: If currency is not supported
        """
        if currency not in {c.value for c in Currency}:
            raise ValidationError("Invalid currency. Must be USD, VND, IDR, or PHP")
        return currency

    @staticmethod
    def get_wallet_balance(platform: PlatformClient, wallet_id: str) -> float:
        """
        Balance of a wallet via ``get_wallet_balance``. Errors read as 0.
        :param platform:
        :param wallet_id:
        :return: Balance as float
        """
        try:
            balance = platform.rpc("get_wallet_balance", {"target_wallet_id": wallet_id})
        except PlatformError as e:
            logger.warning(
                f"Error getting wallet balance: {e.message}",
                extra={"rpc": "get_wallet_balance"},
            )
            return 0.0
        return float(balance or 0)

    @staticmethod
    def get_user_wallets(platform: PlatformClient, user_id: str) -> List[WalletWithBalance]:
        """
        A user's wallets, default first then oldest first, with balances.
        :param platform:
        :param user_id:
        :return: List of wallets with balance
        """
        rows = platform.table("wallets").select("*") \
            .eq("user_id", user_id) \
            .order("is_default", desc=True) \
            .order("created_at") \
            .execute()

        return [
            WalletWithBalance.model_validate({
                **row,
                "balance": WalletService.get_wallet_balance(platform, row["id"]),
            })
            for row in rows or []
        ]

    @staticmethod
    def get_wallet(platform: PlatformClient, wallet_id: str) -> Optional[dict]:
        return platform.table("wallets").select("*").eq("id", wallet_id).maybe_single().execute()

    @staticmethod
    def create_wallet(
            platform: PlatformClient,
            user_id: str,
            currency: str,
            name: str,
            is_default: bool = False,
    ):
        """
        Create a wallet through ``admin_create_wallet``.
        :return: The created wallet as returned by the platform
        :raises ValidationError: If the currency is unsupported or the user
            already holds MAX_WALLETS_PER_USER wallets
        """
        WalletService.validate_currency(currency)

        existing = platform.table("wallets").select("id").eq("user_id", user_id).execute() or []
        if len(existing) >= MAX_WALLETS_PER_USER:
            raise ValidationError(f"User cannot have more than {MAX_WALLETS_PER_USER} wallets")

        return platform.rpc("admin_create_wallet", {
            "p_user_id": user_id,
            "p_currency": currency,
            "p_name": name,
            "p_is_default": is_default,
        })

    @staticmethod
    def set_default_wallet(platform: PlatformClient, user_id: str, wallet_id: str) -> None:
        """
        Make one wallet the user's default: clear every default flag of the
        user, then set the flag on the chosen wallet.
        """
        platform.table("wallets").update({"is_default": False}).eq("user_id", user_id).execute()
        platform.table("wallets").update({"is_default": True}) \
            .eq("id", wallet_id) \
            .eq("user_id", user_id) \
            .execute()

    @staticmethod
    def rename_wallet(platform: PlatformClient, wallet_id: str, name: str) -> dict:
        row = platform.table("wallets").update({"name": name}).eq("id", wallet_id).single().execute()
        return row

    @staticmethod
    def delete_wallet(platform: PlatformClient, wallet_id: str) -> None:
        """
        Delete a wallet.

        A default wallet may only be deleted when it is the owner's last one.

        :raises NotFoundError: If the wallet does not exist
        :raises ValidationError: If it is a default wallet with siblings
        """
        wallet = WalletService.get_wallet(platform, wallet_id)
        if not wallet:
            raise NotFoundError("Wallet not found")

        if wallet.get("is_default"):
            others = platform.table("wallets").select("id") \
                .eq("user_id", wallet["user_id"]) \
                .neq("id", wallet_id) \
                .execute()
            if others:
                raise ValidationError("Cannot delete default wallet. Set another wallet as default first.")

        platform.table("wallets").delete().eq("id", wallet_id).execute()
