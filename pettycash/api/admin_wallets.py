import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from pettycash.core.errors import PettyCashError, PlatformError, ValidationError
from pettycash.core.responses import success_response
from pettycash.middleware.auth import require_admin
from pettycash.models.user import CurrentUser
from pettycash.platform import PlatformClient, get_platform
from pettycash.schemas.wallet import WalletCreateRequest, WalletUpdateRequest
from pettycash.services.wallet_service import WalletService

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api/admin/wallets", tags=["Wallets"])

SET_DEFAULT = "setDefault"
UPDATE = "update"


def _platform_failure(action: str, e: PlatformError, current_user: CurrentUser) -> PettyCashError:
    logger.error(f"Error {action} wallet: {e.message}", extra={"user_id": current_user.id, "table": "wallets"})
    return PettyCashError(e.message, 500)


@router.get("")
def list_wallets(
        user_id: Optional[str] = Query(None, alias="userId"),
        current_user: CurrentUser = Depends(require_admin),
        platform: PlatformClient = Depends(get_platform),
):
    """
    A user's wallets with balances, default wallet first.
    """
    if not user_id:
        raise ValidationError("userId parameter is required")

    try:
        wallets = WalletService.get_user_wallets(platform, user_id)
    except PlatformError as e:
        logger.error(f"Error fetching wallets: {e.message}", extra={"user_id": current_user.id})
        raise PettyCashError("Failed to fetch wallets", 500, details=e.message)

    return success_response({"wallets": [w.model_dump(mode="json") for w in wallets]})


@router.post("")
def create_wallet(
        request: WalletCreateRequest,
        current_user: CurrentUser = Depends(require_admin),
        platform: PlatformClient = Depends(get_platform),
):
    """
    Create a wallet for a user.

    Currency must be USD, VND, IDR or PHP.
    """
    WalletService.validate_currency(request.currency)
    try:
        wallet = WalletService.create_wallet(
            platform,
            request.user_id,
            request.currency,
            request.name,
            is_default=request.is_default,
        )
    except PlatformError as e:
        raise _platform_failure("creating", e, current_user)

    return success_response({"message": "Wallet created successfully", "wallet": wallet})


@router.put("")
def update_wallet(
        request: WalletUpdateRequest,
        current_user: CurrentUser = Depends(require_admin),
        platform: PlatformClient = Depends(get_platform),
):
    """
    Set a wallet as default or rename it.

    Actions:
    - setDefault: requires userId
    - update: requires name
    """
    if not request.walletId:
        raise ValidationError("walletId is required")

    try:
        if request.action == SET_DEFAULT:
            if not request.userId:
                raise ValidationError("userId is required for setDefault action")
            WalletService.set_default_wallet(platform, request.userId, request.walletId)
            return success_response({"message": "Default wallet updated"})

        if request.action == UPDATE:
            name = (request.name or "").strip()
            if not name:
                raise ValidationError("name is required for update action")
            wallet = WalletService.rename_wallet(platform, request.walletId, name)
            return success_response({"message": "Wallet updated", "wallet": wallet})
    except PlatformError as e:
        raise _platform_failure("updating", e, current_user)

    raise ValidationError("Invalid action. Must be 'setDefault' or 'update'")


@router.delete("")
def delete_wallet(
        wallet_id: Optional[str] = Query(None, alias="walletId"),
        current_user: CurrentUser = Depends(require_admin),
        platform: PlatformClient = Depends(get_platform),
):
    """
    Delete a wallet. A default wallet can only go once it is the last one.
    """
    if not wallet_id:
        raise ValidationError("walletId parameter is required")

    try:
        WalletService.delete_wallet(platform, wallet_id)
    except PlatformError as e:
        raise _platform_failure("deleting", e, current_user)

    return success_response({"message": "Wallet deleted successfully"})
