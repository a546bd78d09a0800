import logging

from fastapi import APIRouter, Depends

from pettycash.core.errors import PlatformError, ValidationError
from pettycash.middleware.auth import get_current_user
from pettycash.models.user import CurrentUser
from pettycash.platform import PlatformClient, get_platform
from pettycash.services.balance_service import BalanceService

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api", tags=["Balance"])


@router.get("/balance")
def get_balance(
        current_user: CurrentUser = Depends(get_current_user),
        platform: PlatformClient = Depends(get_platform),
):
    """
    Get the caller's balance and 10 most recent fund transactions.

    Returns:
        {"balance": float, "transactions": [...]}
    """
    try:
        return BalanceService.get_balance_summary(platform, current_user.id)
    except PlatformError as e:
        logger.error(f"Error getting balance: {e.message}", extra={"user_id": current_user.id})
        raise ValidationError(e.message)
