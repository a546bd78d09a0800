import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from pettycash.core.errors import PermissionDeniedError, PlatformError, ValidationError
from pettycash.core.responses import success_response
from pettycash.middleware.auth import get_current_user, require_admin
from pettycash.models.user import CurrentUser
from pettycash.platform import PlatformClient, get_admin_platform, get_platform
from pettycash.schemas.funds import FundDepositRequest
from pettycash.schemas.user import CreateUserRequest, CreatedUser
from pettycash.services.balance_service import ADMIN_HISTORY_LIMIT, BalanceService
from pettycash.services.user_service import UserService

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.post("/funds")
def add_funds(
        request: FundDepositRequest,
        current_user: CurrentUser = Depends(require_admin),
        platform: PlatformClient = Depends(get_platform),
):
    """
    Credit a user's balance.

    Requires:
    - admin or superadmin role

    Process:
    1. Validate recipient, amount and description
    2. Call ``add_user_funds``, which checks the admin manages the recipient
    3. Return the procedure's confirmation
    """
    try:
        message = BalanceService.add_funds(
            platform,
            current_user,
            recipient_id=request.recipient_id,
            amount=request.amount,
            description=request.description,
        )
    except PlatformError as e:
        logger.error(f"Error adding funds: {e.message}", extra={"user_id": current_user.id, "rpc": "add_user_funds"})
        raise ValidationError(e.message)

    return success_response({"message": message})


@router.get("/funds")
def get_user_funds(
        user_id: Optional[str] = Query(None, alias="userId"),
        current_user: CurrentUser = Depends(get_current_user),
        platform: PlatformClient = Depends(get_platform),
):
    """
    Balance and 20 most recent ledger rows of any user.

    Only authentication is checked here; the platform's row-level policies
    decide what the caller may read.
    """
    if not user_id:
        raise ValidationError("User ID is required")

    try:
        summary = BalanceService.get_balance_summary(platform, user_id, limit=ADMIN_HISTORY_LIMIT)
    except PlatformError as e:
        logger.error(f"Error getting fund information: {e.message}", extra={"user_id": current_user.id})
        raise ValidationError(e.message)

    return success_response(summary)


@router.get("/users-with-balances")
def get_users_with_balances(
        current_user: CurrentUser = Depends(require_admin),
        platform: PlatformClient = Depends(get_platform),
):
    """
    Users the caller manages, with balances and wallets.
    """
    try:
        users = UserService.get_users_with_balances(platform, current_user.id)
    except PlatformError as e:
        logger.error(
            f"Error fetching users with balances: {e.message}",
            extra={"user_id": current_user.id, "rpc": "get_admin_users_with_balances"},
        )
        raise ValidationError(e.message)

    return success_response({"users": users})


@router.post("/users")
def create_user(
        request: CreateUserRequest,
        current_user: CurrentUser = Depends(require_admin),
        admin_platform: PlatformClient = Depends(get_admin_platform),
):
    """
    Create a user account managed by the caller.

    Requires:
    - admin or superadmin role (any role may be granted)

    If ``currency`` is given a default wallet is created too. Any failure
    after the auth account exists removes that account again.
    """
    created = UserService.create_user(
        admin_platform,
        current_user,
        email=request.email,
        password=request.password,
        username=request.username,
        role=request.role.value,
        currency=request.currency.value if request.currency else None,
        wallet_name=(request.walletName or "").strip() or None,
    )

    return success_response({
        "message": "User created successfully",
        "user": CreatedUser.model_validate(created).model_dump(exclude_none=True),
    })


@router.delete("/users/{user_id}")
def delete_user(
        user_id: str,
        current_user: CurrentUser = Depends(require_admin),
        admin_platform: PlatformClient = Depends(get_admin_platform),
):
    """
    Delete a user account. Superadmins only.
    """
    if not current_user.profile.is_superadmin:
        raise PermissionDeniedError("Access denied. Superadmin role required to delete users.")

    UserService.delete_user(admin_platform, user_id)
    logger.info(f"User {user_id} deleted", extra={"user_id": current_user.id})
    return success_response({"message": "User deleted successfully"})


@router.get("/users/emails")
def get_user_emails(
        user_ids: Optional[str] = Query(None, alias="userIds"),
        current_user: CurrentUser = Depends(require_admin),
        admin_platform: PlatformClient = Depends(get_admin_platform),
):
    """
    Auth emails for a comma-separated list of user IDs.
    """
    if not user_ids:
        raise ValidationError("User IDs are required")

    emails = UserService.get_emails(admin_platform, user_ids.split(","))
    return success_response({"emails": emails})
