import logging

from fastapi import APIRouter, Depends

from pettycash.core.errors import PettyCashError, PlatformError
from pettycash.middleware.auth import get_current_user
from pettycash.models.user import CurrentUser
from pettycash.platform import PlatformClient, get_platform
from pettycash.schemas.user import ProfileResponse, ProfileUpdateRequest
from pettycash.services.user_service import UserService

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api/profile", tags=["Profile"])


@router.get("", response_model=ProfileResponse)
def get_profile(current_user: CurrentUser = Depends(get_current_user)):
    """
    Get the caller's profile and email.
    """
    return ProfileResponse(profile=current_user.profile, email=current_user.email)


@router.put("")
def update_profile(
        request: ProfileUpdateRequest,
        current_user: CurrentUser = Depends(get_current_user),
        platform: PlatformClient = Depends(get_platform),
):
    """
    Update the caller's username, display name and avatar.

    Rules:
    - Username is required and must not belong to another user.
    - Blank display name / avatar URL are stored as null.
    """
    try:
        profile = UserService.update_profile(
            platform,
            current_user,
            username=request.username,
            display_name=request.display_name,
            avatar_url=request.avatar_url,
        )
    except PlatformError as e:
        logger.error(
            f"Error updating profile: {e.message} (code={e.code})",
            extra={"user_id": current_user.id, "table": "users"},
        )
        raise PettyCashError(
            "Failed to update profile",
            403 if e.is_permission_error else 500,
            details=e.message,
        )

    return {
        "message": "Profile updated successfully",
        "profile": profile.model_dump(mode="json"),
    }
