import logging

from fastapi import APIRouter, Depends, status
from starlette.requests import Request

from pettycash.core.errors import AuthenticationError, PlatformError
from pettycash.core.security import SESSION_TOKEN_KEY
from pettycash.middleware.auth import get_current_user
from pettycash.models.user import CurrentUser
from pettycash.platform import PlatformClient, get_platform
from pettycash.schemas.auth import LoginRequest
from pettycash.schemas.user import ProfileResponse
from pettycash.services.user_service import UserService

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", status_code=status.HTTP_200_OK)
def login(
        request: Request,
        credentials: LoginRequest,
        platform: PlatformClient = Depends(get_platform),
):
    """
    Sign in with email and password.

    The platform issues the session; its access token is kept in the signed
    session cookie so later requests authenticate without a bearer header.
    The token is also returned for API clients.

    :param request: Request object (for the session)
    :param credentials: Email and password
    :param platform: Platform client
    :return: Access token and the caller's profile
    """
    try:
        session = platform.sign_in_with_password(credentials.email, credentials.password)
    except PlatformError as e:
        if e.status_code in (400, 401, 403):
            raise AuthenticationError("Invalid login credentials")
        raise

    access_token = session.get("access_token") if session else None
    auth_user = (session or {}).get("user") or {}
    if not access_token or not auth_user.get("id"):
        raise AuthenticationError("Invalid login credentials")

    profile = UserService.get_or_provision_profile(platform.with_token(access_token), auth_user)
    if profile is None:
        raise AuthenticationError("User profile not found")

    request.session[SESSION_TOKEN_KEY] = access_token
    logger.info("User signed in", extra={"user_id": auth_user["id"]})

    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": session.get("expires_in"),
        "profile": profile.model_dump(mode="json"),
        "email": auth_user.get("email"),
    }


@router.post("/logout")
def logout(request: Request):
    """
    Clear the session cookie. Always succeeds.
    """
    request.session.clear()
    return {"message": "Signed out"}


@router.get("/me", response_model=ProfileResponse)
def get_current_user_info(current_user: CurrentUser = Depends(get_current_user)):
    """
    Get current authenticated user's info.

    Useful for a frontend to verify its session and get user details.
    :param current_user:
    :return: Current user's profile and email
    """
    return ProfileResponse(profile=current_user.profile, email=current_user.email)
