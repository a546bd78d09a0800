import logging
from typing import Optional

from fastapi import Depends, Request

from pettycash.core.config import get_settings
from pettycash.core.errors import AuthenticationError, PermissionDeniedError, PlatformError
from pettycash.core.security import extract_access_token, decode_access_token, auth_user_from_claims
from pettycash.models.user import CurrentUser, UserRole
from pettycash.platform import PlatformClient, get_platform
from pettycash.services.user_service import UserService

logger = logging.getLogger(__name__)

# Dependencies below are plain functions: platform calls block, so FastAPI
# runs them in its threadpool.


def resolve_auth_user(platform: PlatformClient, token: str) -> Optional[dict]:
    """
    Validate an access token and return its auth user.

    With a configured JWT secret the token is verified locally; otherwise
    the platform is asked to resolve it.

    :param platform: Platform client
    :param token: Access token
    :return: Auth user dict (id, email) or None if the token is invalid
    """
    if get_settings().SUPABASE_JWT_SECRET:
        payload = decode_access_token(token)
        return auth_user_from_claims(payload) if payload else None

    try:
        user = platform.get_user(token)
    except PlatformError as e:
        logger.error(f"Token validation failed: {e.message}")
        return None
    if not user or not user.get("id"):
        return None
    return user


def get_current_user(
        request: Request,
        platform: PlatformClient = Depends(get_platform),
) -> CurrentUser:
    """
    Dependency to get the current authenticated user and their profile.

    Missing profiles are provisioned with the default ``user`` role.

    :param request: Incoming request (bearer header or session cookie)
    :param platform: Platform client scoped to the caller
    :return: CurrentUser with profile
    :raises AuthenticationError: If no valid token or no profile could be loaded
    """
    token = extract_access_token(request)
    if not token:
        raise AuthenticationError()

    auth_user = resolve_auth_user(platform, token)
    if auth_user is None:
        raise AuthenticationError()

    profile = UserService.get_or_provision_profile(platform, auth_user)
    if profile is None:
        raise AuthenticationError("User profile not found")

    return CurrentUser(id=auth_user["id"], email=auth_user.get("email"), profile=profile)


def require_role(*roles: UserRole):
    """
    Dependency factory to require one of the given roles.

    :param roles: Allowed roles
    :return: Dependency returning the CurrentUser
    """
    allowed = {r.value if isinstance(r, UserRole) else r for r in roles}

    def role_checker(
            current_user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        if current_user.role not in allowed:
            logger.info(
                f"Role {current_user.role} denied; requires one of {sorted(allowed)}",
                extra={"user_id": current_user.id},
            )
            raise PermissionDeniedError()
        return current_user

    return role_checker


require_admin = require_role(UserRole.ADMIN, UserRole.SUPERADMIN)
