from typing import Optional
from jose import JWTError, jwt
from starlette.requests import Request
from pettycash.core.config import get_settings

# Key under which the access token is kept in the signed session cookie.
SESSION_TOKEN_KEY = "access_token"


def extract_access_token(request: Request) -> Optional[str]:
    """
    Find the caller's access token.

    Priority:
    1. Authorization: Bearer <token> header
    2. Token stored in the session cookie by /auth/login

    :param request: Incoming request
    :return: Token string, or None when the caller sent neither
    """
    authorization = request.headers.get("authorization")
    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer "):].strip()
        if token:
            return token

    # SessionMiddleware populates scope["session"]; absent when not installed.
    session = request.scope.get("session")
    if session:
        return session.get(SESSION_TOKEN_KEY)
    return None


def decode_access_token(token: str) -> Optional[dict]:
    """
    Decode and verify a platform-issued JWT access token.

    The platform signs user tokens with its project JWT secret and sets the
    audience to "authenticated". Expiry is enforced by jose.

    :param token: JWT token string
    :return: Decoded token payload if valid, None if invalid
    """
    settings = get_settings()
    if not settings.SUPABASE_JWT_SECRET:
        return None

    try:
        payload = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
        )
    except JWTError:
        return None

    if not payload.get("sub"):
        return None
    return payload


def auth_user_from_claims(payload: dict) -> dict:
    """
    Shape decoded claims like the platform's /auth/v1/user response.

    :param payload: Decoded JWT claims
    :return: Dict with id, email and role
    """
    return {
        "id": payload["sub"],
        "email": payload.get("email"),
        "role": payload.get("role"),
    }
