import logging
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pettycash.core.errors import (
    NotFoundError,
    PlatformError,
    ValidationError,
)
from pettycash.models.user import CurrentUser, UserProfile, UserRole
from pettycash.platform import PlatformClient

logger = logging.getLogger(__name__)

EMAIL_NOT_AVAILABLE = "Email not available"


class UserService:
    """
    Service layer for user profiles and admin user management.
    Separates business logic from route handlers.
    """

    @staticmethod
    def get_profile(platform: PlatformClient, user_id: str) -> Optional[UserProfile]:
        """
        Find a profile by user ID.
        :param platform: Platform client
        :param user_id: User's ID
        :return: UserProfile if found, None otherwise
        """
        row = platform.table("users").select("*").eq("id", user_id).maybe_single().execute()
        return UserProfile.model_validate(row) if row else None

    @staticmethod
    def default_username(auth_user: dict) -> str:
        """
        Username for an auto-provisioned profile.

        Sanitized email prefix plus the first 8 characters of the user ID,
        e.g. ``jane_doe_550e8400``.
        """
        email = auth_user.get("email") or ""
        prefix = email.split("@")[0] or "user"
        sanitized = re.sub(r"[^a-zA-Z0-9_]", "", prefix).lower() or "user"
        return f"{sanitized}_{auth_user['id'][:8]}"

    @staticmethod
    def get_or_provision_profile(platform: PlatformClient, auth_user: dict) -> Optional[UserProfile]:
        """
        Load the caller's profile, creating a default one if it is missing.

        The upsert keeps this idempotent when concurrent requests race to
        provision the same user.

        :param platform: Platform client scoped to the caller
        :param auth_user: Auth user dict (id, email)
        :return: UserProfile, or None if it could neither be read nor created
        """
        try:
            profile = UserService.get_profile(platform, auth_user["id"])
        except PlatformError as e:
            logger.error(
                f"Error fetching user profile: {e.message}",
                extra={"user_id": auth_user["id"], "table": "users"},
            )
            return None

        if profile is not None:
            return profile

        logger.info("User profile not found, creating one", extra={"user_id": auth_user["id"]})
        try:
            row = platform.table("users").upsert({
                "id": auth_user["id"],
                "username": UserService.default_username(auth_user),
                "role": UserRole.USER.value,
                "created_by": None,
            }, on_conflict="id").execute()
        except PlatformError as e:
            logger.error(
                f"Error creating user profile: {e.message}",
                extra={"user_id": auth_user["id"], "table": "users"},
            )
            return None

        if isinstance(row, list):
            row = row[0] if row else None
        return UserProfile.model_validate(row) if row else None

    @staticmethod
    def update_profile(
            platform: PlatformClient,
            current_user: CurrentUser,
            username: Optional[str],
            display_name: Optional[str] = None,
            avatar_url: Optional[str] = None,
    ) -> UserProfile:
        """
        Update the caller's own profile.

        :raises ValidationError: If username is blank or already taken
        :raises PlatformError: If the platform rejects the update
        """
        username = (username or "").strip()
        if not username:
            raise ValidationError("Username is required")

        if username != current_user.profile.username:
            existing = platform.table("users").select("id") \
                .eq("username", username) \
                .neq("id", current_user.id) \
                .maybe_single().execute()
            if existing:
                raise ValidationError("Username is already taken")

        row = platform.table("users").update({
            "display_name": (display_name or "").strip() or None,
            "username": username,
            "avatar_url": (avatar_url or "").strip() or None,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }).eq("id", current_user.id).single().execute()

        return UserProfile.model_validate(row)

    @staticmethod
    def created_user_ids(platform: PlatformClient, admin_id: str) -> List[str]:
        """
        IDs of the users an admin created.
        :param platform: Platform client
        :param admin_id: Admin's user ID
        :return: List of user IDs (may be empty)
        """
        rows = platform.table("users").select("id").eq("created_by", admin_id).execute()
        return [row["id"] for row in rows or []]

    @staticmethod
    def create_user(
            admin_platform: PlatformClient,
            creator: CurrentUser,
            email: str,
            password: str,
            username: str,
            role: str,
            currency: Optional[str] = None,
            wallet_name: Optional[str] = None,
    ) -> dict:
        """
        Create an auth user, its profile, and optionally a default wallet.

        Process:
        1. Create the auth user (email pre-confirmed).
        2. Upsert the profile with ``created_by`` = creator.
        3. Create the default wallet when a currency is given.

        Any failure after step 1 deletes the auth user again.

        :param admin_platform: Service-role platform client
        :param creator: The admin creating the user
        :return: Summary of the created user
        :raises ValidationError: If any platform step fails
        """
        try:
            auth_user = admin_platform.admin_create_user(
                email=email,
                password=password,
                email_confirm=True,
                user_metadata={"username": username},
            )
        except PlatformError as e:
            logger.error(f"Auth error creating user: {e.message}", extra={"user_id": creator.id})
            raise ValidationError(e.message)

        # GoTrue returns the user object directly; older versions wrap it.
        if auth_user and "user" in auth_user and isinstance(auth_user["user"], dict):
            auth_user = auth_user["user"]
        if not auth_user or not auth_user.get("id"):
            raise ValidationError("Failed to create user")

        user_id = auth_user["id"]
        try:
            admin_platform.table("users").upsert({
                "id": user_id,
                "username": username,
                "role": role,
                "created_by": creator.id,
            }, on_conflict="id").execute()
        except PlatformError as e:
            logger.error(f"Profile upsert error: {e.message}", extra={"user_id": user_id})
            UserService._discard_auth_user(admin_platform, user_id)
            raise ValidationError(e.message)

        result = {
            "id": user_id,
            "email": auth_user.get("email", email),
            "username": username,
            "role": role,
        }

        if currency:
            from pettycash.services.wallet_service import WalletService

            name = wallet_name or f"{currency} Wallet"
            try:
                WalletService.create_wallet(admin_platform, user_id, currency, name, is_default=True)
            except PlatformError as e:
                logger.error(f"Wallet creation error: {e.message}", extra={"user_id": user_id})
                UserService._discard_auth_user(admin_platform, user_id)
                raise ValidationError(f"Failed to create wallet: {e.message}")
            result.update({"currency": currency, "walletName": name})

        logger.info(f"User {email} created", extra={"user_id": creator.id})
        return result

    @staticmethod
    def _discard_auth_user(admin_platform: PlatformClient, user_id: str) -> None:
        try:
            admin_platform.admin_delete_user(user_id)
        except PlatformError as e:
            logger.error(
                f"Failed to clean up auth user after error: {e.message}",
                extra={"user_id": user_id},
            )

    @staticmethod
    def delete_user(admin_platform: PlatformClient, user_id: str) -> None:
        """
        Delete an auth user. The platform cascades to the profile and rows.
        :raises ValidationError: If the platform rejects the deletion
        """
        try:
            admin_platform.admin_delete_user(user_id)
        except PlatformError as e:
            if e.status_code == 404:
                raise NotFoundError(e.message)
            logger.error(f"Error deleting user: {e.message}", extra={"user_id": user_id})
            raise ValidationError(e.message)

    @staticmethod
    def get_emails(admin_platform: PlatformClient, user_ids: List[str]) -> Dict[str, str]:
        """
        Look up auth emails for a list of user IDs.

        A failed lookup yields "Email not available" for that ID rather than
        failing the whole request.
        """
        emails: Dict[str, str] = {}
        for user_id in user_ids:
            user_id = user_id.strip()
            if not user_id:
                continue
            try:
                auth_user = admin_platform.admin_get_user_by_id(user_id) or {}
            except PlatformError as e:
                logger.warning(f"Error fetching email for user {user_id}: {e.message}")
                emails[user_id] = EMAIL_NOT_AVAILABLE
                continue
            if "user" in auth_user and isinstance(auth_user["user"], dict):
                auth_user = auth_user["user"]
            emails[user_id] = auth_user.get("email") or EMAIL_NOT_AVAILABLE
        return emails

    @staticmethod
    def get_users_with_balances(platform: PlatformClient, admin_id: str) -> List[dict]:
        """
        Users an admin manages, with balances.

        Balance rows are initialized for every listed user first so the
        figures agree with the per-user balance endpoint; if the refetch
        fails the first result is returned.

        :raises PlatformError: If the first fetch fails
        """
        users = platform.rpc("get_admin_users_with_balances", {"admin_id": admin_id}) or []
        if not users:
            return []

        for user in users:
            if not user.get("user_id"):
                continue
            try:
                platform.rpc("initialize_user_balance", {"target_user_id": user["user_id"]})
            except PlatformError as e:
                logger.warning(
                    f"Could not initialize balance: {e.message}",
                    extra={"user_id": user["user_id"], "rpc": "initialize_user_balance"},
                )

        try:
            return platform.rpc("get_admin_users_with_balances", {"admin_id": admin_id}) or []
        except PlatformError as e:
            logger.error(
                f"Error refetching users with balances: {e.message}",
                extra={"user_id": admin_id, "rpc": "get_admin_users_with_balances"},
            )
            return users
