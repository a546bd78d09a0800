import enum
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class UserRole(str, enum.Enum):
    """
    Enum for user roles.

    Roles are ordered: user < admin < superadmin.
    """
    USER = 'user'
    ADMIN = 'admin'
    SUPERADMIN = 'superadmin'


ROLE_LEVELS = {
    UserRole.USER: 1,
    UserRole.ADMIN: 2,
    UserRole.SUPERADMIN: 3,
}


def role_level(role) -> int:
    """
    Rank of a role in the hierarchy. Unknown roles rank 0.

    :param role: UserRole or raw role string
    :return: 0-3
    """
    try:
        return ROLE_LEVELS[UserRole(role)]
    except ValueError:
        return 0


def has_role_at_least(role, required) -> bool:
    """
    Check whether ``role`` meets or exceeds ``required`` in the hierarchy.
    """
    return role_level(role) >= role_level(required)


class UserProfile(BaseModel):
    """
    Profile row from the platform's ``users`` table.

    The auth user (email, password) lives in the platform's auth schema;
    this row carries the application role and the ownership edge
    ``created_by`` (the admin that created this user).
    """
    id: str
    username: str
    role: str = UserRole.USER.value
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        extra = "allow"

    @property
    def is_admin(self) -> bool:
        return self.role in (UserRole.ADMIN.value, UserRole.SUPERADMIN.value)

    @property
    def is_superadmin(self) -> bool:
        return self.role == UserRole.SUPERADMIN.value


class CurrentUser(BaseModel):
    """
    The authenticated caller: auth identity plus profile row.
    """
    id: str
    email: Optional[str] = None
    profile: UserProfile

    @property
    def role(self) -> str:
        return self.profile.role

    @property
    def is_admin(self) -> bool:
        return self.profile.is_admin
