from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from pettycash.models.user import UserProfile, UserRole
from pettycash.models.wallet import Currency
from pettycash.schemas.common import RequiredStr


class ProfileResponse(BaseModel):
    """
    Schema for the caller's profile (what we send to the client).
    """
    profile: UserProfile
    email: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    """
    Schema for updating the caller's own profile.

    Username is validated in the service so a blank value yields
    "Username is required" rather than a generic field error.
    """
    username: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


class CreateUserRequest(BaseModel):
    """
    Schema for an admin creating a user account.
    """
    email: EmailStr
    password: str = Field(..., min_length=6, description="Initial password (min 6 characters)")
    username: RequiredStr
    role: UserRole
    currency: Optional[Currency] = Field(None, description="Create a default wallet in this currency")
    walletName: Optional[str] = Field(None, description="Default wallet name, '<CUR> Wallet' if omitted")


class CreatedUser(BaseModel):
    id: str
    email: Optional[str] = None
    username: str
    role: str
    currency: Optional[str] = None
    walletName: Optional[str] = None
