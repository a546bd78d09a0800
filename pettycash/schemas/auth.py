from pydantic import BaseModel, EmailStr, Field
from pettycash.schemas.common import RequiredStr


class LoginRequest(BaseModel):
    """
    Schema for email/password sign-in.
    """
    email: EmailStr
    password: RequiredStr = Field(..., description="Account password")
