from pydantic import BaseModel
from typing import Optional
from pettycash.schemas.common import RequiredStr


class WalletCreateRequest(BaseModel):
    """
    Schema for an admin creating a wallet for a user.

    Currency is checked in the service so an unsupported value yields the
    "Invalid currency" message.
    """
    user_id: RequiredStr
    currency: RequiredStr
    name: RequiredStr
    is_default: bool = False


class WalletUpdateRequest(BaseModel):
    """
    Schema for wallet updates.

    action = "setDefault" requires userId; action = "update" requires name.
    Presence checks happen in the route so each yields its own message.
    """
    walletId: Optional[str] = None
    action: Optional[str] = None
    name: Optional[str] = None
    userId: Optional[str] = None
