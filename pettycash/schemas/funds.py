from pydantic import BaseModel, Field
from pettycash.schemas.common import Amount, RequiredStr


class FundDepositRequest(BaseModel):
    """
    Schema for an admin topping up a user's balance.
    """
    recipient_id: RequiredStr
    amount: Amount = Field(..., description="Amount to credit (Must be greater than 0)")
    description: RequiredStr
