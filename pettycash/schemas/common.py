from typing import Annotated
from pydantic import AfterValidator, StringConstraints

# Non-blank string. Blank values are reported as missing fields.
RequiredStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


def _positive_amount(v: float) -> float:
    """Round to 2 decimal places, then require a positive result."""
    v = round(v, 2)
    if v <= 0:
        raise ValueError("Amount must be greater than 0")
    return v


# Money amount: rounded to cents, must stay above 0 after rounding.
Amount = Annotated[float, AfterValidator(_positive_amount)]
