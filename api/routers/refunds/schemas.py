from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class RefundRequest(BaseModel):
    payment_id: str = Field(..., min_length=1, max_length=100)
    otp_code: str = Field(..., min_length=1, max_length=10)
    description: Optional[str] = Field(None, max_length=500)


class RefundResponse(BaseModel):
    success: bool
    message: str
    payment_id: str
    refund_amount: Decimal
