import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class CheckoutRequest(BaseModel):
    order_id: str = Field(..., min_length=1, max_length=100)
    items: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., ge=0)
    currency: str = Field("LKR", min_length=1, max_length=10)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    phone: str = Field(..., min_length=1, max_length=20)
    address: str = Field(..., min_length=1, max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    country: str = Field(..., min_length=1, max_length=100)
    custom_1: Optional[str] = None  # tier
    custom_2: Optional[str] = None  # enrollment id or "new"
    ref_creator: Optional[str] = Field(None, max_length=50)
    discount_code: Optional[str] = Field(None, max_length=50)


class CheckoutResponse(BaseModel):
    merchant_id: str
    hash: str
    sandbox: bool


class VerifyPaymentRequest(BaseModel):
    order_id: str = Field(..., min_length=1)


class VerifyPaymentResponse(BaseModel):
    verified: bool
    status: Optional[str] = None
    payment_id: Optional[str] = None
    amount: Optional[Decimal] = None
    tier: Optional[str] = None
    ref_creator: Optional[str] = None
    discount_code: Optional[str] = None
    failure_reason: Optional[str] = None
    error: Optional[str] = None


class UpdatePaymentRequest(BaseModel):
    order_id: str = Field(..., min_length=1)
    enrollment_id: Optional[uuid.UUID] = None
