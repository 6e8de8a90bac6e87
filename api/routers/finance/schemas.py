import uuid
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

Tier = Literal["starter", "standard", "lifetime"]


class FinalizePaymentUserRequest(BaseModel):
    order_id: str = Field(..., min_length=1, max_length=100)
    enrollment_id: Optional[uuid.UUID] = None
    payment_type: str = "card"
    tier: Tier
    original_amount: Optional[Decimal] = Field(None, ge=0)
    final_amount: Decimal = Field(..., ge=0)
    ref_creator: Optional[str] = Field(None, max_length=50)
    discount_code: Optional[str] = Field(None, max_length=50)


class FinalizePaymentRequest(FinalizePaymentUserRequest):
    user_id: uuid.UUID


class FinalizePaymentResponse(BaseModel):
    success: bool = True
    creator_id: Optional[uuid.UUID] = None
    commission: Decimal
    duplicate: bool = False
    message: Optional[str] = None


class ApproveJoinRequest(BaseModel):
    join_request_id: uuid.UUID
    admin_notes: Optional[str] = None


class ApproveUpgradeRequest(BaseModel):
    upgrade_request_id: uuid.UUID
    admin_notes: Optional[str] = None


class ApprovalResponse(BaseModel):
    success: bool = True
    order_id: str
    enrollment_id: Optional[uuid.UUID] = None
    creator_id: Optional[uuid.UUID] = None
    commission: Decimal
    already_processed: bool = False

    class Config:
        from_attributes = True


class RecalculationResponse(BaseModel):
    success: bool = True
    creators_updated: int
    cmo_payouts_updated: int


class TierEvaluationResults(BaseModel):
    evaluated: int
    promoted: int
    demoted: int
    unchanged: int
    protected: int
    errors: list[str]

    class Config:
        from_attributes = True


class TierEvaluationResponse(BaseModel):
    success: bool = True
    message: str = "Creator tier evaluation completed"
    results: TierEvaluationResults


class RevenueStatsResponse(BaseModel):
    total_revenue: Decimal
    this_month_revenue: Decimal
    monthly_breakdown: dict[str, Decimal]

    class Config:
        from_attributes = True
