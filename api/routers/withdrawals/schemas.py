import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from api.models.payments import WithdrawalStatus


class WithdrawalRequestCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    bank_details: Dict[str, Any]


class WithdrawalReview(BaseModel):
    admin_notes: Optional[str] = None


class WithdrawalRejection(BaseModel):
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None


class WithdrawalRequestRead(BaseModel):
    id: uuid.UUID
    creator_id: uuid.UUID
    amount: Decimal
    fee_percent: Decimal
    fee_amount: Decimal
    net_amount: Decimal
    bank_details: Dict[str, Any]
    status: WithdrawalStatus
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    reviewed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
