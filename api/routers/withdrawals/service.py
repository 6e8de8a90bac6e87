import logging
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from api.models import CreatorProfile, WithdrawalRequest, WithdrawalStatus
from services.commission.constants import CENTS, MIN_WITHDRAWAL_AMOUNT, WITHDRAWAL_FEE_PERCENT
from services.errors import BusinessRuleError, NotFound
from utils.dates import utcnow
from .schemas import WithdrawalRequestCreate


def withdrawal_fee(amount: Decimal, fee_percent: Decimal = WITHDRAWAL_FEE_PERCENT) -> Decimal:
    return (amount * fee_percent / Decimal(100)).quantize(CENTS, rounding=ROUND_HALF_UP)


class WithdrawalService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _pending_total(self, creator_id: uuid.UUID) -> Decimal:
        result = await self.session.execute(
            select(WithdrawalRequest.amount).where(
                WithdrawalRequest.creator_id == creator_id,
                WithdrawalRequest.status == WithdrawalStatus.PENDING,
            )
        )
        return sum(result.scalars().all(), Decimal("0"))

    async def create_request(self, creator: CreatorProfile, dto: WithdrawalRequestCreate) -> WithdrawalRequest:
        amount = dto.amount.quantize(CENTS, rounding=ROUND_HALF_UP)
        if amount < MIN_WITHDRAWAL_AMOUNT:
            raise BusinessRuleError(f"Minimum withdrawal is Rs.{MIN_WITHDRAWAL_AMOUNT}")

        # balance is only moved on approval, so pending requests are reserved here
        pending = await self._pending_total(creator.id)
        if creator.available_balance - pending < amount:
            raise BusinessRuleError("Insufficient balance for withdrawal")

        fee = withdrawal_fee(amount)
        request = WithdrawalRequest(
            creator_id=creator.id,
            amount=amount,
            fee_percent=WITHDRAWAL_FEE_PERCENT,
            fee_amount=fee,
            net_amount=amount - fee,
            bank_details=dto.bank_details,
            status=WithdrawalStatus.PENDING,
        )
        self.session.add(request)
        await self.session.commit()
        await self.session.refresh(request)
        logging.info(f"Withdrawal request {request.id} created for creator {creator.id}: {amount} (net {request.net_amount})")
        return request

    async def get_requests_by_status(self, status: Optional[WithdrawalStatus] = None) -> list[WithdrawalRequest]:
        query = select(WithdrawalRequest).order_by(WithdrawalRequest.created_at.asc())
        if status is not None:
            query = query.where(WithdrawalRequest.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_history_for_creator(self, creator_id: uuid.UUID) -> list[WithdrawalRequest]:
        query = (
            select(WithdrawalRequest)
            .where(WithdrawalRequest.creator_id == creator_id)
            .order_by(WithdrawalRequest.created_at.desc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def approve_request(self, request_id: uuid.UUID, admin_id: uuid.UUID, admin_notes: Optional[str] = None) -> WithdrawalRequest:
        request = await self.session.get(WithdrawalRequest, request_id)
        if not request:
            raise NotFound("Withdrawal request not found")
        if request.status != WithdrawalStatus.PENDING:
            raise BusinessRuleError(f"Cannot approve request with status {request.status.value}")

        creator = await self.session.get(CreatorProfile, request.creator_id)
        if not creator:
            raise NotFound("Creator not found")
        if creator.available_balance < request.amount:
            raise BusinessRuleError("Insufficient balance for withdrawal")

        # gross amount on both sides keeps available == commissions - withdrawn
        await self.session.execute(
            update(CreatorProfile)
            .where(CreatorProfile.id == creator.id)
            .values(
                total_withdrawn=CreatorProfile.total_withdrawn + request.amount,
                available_balance=CreatorProfile.available_balance - request.amount,
            )
        )

        request.status = WithdrawalStatus.APPROVED
        request.reviewed_at = utcnow()
        request.reviewed_by = admin_id
        request.admin_notes = admin_notes
        await self.session.commit()
        logging.info(f"Withdrawal request {request_id} approved: {request.amount} for creator {creator.id}")
        return request

    async def reject_request(
        self,
        request_id: uuid.UUID,
        admin_id: uuid.UUID,
        rejection_reason: Optional[str] = None,
        admin_notes: Optional[str] = None,
    ) -> WithdrawalRequest:
        request = await self.session.get(WithdrawalRequest, request_id)
        if not request:
            raise NotFound("Withdrawal request not found")
        if request.status != WithdrawalStatus.PENDING:
            raise BusinessRuleError(f"Cannot reject request with status {request.status.value}")

        request.status = WithdrawalStatus.REJECTED
        request.reviewed_at = utcnow()
        request.reviewed_by = admin_id
        request.rejection_reason = rejection_reason
        request.admin_notes = admin_notes
        await self.session.commit()
        logging.info(f"Withdrawal request {request_id} rejected: {rejection_reason}")
        return request
