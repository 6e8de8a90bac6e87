import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from api.models import Enrollment, JoinRequest, RequestStatus, UpgradeRequest, User, UserSubjects
from services.commission.attribution import AttributionService, FinalizeCommand
from services.errors import BusinessRuleError, NotFound
from utils.dates import utcnow

ENROLLMENT_DURATION = timedelta(days=365)
LIFETIME_TIER = "lifetime"


def enrollment_expiry(tier: str, now: datetime) -> Optional[datetime]:
    """Lifetime access never expires, everything else runs for a year."""
    return None if tier == LIFETIME_TIER else now + ENROLLMENT_DURATION


@dataclass
class ApprovalResult:
    order_id: str
    amount: Decimal
    tier: Optional[str]
    enrollment_id: Optional[uuid.UUID] = None
    creator_id: Optional[uuid.UUID] = None
    commission: Decimal = Decimal("0")
    already_processed: bool = False
    ref_creator: Optional[str] = None
    user_email: Optional[str] = None


class EnrollmentService:
    """Admin approval of bank-transfer join and upgrade requests."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.attribution = AttributionService(session)

    async def _user_email(self, user_id: uuid.UUID) -> Optional[str]:
        user = await self.session.get(User, user_id)
        return user.email if user else None

    def _mark_approved(self, request, admin_id: uuid.UUID, admin_notes: Optional[str], now: datetime) -> None:
        request.status = RequestStatus.APPROVED
        request.reviewed_at = now
        request.reviewed_by = admin_id
        request.admin_notes = admin_notes or None

    async def approve_join_request(
        self,
        join_request_id: uuid.UUID,
        admin_id: uuid.UUID,
        admin_notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ApprovalResult:
        now = now or utcnow()
        request = await self.session.get(JoinRequest, join_request_id)
        if request is None:
            raise NotFound("Join request not found")
        if request.status != RequestStatus.PENDING:
            raise BusinessRuleError("Request already processed")

        order_id = f"BANK-{request.reference_number}"
        outcome = ApprovalResult(
            order_id=order_id,
            amount=request.amount,
            tier=request.tier,
            ref_creator=request.ref_creator,
            user_email=await self._user_email(request.user_id),
        )
        logging.info(f"Approving join request {join_request_id} as order {order_id}")

        existing = await self.attribution.get_by_order_id(order_id)
        if existing is not None:
            logging.info(f"Attribution already exists for join request {order_id}")
            self._mark_approved(request, admin_id, admin_notes, now)
            await self.session.commit()
            outcome.already_processed = True
            outcome.enrollment_id = existing.enrollment_id
            outcome.creator_id = existing.creator_id
            outcome.commission = existing.creator_commission_amount
            return outcome

        enrollment = Enrollment(
            user_id=request.user_id,
            grade=request.grade,
            stream=request.stream or "maths",
            medium=request.medium or "english",
            tier=request.tier,
            expires_at=enrollment_expiry(request.tier, now),
            is_active=True,
            payment_order_id=order_id,
        )
        self.session.add(enrollment)
        await self.session.flush()

        if request.subject_1 and request.subject_2 and request.subject_3:
            self.session.add(
                UserSubjects(
                    user_id=request.user_id,
                    enrollment_id=enrollment.id,
                    subject_1=request.subject_1,
                    subject_2=request.subject_2,
                    subject_3=request.subject_3,
                    is_locked=True,
                    locked_at=now,
                )
            )

        result = await self.attribution.finalize(
            FinalizeCommand(
                order_id=order_id,
                user_id=request.user_id,
                final_amount=request.amount,
                original_amount=request.amount,
                ref_creator=request.ref_creator,
                discount_code=request.discount_code,
                enrollment_id=enrollment.id,
                payment_type="bank",
                tier=request.tier,
            ),
            now=now,
            commit=False,
        )

        self._mark_approved(request, admin_id, admin_notes, now)
        await self.session.commit()
        logging.info(f"Join request {join_request_id} approved, enrollment {enrollment.id}")

        outcome.enrollment_id = enrollment.id
        outcome.creator_id = result.creator_id
        outcome.commission = result.commission
        return outcome

    async def approve_upgrade_request(
        self,
        upgrade_request_id: uuid.UUID,
        admin_id: uuid.UUID,
        admin_notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ApprovalResult:
        now = now or utcnow()
        request = await self.session.get(UpgradeRequest, upgrade_request_id)
        if request is None:
            raise NotFound("Upgrade request not found")
        if request.status != RequestStatus.PENDING:
            raise BusinessRuleError("Request already processed")

        order_id = f"UPGRADE-{request.reference_number}"
        outcome = ApprovalResult(
            order_id=order_id,
            amount=request.amount or Decimal("0"),
            tier=request.requested_tier,
            enrollment_id=request.enrollment_id,
            user_email=await self._user_email(request.user_id),
        )
        logging.info(f"Approving upgrade request {upgrade_request_id} as order {order_id}")

        existing = await self.attribution.get_by_order_id(order_id)
        if existing is not None:
            logging.info(f"Attribution already exists for upgrade {order_id}")
            self._mark_approved(request, admin_id, admin_notes, now)
            await self.session.commit()
            outcome.already_processed = True
            outcome.creator_id = existing.creator_id
            outcome.commission = existing.creator_commission_amount
            return outcome

        enrollment = await self.session.get(Enrollment, request.enrollment_id)
        if enrollment is None:
            raise NotFound("Enrollment not found")

        enrollment.tier = request.requested_tier
        enrollment.expires_at = enrollment_expiry(request.requested_tier, now)

        if request.amount and request.amount > 0:
            result = await self.attribution.finalize(
                FinalizeCommand(
                    order_id=order_id,
                    user_id=request.user_id,
                    final_amount=request.amount,
                    original_amount=request.amount,
                    enrollment_id=request.enrollment_id,
                    payment_type="upgrade",
                    tier=request.requested_tier,
                ),
                now=now,
                commit=False,
            )
            outcome.creator_id = result.creator_id
            outcome.commission = result.commission

        self._mark_approved(request, admin_id, admin_notes, now)
        await self.session.commit()
        logging.info(f"Upgrade request {upgrade_request_id} approved")
        return outcome
