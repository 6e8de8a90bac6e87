import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from api.models import CreatorProfile, DiscountCode, PaymentAttribution, UserAttribution
from services.errors import AttributionError
from utils.dates import month_bucket, utcnow
from .cmo import credit_cmo
from .constants import CENTS
from .rates import RateResolver


@dataclass
class FinalizeCommand:
    order_id: str
    user_id: uuid.UUID
    final_amount: Decimal
    original_amount: Optional[Decimal] = None
    ref_creator: Optional[str] = None
    discount_code: Optional[str] = None
    enrollment_id: Optional[uuid.UUID] = None
    payment_type: str = "card"
    tier: Optional[str] = None


@dataclass
class FinalizeResult:
    creator_id: Optional[uuid.UUID]
    commission: Decimal
    duplicate: bool = False


@dataclass
class _Referrer:
    creator: CreatorProfile
    discount_code_id: Optional[uuid.UUID]
    source: str


def compute_commission(final_amount, rate: Decimal) -> Decimal:
    return (Decimal(str(final_amount)) * rate).quantize(CENTS, rounding=ROUND_HALF_UP)


class AttributionService:
    """
    Turns a confirmed payment into exactly one ledger row.

    Every caller (card payment, admin finalize, bank-transfer join approval,
    upgrade approval, gateway webhook) goes through `finalize`. The unique
    index on payment_attributions.order_id is what makes it idempotent: the
    pre-check only saves work, and a duplicate insert is reported as success.
    Balance side effects run only after our own insert went through, in the
    same transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.rates = RateResolver(session)

    async def get_by_order_id(self, order_id: str) -> Optional[PaymentAttribution]:
        result = await self.session.execute(
            select(PaymentAttribution).where(PaymentAttribution.order_id == order_id)
        )
        return result.scalar_one_or_none()

    async def finalize(self, cmd: FinalizeCommand, now: Optional[datetime] = None, commit: bool = True) -> FinalizeResult:
        now = now or utcnow()
        logging.info(
            f"Finalizing order {cmd.order_id}: user {cmd.user_id}, type {cmd.payment_type}, "
            f"final {cmd.final_amount}, ref {cmd.ref_creator}, code {cmd.discount_code}"
        )

        existing = await self.get_by_order_id(cmd.order_id)
        if existing is not None:
            logging.info(f"Attribution already exists for order {cmd.order_id}, skipping")
            return FinalizeResult(existing.creator_id, existing.creator_commission_amount, duplicate=True)

        referrer = await self._resolve_referrer(cmd)

        final_amount = Decimal(str(cmd.final_amount))
        original_amount = Decimal(str(cmd.original_amount)) if cmd.original_amount is not None else final_amount

        if referrer is None:
            logging.info(f"No referral for order {cmd.order_id}: Rs.{final_amount} is platform revenue")
            creator_id = None
            rate = Decimal("0")
            commission = Decimal("0")
        else:
            creator_id = referrer.creator.id
            rate = await self.rates.resolve_rate(creator_id, now, creator=referrer.creator)
            commission = compute_commission(final_amount, rate)
            logging.info(
                f"Commission for order {cmd.order_id}: creator {creator_id} ({referrer.source}), "
                f"{final_amount} x {rate} = {commission}"
            )

        payment_month = month_bucket(now)
        row = PaymentAttribution(
            order_id=cmd.order_id,
            user_id=cmd.user_id,
            creator_id=creator_id,
            enrollment_id=cmd.enrollment_id,
            original_amount=original_amount,
            discount_applied=max(original_amount - final_amount, Decimal("0")),
            final_amount=final_amount,
            creator_commission_rate=rate,
            creator_commission_amount=commission,
            payment_month=payment_month,
            tier=cmd.tier,
            payment_type=cmd.payment_type,
            created_at=now,
        )

        try:
            async with self.session.begin_nested():
                self.session.add(row)
        except IntegrityError as e:
            winner = await self.get_by_order_id(cmd.order_id)
            if winner is not None:
                logging.info(f"Order {cmd.order_id} was attributed concurrently, treating as duplicate")
                return FinalizeResult(winner.creator_id, winner.creator_commission_amount, duplicate=True)
            logging.error(f"Failed to insert attribution for order {cmd.order_id}: {e}")
            raise AttributionError(f"Failed to create attribution: {e.orig}") from e
        except SQLAlchemyError as e:
            logging.error(f"Failed to insert attribution for order {cmd.order_id}: {e}")
            raise AttributionError(f"Failed to create attribution: {e}") from e

        if referrer is not None:
            await self._apply_balances(cmd, referrer, commission, final_amount, payment_month)

        if commit:
            await self.session.commit()
        logging.info(f"Attribution created for order {cmd.order_id}")
        return FinalizeResult(creator_id, commission)

    async def _resolve_referrer(self, cmd: FinalizeCommand) -> Optional[_Referrer]:
        if cmd.ref_creator:
            result = await self.session.execute(
                select(CreatorProfile).where(CreatorProfile.referral_code == cmd.ref_creator.strip().upper())
            )
            creator = result.scalar_one_or_none()
            if creator is not None:
                return _Referrer(creator, None, "link")
            logging.info(f"Referral code {cmd.ref_creator} did not match any creator")

        if cmd.discount_code:
            result = await self.session.execute(
                select(DiscountCode).where(
                    DiscountCode.code == cmd.discount_code.strip().upper(),
                    DiscountCode.is_active.is_(True),
                )
            )
            code = result.scalar_one_or_none()
            if code is not None and code.creator_id is not None:
                creator = await self.session.get(CreatorProfile, code.creator_id)
                if creator is not None:
                    return _Referrer(creator, code.id, "discount_code")

        # upgrades pay the creator who brought the user in
        if cmd.payment_type == "upgrade":
            result = await self.session.execute(
                select(UserAttribution).where(UserAttribution.user_id == cmd.user_id)
            )
            attribution = result.scalar_one_or_none()
            if attribution is not None:
                creator = await self.session.get(CreatorProfile, attribution.creator_id)
                if creator is not None:
                    return _Referrer(creator, None, "attribution")

        return None

    async def _apply_balances(
        self,
        cmd: FinalizeCommand,
        referrer: _Referrer,
        commission: Decimal,
        final_amount: Decimal,
        payment_month,
    ) -> None:
        creator = referrer.creator

        await self.session.execute(
            update(CreatorProfile)
            .where(CreatorProfile.id == creator.id)
            .values(
                lifetime_paid_users=CreatorProfile.lifetime_paid_users + 1,
                monthly_paid_users=CreatorProfile.monthly_paid_users + 1,
                available_balance=CreatorProfile.available_balance + commission,
            )
        )

        await self._remember_attribution(cmd.user_id, referrer)

        if referrer.discount_code_id is not None:
            await self.session.execute(
                update(DiscountCode)
                .where(DiscountCode.id == referrer.discount_code_id)
                .values(
                    usage_count=DiscountCode.usage_count + 1,
                    paid_conversions=DiscountCode.paid_conversions + 1,
                )
            )

        if creator.cmo_id is not None:
            await credit_cmo(self.session, creator.cmo_id, final_amount, payment_month)

    async def _remember_attribution(self, user_id: uuid.UUID, referrer: _Referrer) -> None:
        """First attributor sticks: an existing row is left untouched."""
        result = await self.session.execute(
            select(UserAttribution.id).where(UserAttribution.user_id == user_id)
        )
        if result.scalar_one_or_none() is not None:
            return
        try:
            async with self.session.begin_nested():
                self.session.add(
                    UserAttribution(
                        user_id=user_id,
                        creator_id=referrer.creator.id,
                        discount_code_id=referrer.discount_code_id,
                        referral_source=referrer.source,
                    )
                )
        except IntegrityError:
            logging.info(f"User {user_id} was attributed concurrently, keeping the existing attributor")
