import logging
import uuid
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from api.models import CMOPayout
from .constants import CENTS, CMO_COMMISSION_RATE


def cmo_commission_for(payment_amount) -> Decimal:
    """Flat CMO override on one payment, rounded to cents."""
    return (Decimal(str(payment_amount)) * CMO_COMMISSION_RATE).quantize(CENTS, rounding=ROUND_HALF_UP)


async def _increment(session: AsyncSession, payout_id: uuid.UUID, commission: Decimal) -> None:
    await session.execute(
        update(CMOPayout)
        .where(CMOPayout.id == payout_id)
        .values(
            total_paid_users=CMOPayout.total_paid_users + 1,
            total_commission=CMOPayout.total_commission + commission,
            base_commission_amount=CMOPayout.base_commission_amount + commission,
        )
    )


async def credit_cmo(session: AsyncSession, cmo_id: uuid.UUID, payment_amount, payment_month: date) -> Decimal:
    """
    Roll one payment into the CMO's monthly payout row.

    The row is keyed by (cmo_id, payout_month). A concurrent writer creating
    the same row first makes our insert fail on the unique constraint, in which
    case we fall back to incrementing its row. Does not commit.
    """
    commission = cmo_commission_for(payment_amount)

    result = await session.execute(
        select(CMOPayout.id).where(CMOPayout.cmo_id == cmo_id, CMOPayout.payout_month == payment_month)
    )
    payout_id = result.scalar_one_or_none()

    if payout_id is None:
        try:
            async with session.begin_nested():
                session.add(
                    CMOPayout(
                        cmo_id=cmo_id,
                        payout_month=payment_month,
                        total_paid_users=1,
                        total_commission=commission,
                        base_commission_amount=commission,
                        bonus_amount=Decimal("0"),
                        status="pending",
                    )
                )
            logging.info(f"Created CMO payout for {cmo_id} month {payment_month}: {commission}")
            return commission
        except IntegrityError:
            result = await session.execute(
                select(CMOPayout.id).where(CMOPayout.cmo_id == cmo_id, CMOPayout.payout_month == payment_month)
            )
            payout_id = result.scalar_one()

    await _increment(session, payout_id, commission)
    logging.info(f"Added {commission} to CMO payout {payout_id} ({cmo_id}, {payment_month})")
    return commission
