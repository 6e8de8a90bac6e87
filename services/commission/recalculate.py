import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from api.models import CMOPayout, CreatorProfile, PaymentAttribution
from utils.dates import month_bucket, utcnow
from .cmo import cmo_commission_for

ZERO = Decimal("0")


@dataclass
class RecalculationReport:
    creators_updated: int = 0
    cmo_payouts_updated: int = 0


@dataclass
class _CreatorTotals:
    lifetime: int = 0
    monthly: int = 0
    commission: Decimal = ZERO


@dataclass
class _PayoutTotals:
    paid_users: int = 0
    base: Decimal = ZERO


class StatsRecalculator:
    """
    Rebuilds every derived counter and balance from the attribution ledger.

    Whatever this produces is the correct state. If live updates disagree
    with it, the live updates are wrong.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def recalculate_stats(self, now: Optional[datetime] = None) -> RecalculationReport:
        now = now or utcnow()
        current_month = month_bucket(now)
        logging.info(f"Recalculating stats from payment_attributions (current month {current_month})")

        await self.session.execute(
            update(CreatorProfile).values(lifetime_paid_users=0, monthly_paid_users=0, available_balance=ZERO)
        )

        creator_cmo = {
            row.id: row.cmo_id
            for row in (await self.session.execute(select(CreatorProfile.id, CreatorProfile.cmo_id))).all()
        }

        creators: dict[uuid.UUID, _CreatorTotals] = defaultdict(_CreatorTotals)
        payouts: dict[tuple[uuid.UUID, date], _PayoutTotals] = defaultdict(_PayoutTotals)

        stream = await self.session.stream(
            select(
                PaymentAttribution.creator_id,
                PaymentAttribution.final_amount,
                PaymentAttribution.creator_commission_amount,
                PaymentAttribution.payment_month,
            )
            .where(PaymentAttribution.creator_id.is_not(None))
            .execution_options(yield_per=500)
        )
        async for creator_id, final_amount, commission, payment_month in stream:
            totals = creators[creator_id]
            totals.lifetime += 1
            totals.commission += commission or ZERO
            if payment_month is not None and payment_month >= current_month:
                totals.monthly += 1

            cmo_id = creator_cmo.get(creator_id)
            if cmo_id is not None and payment_month is not None:
                payout = payouts[(cmo_id, payment_month)]
                payout.paid_users += 1
                payout.base += cmo_commission_for(final_amount)

        report = RecalculationReport()
        for creator_id, totals in creators.items():
            creator = await self.session.get(CreatorProfile, creator_id)
            if creator is None:
                logging.warning(f"Ledger references missing creator {creator_id}, skipping")
                continue
            available = totals.commission - (creator.total_withdrawn or ZERO)
            await self.session.execute(
                update(CreatorProfile)
                .where(CreatorProfile.id == creator_id)
                .values(
                    lifetime_paid_users=totals.lifetime,
                    monthly_paid_users=totals.monthly,
                    available_balance=max(ZERO, available),
                )
            )
            report.creators_updated += 1

        report.cmo_payouts_updated = await self._rebuild_cmo_payouts(payouts)

        await self.session.commit()
        logging.info(
            f"Recalculated stats for {report.creators_updated} creators and {report.cmo_payouts_updated} CMO payouts"
        )
        return report

    async def _rebuild_cmo_payouts(self, payouts: dict[tuple[uuid.UUID, date], _PayoutTotals]) -> int:
        updated = 0
        existing = (await self.session.execute(select(CMOPayout))).scalars().all()
        seen = set()

        for payout in existing:
            key = (payout.cmo_id, payout.payout_month)
            seen.add(key)
            totals = payouts.get(key, _PayoutTotals())
            bonus = payout.bonus_amount or ZERO
            payout.total_paid_users = totals.paid_users
            payout.base_commission_amount = totals.base
            payout.total_commission = totals.base + bonus
            updated += 1

        for (cmo_id, month), totals in payouts.items():
            if (cmo_id, month) in seen:
                continue
            self.session.add(
                CMOPayout(
                    cmo_id=cmo_id,
                    payout_month=month,
                    total_paid_users=totals.paid_users,
                    total_commission=totals.base,
                    base_commission_amount=totals.base,
                    bonus_amount=ZERO,
                    status="pending",
                )
            )
            updated += 1

        await self.session.flush()
        return updated
