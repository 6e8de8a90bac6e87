from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from api.models import PaymentAttribution
from utils.dates import month_bucket, shift_month, utcnow

BREAKDOWN_MONTHS = 6


@dataclass
class RevenueStats:
    total_revenue: Decimal = Decimal("0")
    this_month_revenue: Decimal = Decimal("0")
    monthly_breakdown: dict[str, Decimal] = field(default_factory=dict)


async def revenue_stats(session: AsyncSession, now: Optional[datetime] = None) -> RevenueStats:
    """Total, current-month and last-six-months revenue, keyed by YYYY-MM."""
    current = month_bucket(now or utcnow())
    stats = RevenueStats()
    for offset in range(BREAKDOWN_MONTHS - 1, -1, -1):
        stats.monthly_breakdown[shift_month(current, -offset).strftime("%Y-%m")] = Decimal("0")

    result = await session.execute(select(PaymentAttribution.final_amount, PaymentAttribution.payment_month))
    for amount, payment_month in result.all():
        amount = amount or Decimal("0")
        stats.total_revenue += amount
        if payment_month is None:
            continue
        if payment_month >= current:
            stats.this_month_revenue += amount
        key = payment_month.strftime("%Y-%m")
        if key in stats.monthly_breakdown:
            stats.monthly_breakdown[key] += amount
    return stats
