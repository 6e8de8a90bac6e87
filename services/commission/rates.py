import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from api.models import CommissionTier, CreatorProfile, PaymentAttribution
from services.errors import NotFound
from .constants import (
    CREATOR_BASE_RATE,
    FALLBACK_HIGH_LEVEL,
    FALLBACK_HIGH_RATE,
    FALLBACK_HIGH_THRESHOLD,
    FALLBACK_LOW_LEVEL,
    PROTECTED_RATE,
    ROLLING_WINDOW,
)


@dataclass(frozen=True)
class TierChoice:
    level: int
    rate: Decimal


def select_tier(tiers: Sequence[CommissionTier], paid_users: int) -> TierChoice:
    """
    Pick the tier for a trailing paid-user count.

    The highest threshold that is met wins, ties go to the higher tier_level.
    Below every threshold the lowest tier applies. Tier rates are stored as
    percentages. With no tiers configured a two-step fallback is used.
    """
    if not tiers:
        if paid_users >= FALLBACK_HIGH_THRESHOLD:
            return TierChoice(FALLBACK_HIGH_LEVEL, FALLBACK_HIGH_RATE)
        return TierChoice(FALLBACK_LOW_LEVEL, CREATOR_BASE_RATE)

    eligible = [t for t in tiers if t.monthly_user_threshold <= paid_users]
    if eligible:
        chosen = max(eligible, key=lambda t: (t.monthly_user_threshold, t.tier_level))
    else:
        chosen = min(tiers, key=lambda t: t.tier_level)
    return TierChoice(chosen.tier_level, Decimal(chosen.commission_rate) / Decimal(100))


def is_protected(creator: CreatorProfile, as_of: datetime) -> bool:
    return creator.tier_protection_until is not None and as_of < creator.tier_protection_until


class RateResolver:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def load_tiers(self) -> list[CommissionTier]:
        result = await self.session.execute(select(CommissionTier).order_by(CommissionTier.tier_level.asc()))
        return list(result.scalars().all())

    async def count_recent_paid_users(self, creator_id: uuid.UUID, as_of: datetime) -> int:
        """Ledger rows for the creator inside the rolling window ending at `as_of`."""
        since = as_of - ROLLING_WINDOW
        result = await self.session.execute(
            select(func.count(PaymentAttribution.id)).where(
                PaymentAttribution.creator_id == creator_id,
                PaymentAttribution.created_at >= since,
            )
        )
        return int(result.scalar_one() or 0)

    async def resolve_rate(
        self,
        creator_id: uuid.UUID,
        as_of: datetime,
        creator: Optional[CreatorProfile] = None,
    ) -> Decimal:
        if creator is None:
            creator = await self.session.get(CreatorProfile, creator_id)
            if creator is None:
                raise NotFound(f"Creator {creator_id} not found")

        if is_protected(creator, as_of):
            logging.info(
                f"Creator {creator_id}: protected until {creator.tier_protection_until}, using rate {PROTECTED_RATE}"
            )
            return PROTECTED_RATE

        paid_users = await self.count_recent_paid_users(creator_id, as_of)
        choice = select_tier(await self.load_tiers(), paid_users)

        # observability only, the ledger keeps the rate actually paid
        if creator.current_tier_level != choice.level:
            await self.session.execute(
                update(CreatorProfile)
                .where(CreatorProfile.id == creator_id)
                .values(current_tier_level=choice.level)
            )

        logging.info(
            f"Creator {creator_id}: {paid_users} paid users in rolling window, tier {choice.level}, rate {choice.rate}"
        )
        return choice.rate
