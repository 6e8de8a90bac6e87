import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from api.models import CreatorProfile
from services.notifier import TelegramNotifier
from utils.dates import utcnow
from .constants import DEFAULT_TIER_LEVEL, PROTECTION_WINDOW
from .rates import RateResolver, is_protected, select_tier


@dataclass
class TierEvaluationReport:
    evaluated: int = 0
    promoted: int = 0
    demoted: int = 0
    unchanged: int = 0
    protected: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.promoted > 0 or self.demoted > 0


@dataclass
class TierChange:
    creator_id: str
    creator_name: str
    old_tier: int
    new_tier: int
    monthly_users: int

    @property
    def is_promotion(self) -> bool:
        return self.new_tier > self.old_tier


class TierEvaluator:
    """
    Batch re-evaluation of every active creator's tier.

    Protected creators are skipped. A promotion opens a fresh protection
    window, a demotion clears it. Each creator is updated in its own savepoint
    so one bad row does not stop the run.
    """

    def __init__(self, session: AsyncSession, notifier: Optional[TelegramNotifier] = None):
        self.session = session
        self.rates = RateResolver(session)
        self.notifier = notifier

    async def evaluate_all(self, now: Optional[datetime] = None) -> TierEvaluationReport:
        now = now or utcnow()
        report = TierEvaluationReport()
        changes: list[TierChange] = []

        tiers = await self.rates.load_tiers()
        result = await self.session.execute(
            select(CreatorProfile).where(CreatorProfile.is_active.is_(True)).order_by(CreatorProfile.created_at.asc())
        )
        creators = result.scalars().all()
        logging.info(f"Evaluating tiers for {len(creators)} active creators")

        for creator in creators:
            creator_id = creator.id
            try:
                if is_protected(creator, now):
                    report.protected += 1
                    continue

                async with self.session.begin_nested():
                    paid_users = await self.rates.count_recent_paid_users(creator_id, now)
                    new_level = select_tier(tiers, paid_users).level
                    old_level = creator.current_tier_level or DEFAULT_TIER_LEVEL

                    creator.monthly_paid_users = paid_users
                    if new_level != old_level:
                        creator.current_tier_level = new_level
                        creator.tier_protection_until = now + PROTECTION_WINDOW if new_level > old_level else None

                report.evaluated += 1
                if new_level == old_level:
                    report.unchanged += 1
                    continue

                change = TierChange(
                    creator_id=str(creator_id),
                    creator_name=creator.display_name or "Unknown",
                    old_tier=old_level,
                    new_tier=new_level,
                    monthly_users=paid_users,
                )
                changes.append(change)
                if change.is_promotion:
                    report.promoted += 1
                    logging.info(f"Creator {change.creator_name} promoted from tier {old_level} to tier {new_level}")
                else:
                    report.demoted += 1
                    logging.info(f"Creator {change.creator_name} demoted from tier {old_level} to tier {new_level}")
            except Exception as e:
                logging.error(f"Error processing creator {creator_id}: {e}")
                report.errors.append(f"Error processing creator {creator_id}: {e}")

        await self.session.commit()
        logging.info(
            f"Tier evaluation completed: {report.evaluated} evaluated, {report.promoted} promoted, "
            f"{report.demoted} demoted, {report.unchanged} unchanged, {report.protected} protected, "
            f"{len(report.errors)} errors"
        )

        if self.notifier is not None:
            for change in changes:
                await self.notifier.tier_change(
                    creator_id=change.creator_id,
                    creator_name=change.creator_name,
                    old_tier=change.old_tier,
                    new_tier=change.new_tier,
                    monthly_users=change.monthly_users,
                )
            if report.changed:
                await self.notifier.send(
                    "creator_tier_change",
                    f"Tier evaluation completed: {report.promoted} promoted, {report.demoted} demoted",
                    {
                        "evaluated": report.evaluated,
                        "promoted": report.promoted,
                        "demoted": report.demoted,
                        "unchanged": report.unchanged,
                        "protected": report.protected,
                        "errors_count": len(report.errors),
                    },
                    "low",
                )

        return report
