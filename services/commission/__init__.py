from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.database import get_async_session
from services.notifier import TelegramNotifier, get_notifier
from .attribution import AttributionService, FinalizeCommand, FinalizeResult
from .rates import RateResolver, select_tier
from .recalculate import RecalculationReport, StatsRecalculator
from .tiers import TierEvaluationReport, TierEvaluator


def get_attribution_service(session: AsyncSession = Depends(get_async_session)) -> AttributionService:
    return AttributionService(session)


def get_tier_evaluator(
    session: AsyncSession = Depends(get_async_session),
    notifier: TelegramNotifier = Depends(get_notifier),
) -> TierEvaluator:
    return TierEvaluator(session, notifier)


def get_stats_recalculator(session: AsyncSession = Depends(get_async_session)) -> StatsRecalculator:
    return StatsRecalculator(session)
