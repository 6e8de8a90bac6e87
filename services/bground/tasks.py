from __future__ import annotations
from dataclasses import asdict
from typing import Any, Dict
import asyncio
import logging
from celery import states

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from config import Settings
from services.bground import CeleryManager
from services.commission import StatsRecalculator, TierEvaluator
from services.notifier import TelegramNotifier

celery_app = CeleryManager()


def _make_engine():
    # each asyncio.run gets its own loop, so the pool can't be shared across tasks
    return create_async_engine(Settings().generate_postgres_url(), pool_pre_ping=True)


@celery_app.celery_app.task(bind=True, name="commission.evaluate_creator_tiers")
def evaluate_creator_tiers(self) -> Dict[str, Any]:
    """
    Daily tier evaluation for every active creator:
      - counts paid users over the last 30 days,
      - moves creators to the matching tier,
      - notifies the ops chat about promotions and demotions.
    """
    async def _run():
        engine = _make_engine()
        try:
            session_maker = async_sessionmaker(engine, expire_on_commit=False)
            async with session_maker() as session:
                self.update_state(state=states.STARTED, meta={"step": "evaluate"})
                report = await TierEvaluator(session, TelegramNotifier()).evaluate_all()
                return asdict(report)
        finally:
            await engine.dispose()

    try:
        result = asyncio.run(_run())
        logging.info(f"Tier evaluation finished: {result}")
        return result
    except Exception as e:
        self.update_state(state=states.FAILURE, meta={"error": str(e)})
        raise


@celery_app.celery_app.task(bind=True, name="commission.recalculate_stats")
def recalculate_stats(self) -> Dict[str, Any]:
    """Rebuilds creator balances and CMO payouts from the attribution ledger."""
    async def _run():
        engine = _make_engine()
        try:
            session_maker = async_sessionmaker(engine, expire_on_commit=False)
            async with session_maker() as session:
                self.update_state(state=states.STARTED, meta={"step": "recalculate"})
                report = await StatsRecalculator(session).recalculate_stats()
                return asdict(report)
        finally:
            await engine.dispose()

    try:
        result = asyncio.run(_run())
        logging.info(f"Stats recalculation finished: {result}")
        return result
    except Exception as e:
        self.update_state(state=states.FAILURE, meta={"error": str(e)})
        raise
