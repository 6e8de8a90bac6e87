"""
Integration tests for rebuilding balances from the attribution ledger.

Whatever the live updates did, a recalculation must land on the state the
ledger implies.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.future import select

from api.models import CMOPayout, CreatorProfile
from services.commission import AttributionService, FinalizeCommand, StatsRecalculator
from services.commission.stats import revenue_stats
from conftest import make_cmo, make_creator, make_user

NOW = datetime(2026, 5, 10, 12, 0)
LAST_MONTH = NOW - timedelta(days=31)


async def _pay(service, order_id, amount, when, ref="ALICE10"):
    user = await make_user(service.session)
    return await service.finalize(
        FinalizeCommand(order_id=order_id, user_id=user.id, final_amount=Decimal(amount), ref_creator=ref),
        now=when,
    )


class TestRecalculateStats:
    async def test_recalculation_matches_live_updates(self, session):
        cmo = await make_cmo(session)
        creator = await make_creator(session, "ALICE10", cmo=cmo)
        service = AttributionService(session)
        await _pay(service, "A-1", "1000", LAST_MONTH)
        await _pay(service, "A-2", "500", NOW)
        await _pay(service, "A-3", "250", NOW)
        await session.refresh(creator)
        live_balance = creator.available_balance
        live_lifetime = creator.lifetime_paid_users

        # wreck the derived state
        await session.execute(
            update(CreatorProfile)
            .where(CreatorProfile.id == creator.id)
            .values(lifetime_paid_users=99, monthly_paid_users=99, available_balance=Decimal("12345"))
        )
        await session.execute(update(CMOPayout).values(total_paid_users=0, base_commission_amount=0, total_commission=0))
        await session.commit()

        report = await StatsRecalculator(session).recalculate_stats(now=NOW)

        assert report.creators_updated == 1
        assert report.cmo_payouts_updated == 2
        await session.refresh(creator)
        assert creator.available_balance == live_balance == Decimal("140.00")
        assert creator.lifetime_paid_users == live_lifetime == 3
        assert creator.monthly_paid_users == 2

        payouts = {
            p.payout_month: p
            for p in (await session.execute(select(CMOPayout).where(CMOPayout.cmo_id == cmo.id))).scalars().all()
        }
        for payout in payouts.values():
            await session.refresh(payout)
        assert payouts[date(2026, 4, 1)].total_paid_users == 1
        assert payouts[date(2026, 4, 1)].base_commission_amount == Decimal("80.00")
        assert payouts[date(2026, 5, 1)].total_paid_users == 2
        assert payouts[date(2026, 5, 1)].base_commission_amount == Decimal("60.00")

    async def test_withdrawals_are_subtracted(self, session):
        creator = await make_creator(session, "ALICE10", total_withdrawn=Decimal("50"))
        service = AttributionService(session)
        await _pay(service, "W-1", "1000", NOW)

        await StatsRecalculator(session).recalculate_stats(now=NOW)

        await session.refresh(creator)
        assert creator.available_balance == Decimal("30.00")
        assert creator.total_withdrawn == Decimal("50")

    async def test_balance_never_negative(self, session):
        creator = await make_creator(session, "ALICE10", total_withdrawn=Decimal("500"))
        await _pay(AttributionService(session), "N-1", "1000", NOW)

        await StatsRecalculator(session).recalculate_stats(now=NOW)

        await session.refresh(creator)
        assert creator.available_balance == Decimal("0")

    async def test_creator_without_ledger_rows_is_zeroed(self, session):
        creator = await make_creator(session, "ALICE10", available_balance=Decimal("999"))
        creator.lifetime_paid_users = 7
        await session.commit()

        report = await StatsRecalculator(session).recalculate_stats(now=NOW)

        assert report.creators_updated == 0
        await session.refresh(creator)
        assert creator.available_balance == Decimal("0")
        assert creator.lifetime_paid_users == 0

    async def test_cmo_bonus_is_kept(self, session):
        cmo = await make_cmo(session)
        await make_creator(session, "ALICE10", cmo=cmo)
        await _pay(AttributionService(session), "B-1", "1000", NOW)
        await session.execute(update(CMOPayout).values(bonus_amount=Decimal("25"), status="approved"))
        await session.commit()

        await StatsRecalculator(session).recalculate_stats(now=NOW)

        payout = (await session.execute(select(CMOPayout).where(CMOPayout.cmo_id == cmo.id))).scalar_one()
        await session.refresh(payout)
        assert payout.base_commission_amount == Decimal("80.00")
        assert payout.bonus_amount == Decimal("25")
        assert payout.total_commission == Decimal("105.00")
        assert payout.status == "approved"

    async def test_cmo_base_sums_rounded_per_payment_amounts(self, session):
        cmo = await make_cmo(session)
        await make_creator(session, "ALICE10", cmo=cmo)
        service = AttributionService(session)
        # 10.06 x 8% rounds to 0.80 per payment; 20.12 x 8% would round to 1.61
        await _pay(service, "P-1", "10.06", NOW)
        await _pay(service, "P-2", "10.06", NOW)
        payout = (await session.execute(select(CMOPayout).where(CMOPayout.cmo_id == cmo.id))).scalar_one()
        await session.refresh(payout)
        assert payout.base_commission_amount == Decimal("1.60")

        await StatsRecalculator(session).recalculate_stats(now=NOW)

        await session.refresh(payout)
        assert payout.base_commission_amount == Decimal("1.60")
        assert payout.total_commission == Decimal("1.60")

    async def test_missing_payout_rows_are_recreated(self, session):
        cmo = await make_cmo(session)
        await make_creator(session, "ALICE10", cmo=cmo)
        await _pay(AttributionService(session), "C-1", "1000", NOW)
        for payout in (await session.execute(select(CMOPayout))).scalars().all():
            await session.delete(payout)
        await session.commit()

        report = await StatsRecalculator(session).recalculate_stats(now=NOW)

        assert report.cmo_payouts_updated == 1
        payout = (await session.execute(select(CMOPayout).where(CMOPayout.cmo_id == cmo.id))).scalar_one()
        assert payout.total_paid_users == 1
        assert payout.payout_month == date(2026, 5, 1)


class TestRevenueStats:
    async def test_breakdown_covers_six_months(self, session):
        await make_creator(session, "ALICE10")
        service = AttributionService(session)
        await _pay(service, "R-1", "1000", NOW)
        await _pay(service, "R-2", "500", LAST_MONTH)
        await _pay(service, "R-3", "200", datetime(2025, 1, 5))

        stats = await revenue_stats(session, now=NOW)

        assert stats.total_revenue == Decimal("1700")
        assert stats.this_month_revenue == Decimal("1000")
        assert list(stats.monthly_breakdown) == ["2025-12", "2026-01", "2026-02", "2026-03", "2026-04", "2026-05"]
        assert stats.monthly_breakdown["2026-04"] == Decimal("500")
        assert stats.monthly_breakdown["2026-02"] == Decimal("0")
