"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
import tempfile
from pathlib import Path

# Settings are read at import time, so the environment has to be ready first
_db_dir = tempfile.mkdtemp(prefix="studyhub-tests-")
os.environ.setdefault("JWT_SECRET", "test_jwt_secret_for_testing_only")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_db_dir}/import.db")
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "")
os.environ.setdefault("TELEGRAM_CHAT_ID", "")
os.environ.setdefault("PAYHERE_SANDBOX_MERCHANT_ID", "1211149")
os.environ.setdefault("PAYHERE_SANDBOX_SECRET_WEB", "sandbox_web_secret")
os.environ.setdefault("REFUND_OTP_CODE", "123456")

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import uuid
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from api.database import get_async_session
from api.database.base import Base
from api.models import (
    CMOProfile,
    CommissionTier,
    CreatorProfile,
    DiscountCode,
    User,
    UserRole,
    UserRoleAssignment,
)
from api.security import create_access_token
from services.notifier import get_notifier


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")

    # pysqlite's own transaction handling breaks SAVEPOINT, so emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def mock_notifier():
    """Stand-in for TelegramNotifier; every helper is an AsyncMock."""
    notifier = AsyncMock()
    notifier.configured = True
    notifier.send = AsyncMock(return_value=True)
    return notifier


@pytest.fixture
async def client(session_maker, mock_notifier):
    from api.app import FastAPIManager

    app = FastAPIManager().get_app()

    async def _session():
        async with session_maker() as s:
            yield s

    app.dependency_overrides[get_async_session] = _session
    app.dependency_overrides[get_notifier] = lambda: mock_notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        ac.app = app
        yield ac
    app.dependency_overrides.clear()


def auth_header(user_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


# --- seed helpers ---


async def make_user(session, email: str | None = None, roles: tuple[UserRole, ...] = ()) -> User:
    user = User(email=email or f"{uuid.uuid4().hex[:10]}@example.com")
    session.add(user)
    await session.flush()
    for role in roles:
        session.add(UserRoleAssignment(user_id=user.id, role=role))
    await session.commit()
    return user


async def make_cmo(session, name: str = "Growth Lead") -> CMOProfile:
    user = await make_user(session)
    cmo = CMOProfile(user_id=user.id, display_name=name)
    session.add(cmo)
    await session.commit()
    return cmo


async def make_creator(
    session,
    referral_code: str = "ALICE10",
    *,
    cmo: CMOProfile | None = None,
    tier_level: int | None = None,
    protection_until: datetime | None = None,
    available_balance: Decimal = Decimal("0"),
    total_withdrawn: Decimal = Decimal("0"),
    display_name: str = "Alice",
) -> CreatorProfile:
    user = await make_user(session, roles=(UserRole.CREATOR,))
    creator = CreatorProfile(
        user_id=user.id,
        display_name=display_name,
        referral_code=referral_code,
        cmo_id=cmo.id if cmo else None,
        current_tier_level=tier_level,
        tier_protection_until=protection_until,
        available_balance=available_balance,
        total_withdrawn=total_withdrawn,
    )
    session.add(creator)
    await session.commit()
    return creator


async def make_discount_code(session, creator: CreatorProfile, code: str = "SAVE20", is_active: bool = True) -> DiscountCode:
    discount = DiscountCode(code=code, creator_id=creator.id, discount_percent=Decimal("20"), is_active=is_active)
    session.add(discount)
    await session.commit()
    return discount


async def make_default_tiers(session) -> list[CommissionTier]:
    """Three-step ladder: 8% from zero, 10% from 50, 12% from 100 paid users."""
    tiers = [
        CommissionTier(tier_level=1, tier_name="Bronze", commission_rate=Decimal("8"), monthly_user_threshold=0),
        CommissionTier(tier_level=2, tier_name="Silver", commission_rate=Decimal("10"), monthly_user_threshold=50),
        CommissionTier(tier_level=3, tier_name="Gold", commission_rate=Decimal("12"), monthly_user_threshold=100),
    ]
    session.add_all(tiers)
    await session.commit()
    return tiers
