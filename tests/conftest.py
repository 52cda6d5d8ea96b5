import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from datetime import timedelta  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from sweepstakes import models  # noqa: E402,F401
from sweepstakes.core.time import utcnow  # noqa: E402
from sweepstakes.db.base import Base  # noqa: E402
from sweepstakes.models.enums import (  # noqa: E402
    AlternateSelection,
    EntryType,
    GiveawayStatus,
)
from sweepstakes.models.giveaway import Giveaway  # noqa: E402
from sweepstakes.services.errors import ServiceError  # noqa: E402
from sweepstakes.services.intake_service import submit_entry  # noqa: E402


async def build_engine(url: str, **options):
    engine = create_async_engine(url, **options)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine


@pytest_asyncio.fixture
async def engine():
    engine = await build_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """Sessions on separate connections to one database file, for concurrent writers."""
    engine = await build_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_giveaway(session):
    async def factory(**overrides) -> Giveaway:
        now = utcnow()
        values = {
            "slug": f"refi-credit-{uuid4().hex[:8]}",
            "title": "Win a $1,000 Closing Cost Credit",
            "prize_title": "$1,000 closing cost credit",
            "status": GiveawayStatus.active,
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=7),
            "restricted_states": [],
            "entry_type": EntryType.phone,
            "bonus_entries_enabled": True,
            "bonus_entry_count": 2,
            "referral_enabled": True,
            "referral_bonus_entries": 1,
            "max_referral_bonus": 10,
            "max_referrals_per_ip": 3,
            "num_winners": 1,
            "alternate_winners": 0,
            "alternate_selection": AlternateSelection.auto,
            "winner_selected": False,
            "created_at": now,
        }
        values.update(overrides)
        giveaway = Giveaway(**values)
        session.add(giveaway)
        await session.commit()
        return giveaway

    return factory


@pytest.fixture
def enter(session):
    """Submit an entry the way the HTTP route does: commit on success, roll back on error."""

    async def submit(giveaway: Giveaway, **overrides):
        kwargs = {
            "giveaway_id": giveaway.id,
            "first_name": "Dana",
            "last_name": "Reyes",
            "state": "TX",
            "zip_code": "75001",
            "agreed_to_rules": True,
            "source_ip": "203.0.113.10",
        }
        kwargs.update(overrides)
        try:
            receipt = await submit_entry(session, **kwargs)
        except ServiceError:
            await session.rollback()
            await session.refresh(giveaway)
            raise
        await session.commit()
        return receipt

    return submit
