import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select

from sweepstakes.core.config import settings
from sweepstakes.core.time import utcnow
from sweepstakes.models.entry import Entry
from sweepstakes.models.enums import EntryType, GiveawayStatus
from sweepstakes.models.giveaway import Giveaway
from sweepstakes.models.referral import ReferralEdge
from sweepstakes.services import referral_service
from sweepstakes.services.entry_service import read_counters, try_increment_referral_entries
from sweepstakes.services.errors import TransientStoreFailure
from sweepstakes.services.intake_service import submit_entry
from sweepstakes.services.referral_service import (
    count_referrals,
    credit_referral,
    remaining_referral_bonus,
)


async def referral_entries(session, entry_id: int) -> int:
    counters = await read_counters(session, entry_id)
    return counters.referral_entries


@pytest.mark.asyncio
async def test_credit_is_capped_by_max_referral_bonus(session, make_giveaway, enter):
    giveaway = await make_giveaway(
        referral_bonus_entries=3, max_referral_bonus=4, max_referrals_per_ip=10
    )
    referrer = await enter(giveaway, phone="555-000-0001")

    first = await enter(giveaway, phone="555-000-0002", referral_code=referrer.referral_code)
    second = await enter(giveaway, phone="555-000-0003", referral_code=referrer.referral_code)
    third = await enter(giveaway, phone="555-000-0004", referral_code=referrer.referral_code)

    assert (first.referral_credited, second.referral_credited) == (True, True)
    assert third.referral_credited is False
    assert await referral_entries(session, referrer.entry_id) == 4
    edges = (await session.execute(select(ReferralEdge).order_by(ReferralEdge.id))).scalars().all()
    assert [edge.bonus_entries_awarded for edge in edges] == [3, 1]
    third_entry = await session.get(Entry, third.entry_id, populate_existing=True)
    assert third_entry.referred_by_entry_id is None


@pytest.mark.asyncio
async def test_credits_from_one_ip_are_limited(session, make_giveaway, enter):
    giveaway = await make_giveaway(max_referrals_per_ip=1)
    referrer = await enter(giveaway, phone="555-000-0001")
    code = referrer.referral_code

    same_ip = [
        await enter(giveaway, phone=phone, referral_code=code, source_ip="198.51.100.7")
        for phone in ("555-000-0002", "555-000-0003")
    ]
    other_ip = await enter(
        giveaway, phone="555-000-0004", referral_code=code, source_ip="192.0.2.44"
    )

    assert [receipt.referral_credited for receipt in same_ip] == [True, False]
    assert other_ip.referral_credited is True
    assert await referral_entries(session, referrer.entry_id) == 2
    assert await count_referrals(session, referrer_entry_id=referrer.entry_id) == 2


@pytest.mark.asyncio
async def test_conflicting_credit_is_retried_against_fresh_counters(
    session, make_giveaway, enter, monkeypatch
):
    giveaway = await make_giveaway(referral_bonus_entries=3, max_referral_bonus=4)
    referrer = await enter(giveaway, phone="555-000-0001")
    calls = []

    async def racing_increment(session, *, entry_id, expected, credit):
        calls.append(credit)
        if len(calls) == 1:
            # Another referee is credited between our read and our update.
            await try_increment_referral_entries(
                session, entry_id=entry_id, expected=expected, credit=credit
            )
            return False
        return await try_increment_referral_entries(
            session, entry_id=entry_id, expected=expected, credit=credit
        )

    monkeypatch.setattr(referral_service, "try_increment_referral_entries", racing_increment)

    receipt = await enter(giveaway, phone="555-000-0002", referral_code=referrer.referral_code)

    assert receipt.referral_credited is True
    assert calls == [3, 1]
    assert await referral_entries(session, referrer.entry_id) == 4
    edge = (await session.execute(select(ReferralEdge))).scalar_one()
    assert edge.bonus_entries_awarded == 1


@pytest.mark.asyncio
async def test_persistent_conflicts_surface_as_transient_failure(
    session, make_giveaway, enter, monkeypatch
):
    giveaway = await make_giveaway()
    referrer = await enter(giveaway, phone="555-000-0001")

    async def always_conflicts(session, *, entry_id, expected, credit):
        return False

    monkeypatch.setattr(referral_service, "try_increment_referral_entries", always_conflicts)
    monkeypatch.setattr(settings, "referral_credit_attempts", 2)

    with pytest.raises(TransientStoreFailure):
        await enter(giveaway, phone="555-000-0002", referral_code=referrer.referral_code)

    assert await referral_entries(session, referrer.entry_id) == 0


@pytest.mark.asyncio
async def test_stale_version_does_not_increment(session, make_giveaway, enter):
    giveaway = await make_giveaway()
    receipt = await enter(giveaway, phone="555-000-0001")
    stale = await read_counters(session, receipt.entry_id)

    assert await try_increment_referral_entries(
        session, entry_id=receipt.entry_id, expected=stale, credit=1
    )
    assert not await try_increment_referral_entries(
        session, entry_id=receipt.entry_id, expected=stale, credit=1
    )
    await session.commit()

    counters = await read_counters(session, receipt.entry_id)
    assert counters.referral_entries == 1
    assert counters.version == stale.version + 1


@pytest.mark.asyncio
async def test_newer_entry_cannot_refer_an_older_one(session, make_giveaway, enter):
    giveaway = await make_giveaway()
    older = await enter(giveaway, phone="555-000-0001")
    newer = await enter(giveaway, phone="555-000-0002")
    older_entry = await session.get(Entry, older.entry_id)

    credit = await credit_referral(
        session,
        giveaway=giveaway,
        referee=older_entry,
        referral_code=newer.referral_code,
        source_ip="203.0.113.10",
    )

    assert credit is None
    assert await referral_entries(session, newer.entry_id) == 0


@pytest.mark.asyncio
async def test_own_code_is_not_credited(session, make_giveaway, enter):
    giveaway = await make_giveaway()
    receipt = await enter(giveaway, phone="555-000-0001")
    entry = await session.get(Entry, receipt.entry_id)

    credit = await credit_referral(
        session,
        giveaway=giveaway,
        referee=entry,
        referral_code=receipt.referral_code,
        source_ip="203.0.113.10",
    )

    assert credit is None


def test_remaining_referral_bonus_never_negative():
    class Policy:
        max_referral_bonus = 5

    assert remaining_referral_bonus(Policy, 2) == 3
    assert remaining_referral_bonus(Policy, 7) == 0


@pytest.mark.asyncio
async def test_concurrent_referees_never_push_referrer_past_cap(file_session_factory):
    now = utcnow()
    async with file_session_factory() as session:
        giveaway = Giveaway(
            slug="concurrent-referrals",
            title="Win a $1,000 Closing Cost Credit",
            status=GiveawayStatus.active,
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=7),
            restricted_states=[],
            entry_type=EntryType.phone,
            referral_enabled=True,
            referral_bonus_entries=3,
            max_referral_bonus=4,
            max_referrals_per_ip=10,
            created_at=now,
        )
        session.add(giveaway)
        await session.commit()
        giveaway_id = giveaway.id

    async def submit(phone: str, referral_code: str | None = None):
        async with file_session_factory() as session:
            receipt = await submit_entry(
                session,
                giveaway_id=giveaway_id,
                first_name="Dana",
                last_name="Reyes",
                state="TX",
                agreed_to_rules=True,
                source_ip="203.0.113.10",
                phone=phone,
                referral_code=referral_code,
            )
            await session.commit()
            return receipt

    referrer = await submit("555-000-0001")
    receipts = await asyncio.gather(
        *(submit(f"555-000-01{n:02d}", referrer.referral_code) for n in range(6))
    )

    async with file_session_factory() as session:
        counters = await read_counters(session, referrer.entry_id)
        edges = (
            await session.execute(
                select(ReferralEdge).where(ReferralEdge.referrer_entry_id == referrer.entry_id)
            )
        ).scalars().all()

    assert counters.referral_entries <= 4
    assert counters.referral_entries == sum(edge.bonus_entries_awarded for edge in edges)
    assert len(edges) == sum(receipt.referral_credited for receipt in receipts) >= 1
