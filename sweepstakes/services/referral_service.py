import logging
from typing import NamedTuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sweepstakes.core.config import settings
from sweepstakes.core.time import as_utc, utcnow
from sweepstakes.models.entry import Entry
from sweepstakes.models.giveaway import Giveaway
from sweepstakes.models.referral import ReferralEdge
from sweepstakes.services.entry_service import (
    find_by_referral_code,
    read_counters,
    set_referred_by,
    try_increment_referral_entries,
)
from sweepstakes.services.errors import TransientStoreFailure

logger = logging.getLogger(__name__)


class ReferralCredit(NamedTuple):
    referrer_entry_id: int
    credited: int


def remaining_referral_bonus(giveaway: Giveaway, referral_entries: int) -> int:
    return max(0, giveaway.max_referral_bonus - referral_entries)


async def count_referrals(session: AsyncSession, *, referrer_entry_id: int) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(ReferralEdge)
        .where(ReferralEdge.referrer_entry_id == referrer_entry_id)
    )
    return result.scalar_one()


async def count_referrals_from_ip(
    session: AsyncSession, *, referrer_entry_id: int, source_ip: str
) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(ReferralEdge)
        .where(
            ReferralEdge.referrer_entry_id == referrer_entry_id,
            ReferralEdge.source_ip == source_ip,
        )
    )
    return result.scalar_one()


async def credit_referral(
    session: AsyncSession,
    *,
    giveaway: Giveaway,
    referee: Entry,
    referral_code: str | None,
    source_ip: str,
) -> ReferralCredit | None:
    """Credit the owner of `referral_code` for bringing in `referee`.

    Unknown codes, self-referrals and exhausted caps give no credit and are not
    errors. The cap checks are re-evaluated every time the conditional update
    loses to a concurrent credit of the same referrer.
    """
    if not giveaway.referral_enabled or not referral_code or not referral_code.strip():
        return None

    referrer = await find_by_referral_code(
        session, giveaway_id=giveaway.id, referral_code=referral_code
    )
    if referrer is None:
        logger.info("Ignoring unknown referral code for giveaway %s", giveaway.id)
        return None
    if referrer.id == referee.id:
        return None
    # Referrers must predate their referees, which keeps the graph acyclic.
    if not as_utc(referrer.created_at) < as_utc(referee.created_at):
        logger.warning(
            "Referrer %s is not older than referee %s, ignoring", referrer.id, referee.id
        )
        return None

    for _ in range(settings.referral_credit_attempts):
        counters = await read_counters(session, referrer.id)
        if counters is None:
            return None

        remaining = remaining_referral_bonus(giveaway, counters.referral_entries)
        if remaining <= 0:
            logger.info("Referrer %s reached the referral bonus cap", referrer.id)
            return None

        from_ip = await count_referrals_from_ip(
            session, referrer_entry_id=referrer.id, source_ip=source_ip
        )
        if from_ip >= giveaway.max_referrals_per_ip:
            logger.info(
                "Referrer %s reached the per-IP referral limit for %s", referrer.id, source_ip
            )
            return None

        credit = min(giveaway.referral_bonus_entries, remaining)
        if credit <= 0:
            return None

        credited = await try_increment_referral_entries(
            session, entry_id=referrer.id, expected=counters, credit=credit
        )
        if not credited:
            logger.debug("Concurrent credit on referrer %s, retrying", referrer.id)
            continue

        session.add(
            ReferralEdge(
                giveaway_id=giveaway.id,
                referrer_entry_id=referrer.id,
                referee_entry_id=referee.id,
                source_ip=source_ip,
                bonus_entries_awarded=credit,
                created_at=utcnow(),
            )
        )
        await set_referred_by(session, entry_id=referee.id, referrer_entry_id=referrer.id)
        await session.flush()
        logger.info(
            "Awarded %s referral entries to entry %s for entry %s",
            credit,
            referrer.id,
            referee.id,
        )
        return ReferralCredit(referrer_entry_id=referrer.id, credited=credit)

    raise TransientStoreFailure("Referral credit kept conflicting, please retry")
