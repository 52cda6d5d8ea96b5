from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from sweepstakes.core.time import as_utc, utcnow
from sweepstakes.models.enums import GiveawayStatus
from sweepstakes.models.giveaway import Giveaway
from sweepstakes.services.errors import GiveawayClosed, GiveawayNotFound


async def get_giveaway(session: AsyncSession, giveaway_id: int) -> Giveaway:
    giveaway = await session.get(Giveaway, giveaway_id)
    if not giveaway:
        raise GiveawayNotFound("Giveaway not found")
    return giveaway


def ensure_accepting_entries(giveaway: Giveaway, now: datetime | None = None) -> None:
    now = now or utcnow()
    if giveaway.status != GiveawayStatus.active:
        raise GiveawayClosed("This giveaway is not currently accepting entries")
    if now < as_utc(giveaway.start_date):
        raise GiveawayClosed("This giveaway has not started yet")
    if now > as_utc(giveaway.end_date):
        raise GiveawayClosed("This giveaway has ended")


async def close_giveaway(session: AsyncSession, *, giveaway_id: int) -> Giveaway:
    giveaway = await get_giveaway(session, giveaway_id)
    if giveaway.status in (GiveawayStatus.active, GiveawayStatus.draft):
        giveaway.status = GiveawayStatus.closed
        giveaway.closed_at = utcnow()
        giveaway.updated_at = giveaway.closed_at
    return giveaway
