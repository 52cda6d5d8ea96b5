import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from sweepstakes.core.config import settings
from sweepstakes.models.entry import Entry
from sweepstakes.models.enums import ContactKind
from sweepstakes.models.giveaway import Giveaway
from sweepstakes.services.contact_service import resolve_contact
from sweepstakes.services.entry_service import get_entry, read_counters, set_bonus_claimed
from sweepstakes.services.errors import (
    AlreadyClaimed,
    BonusNotEnabled,
    EntryNotFound,
    InvalidContact,
    TransientStoreFailure,
)
from sweepstakes.services.giveaway_service import ensure_accepting_entries, get_giveaway

logger = logging.getLogger(__name__)


def can_claim_bonus(giveaway: Giveaway, entry: Entry) -> bool:
    return giveaway.bonus_entries_enabled and not entry.bonus_claimed


async def claim_bonus(
    session: AsyncSession,
    *,
    entry_id: int,
    secondary_contact: str,
    secondary_contact_type: ContactKind | str,
    giveaway_id: int | None = None,
    now: datetime | None = None,
) -> Entry:
    entry = await get_entry(session, entry_id)
    if not entry or (giveaway_id is not None and entry.giveaway_id != giveaway_id):
        raise EntryNotFound("Entry not found")

    giveaway = await get_giveaway(session, entry.giveaway_id)
    if not giveaway.bonus_entries_enabled:
        raise BonusNotEnabled("Bonus entries are not enabled for this giveaway")
    ensure_accepting_entries(giveaway, now)

    return await grant_bonus(
        session,
        giveaway=giveaway,
        entry=entry,
        secondary_contact=secondary_contact,
        secondary_contact_type=secondary_contact_type,
    )


async def grant_bonus(
    session: AsyncSession,
    *,
    giveaway: Giveaway,
    entry: Entry,
    secondary_contact: str,
    secondary_contact_type: ContactKind | str,
) -> Entry:
    counters = await read_counters(session, entry.id)
    if counters is None:
        raise EntryNotFound("Entry not found")
    if counters.bonus_claimed:
        raise AlreadyClaimed("Bonus entry has already been claimed")

    try:
        kind = ContactKind(secondary_contact_type)
    except ValueError as exc:
        raise InvalidContact("Unknown secondary contact type") from exc
    normalized = resolve_contact(kind, secondary_contact)
    own_contact = entry.phone if kind == ContactKind.phone else entry.email
    if own_contact and normalized == own_contact:
        raise InvalidContact("Secondary contact must be different from primary contact")

    for _ in range(settings.bonus_claim_attempts):
        claimed = await set_bonus_claimed(
            session,
            entry_id=entry.id,
            expected=counters,
            bonus_entries=giveaway.bonus_entry_count,
            secondary_contact=normalized,
        )
        if claimed:
            await session.refresh(entry)
            logger.info(
                "Granted %s bonus entries to entry %s", giveaway.bonus_entry_count, entry.id
            )
            return entry
        counters = await read_counters(session, entry.id)
        if counters is None:
            raise EntryNotFound("Entry not found")
        if counters.bonus_claimed:
            raise AlreadyClaimed("Bonus entry has already been claimed")

    raise TransientStoreFailure("Bonus claim kept conflicting, please retry")
