import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from sweepstakes.core.config import settings
from sweepstakes.models.entry import Entry
from sweepstakes.services.bonus_service import can_claim_bonus
from sweepstakes.services.contact_service import lookup_contact
from sweepstakes.services.entry_service import find_by_contact
from sweepstakes.services.errors import (
    InvalidContact,
    TransientStoreFailure,
    translate_store_errors,
)
from sweepstakes.services.giveaway_service import get_giveaway
from sweepstakes.services.referral_service import count_referrals, remaining_referral_bonus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LookupResult:
    found: bool
    entry: Entry | None = None
    can_claim_bonus: bool = False
    referral_enabled: bool = False
    referral_count: int = 0
    referral_entries_remaining: int = 0


async def lookup_entry(
    session: AsyncSession,
    *,
    giveaway_id: int,
    phone: str | None = None,
    email: str | None = None,
) -> LookupResult:
    phone = phone.strip() if phone else None
    email = email.strip() if email else None
    if not phone and not email:
        raise InvalidContact("Phone or email is required")

    attempts = max(1, settings.lookup_retry_attempts)
    for attempt in range(1, attempts + 1):
        try:
            async with translate_store_errors("lookup"):
                return await _lookup(session, giveaway_id=giveaway_id, phone=phone, email=email)
        except TransientStoreFailure:
            if attempt == attempts:
                raise
            logger.warning("Lookup attempt %s/%s failed, retrying", attempt, attempts)
            await session.rollback()
            await asyncio.sleep(settings.lookup_retry_backoff_seconds * attempt)
    raise TransientStoreFailure("lookup failed")


async def _lookup(
    session: AsyncSession, *, giveaway_id: int, phone: str | None, email: str | None
) -> LookupResult:
    giveaway = await get_giveaway(session, giveaway_id)
    kind, contact = lookup_contact(giveaway.entry_type, phone=phone, email=email)
    entry = await find_by_contact(session, giveaway_id=giveaway.id, kind=kind, contact=contact)
    if entry is None:
        return LookupResult(found=False)

    referral_count = 0
    if giveaway.referral_enabled:
        referral_count = await count_referrals(session, referrer_entry_id=entry.id)
    return LookupResult(
        found=True,
        entry=entry,
        can_claim_bonus=can_claim_bonus(giveaway, entry),
        referral_enabled=giveaway.referral_enabled,
        referral_count=referral_count,
        referral_entries_remaining=(
            remaining_referral_bonus(giveaway, entry.referral_entries)
            if giveaway.referral_enabled
            else 0
        ),
    )
