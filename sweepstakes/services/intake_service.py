import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from sweepstakes.services.bonus_service import can_claim_bonus, grant_bonus
from sweepstakes.services.contact_service import resolve_contacts, secondary_contact_kind
from sweepstakes.services.entry_service import create_entry
from sweepstakes.services.errors import (
    ConsentRequired,
    InvalidContact,
    InvalidState,
    StateRestricted,
)
from sweepstakes.services.giveaway_service import ensure_accepting_entries, get_giveaway
from sweepstakes.services.referral_service import credit_referral

logger = logging.getLogger(__name__)

US_STATES = frozenset(
    {
        "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
        "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
        "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
        "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
        "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY", "DC",
    }
)


@dataclass(frozen=True)
class EntryReceipt:
    entry_id: int
    referral_code: str
    entry_count: int
    bonus_claimed: bool
    can_claim_bonus: bool
    referral_credited: bool


async def submit_entry(
    session: AsyncSession,
    *,
    giveaway_id: int,
    first_name: str,
    last_name: str,
    state: str,
    agreed_to_rules: bool,
    source_ip: str,
    phone: str | None = None,
    email: str | None = None,
    zip_code: str | None = None,
    secondary_contact: str | None = None,
    referral_code: str | None = None,
    user_agent: str | None = None,
    entry_source: str = "website",
    sms_opt_in: bool = False,
    now: datetime | None = None,
) -> EntryReceipt:
    """Record a new entry, then attribute its referral and inline bonus.

    Runs as one unit of work: the caller commits once on success and rolls
    back on any raised error.
    """
    giveaway = await get_giveaway(session, giveaway_id)
    ensure_accepting_entries(giveaway, now)

    normalized_state = (state or "").strip().upper()
    if normalized_state not in US_STATES:
        raise InvalidState("Invalid state. Please select a valid US state")
    restricted = {code.strip().upper() for code in giveaway.restricted_states or []}
    if normalized_state in restricted:
        raise StateRestricted("Sorry, this giveaway is not available in your state")

    if not agreed_to_rules:
        raise ConsentRequired("You must agree to the official rules to enter")

    contacts = resolve_contacts(giveaway.entry_type, phone=phone, email=email)

    entry = await create_entry(
        session,
        giveaway_id=giveaway.id,
        phone=contacts.phone,
        email=contacts.email,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        state=normalized_state,
        zip_code=(zip_code or "").strip() or None,
        source_ip=source_ip,
        user_agent=user_agent,
        entry_source=entry_source,
        sms_opt_in=sms_opt_in,
    )

    credit = await credit_referral(
        session,
        giveaway=giveaway,
        referee=entry,
        referral_code=referral_code,
        source_ip=source_ip,
    )

    if secondary_contact and secondary_contact.strip() and giveaway.bonus_entries_enabled:
        kind = secondary_contact_kind(giveaway.entry_type)
        if kind is not None:
            try:
                await grant_bonus(
                    session,
                    giveaway=giveaway,
                    entry=entry,
                    secondary_contact=secondary_contact,
                    secondary_contact_type=kind,
                )
            except InvalidContact as exc:
                # The bonus stays claimable; a bad secondary contact never blocks entry.
                logger.info("Inline bonus skipped for entry %s: %s", entry.id, exc)

    await session.refresh(entry)
    logger.info("Entry %s recorded for giveaway %s", entry.id, giveaway.id)
    return EntryReceipt(
        entry_id=entry.id,
        referral_code=entry.referral_code,
        entry_count=entry.entry_count,
        bonus_claimed=entry.bonus_claimed,
        can_claim_bonus=can_claim_bonus(giveaway, entry),
        referral_credited=credit is not None,
    )
