import logging
import secrets
from typing import NamedTuple

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sweepstakes.core.time import utcnow
from sweepstakes.models.entry import Entry
from sweepstakes.models.enums import ContactKind
from sweepstakes.services.audit_service import log_action
from sweepstakes.services.errors import DuplicateEntry, EntryNotFound, TransientStoreFailure

logger = logging.getLogger(__name__)

REFERRAL_CODE_BYTES = 4
REFERRAL_CODE_ATTEMPTS = 5


class EntryCounters(NamedTuple):
    version: int
    base_entries: int
    bonus_entries: int
    referral_entries: int
    bonus_claimed: bool

    @property
    def entry_count(self) -> int:
        return self.base_entries + self.bonus_entries + self.referral_entries


def generate_referral_code() -> str:
    return secrets.token_hex(REFERRAL_CODE_BYTES).upper()


async def get_entry(session: AsyncSession, entry_id: int) -> Entry | None:
    return await session.get(Entry, entry_id, populate_existing=True)


async def find_by_contact(
    session: AsyncSession, *, giveaway_id: int, kind: ContactKind, contact: str
) -> Entry | None:
    column = Entry.phone if kind == ContactKind.phone else Entry.email
    result = await session.execute(
        select(Entry)
        .where(Entry.giveaway_id == giveaway_id, column == contact)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_existing_entry(
    session: AsyncSession, *, giveaway_id: int, phone: str | None, email: str | None
) -> Entry | None:
    conditions = []
    if phone:
        conditions.append(Entry.phone == phone)
    if email:
        conditions.append(Entry.email == email)
    if not conditions:
        return None
    result = await session.execute(
        select(Entry).where(Entry.giveaway_id == giveaway_id, or_(*conditions)).limit(1)
    )
    return result.scalar_one_or_none()


async def find_by_referral_code(
    session: AsyncSession, *, giveaway_id: int, referral_code: str
) -> Entry | None:
    result = await session.execute(
        select(Entry).where(
            Entry.giveaway_id == giveaway_id,
            Entry.referral_code == referral_code.strip().upper(),
        )
    )
    return result.scalar_one_or_none()


async def _unused_referral_code(session: AsyncSession) -> str:
    for _ in range(REFERRAL_CODE_ATTEMPTS):
        code = generate_referral_code()
        taken = await session.execute(select(Entry.id).where(Entry.referral_code == code))
        if taken.first() is None:
            return code
        logger.info("Referral code collision, regenerating")
    raise TransientStoreFailure("Could not allocate a referral code")


async def create_entry(
    session: AsyncSession,
    *,
    giveaway_id: int,
    phone: str | None,
    email: str | None,
    first_name: str,
    last_name: str,
    state: str,
    zip_code: str | None,
    source_ip: str,
    user_agent: str | None = None,
    entry_source: str = "website",
    sms_opt_in: bool = False,
) -> Entry:
    existing = await find_existing_entry(
        session, giveaway_id=giveaway_id, phone=phone, email=email
    )
    if existing:
        raise DuplicateEntry("Entry already exists for this contact")

    entry = Entry(
        giveaway_id=giveaway_id,
        phone=phone,
        email=email,
        first_name=first_name,
        last_name=last_name,
        state=state,
        zip_code=zip_code,
        sms_opt_in=sms_opt_in,
        agreed_to_rules=True,
        source_ip=source_ip,
        user_agent=user_agent,
        entry_source=entry_source,
        is_valid=True,
        base_entries=1,
        bonus_entries=0,
        bonus_claimed=False,
        referral_code=await _unused_referral_code(session),
        referral_entries=0,
        version=1,
        created_at=utcnow(),
    )
    session.add(entry)
    try:
        await session.flush()
    except IntegrityError as exc:
        # A concurrent submission won the unique constraint.
        await session.rollback()
        if await find_existing_entry(
            session, giveaway_id=giveaway_id, phone=phone, email=email
        ):
            raise DuplicateEntry("Entry already exists for this contact") from exc
        raise TransientStoreFailure("Entry could not be stored") from exc
    return entry


async def read_counters(session: AsyncSession, entry_id: int) -> EntryCounters | None:
    result = await session.execute(
        select(
            Entry.version,
            Entry.base_entries,
            Entry.bonus_entries,
            Entry.referral_entries,
            Entry.bonus_claimed,
        ).where(Entry.id == entry_id)
    )
    row = result.first()
    if row is None:
        return None
    return EntryCounters(*row)


async def try_increment_referral_entries(
    session: AsyncSession, *, entry_id: int, expected: EntryCounters, credit: int
) -> bool:
    """Add `credit` referral entries if the entry is still at `expected.version`."""
    result = await session.execute(
        update(Entry)
        .where(Entry.id == entry_id, Entry.version == expected.version)
        .values(
            referral_entries=expected.referral_entries + credit,
            version=expected.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def set_bonus_claimed(
    session: AsyncSession,
    *,
    entry_id: int,
    expected: EntryCounters,
    bonus_entries: int,
    secondary_contact: str,
) -> bool:
    result = await session.execute(
        update(Entry)
        .where(
            Entry.id == entry_id,
            Entry.version == expected.version,
            Entry.bonus_claimed.is_(False),
        )
        .values(
            bonus_entries=bonus_entries,
            bonus_claimed=True,
            secondary_contact=secondary_contact,
            version=expected.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def set_referred_by(
    session: AsyncSession, *, entry_id: int, referrer_entry_id: int
) -> bool:
    """Link an entry to its referrer; the first attribution wins."""
    result = await session.execute(
        update(Entry)
        .where(Entry.id == entry_id, Entry.referred_by_entry_id.is_(None))
        .values(referred_by_entry_id=referrer_entry_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def set_entry_validity(
    session: AsyncSession,
    *,
    giveaway_id: int,
    entry_id: int,
    is_valid: bool,
    reason: str | None = None,
    actor: str = "system",
) -> Entry:
    """Mark an entry valid or invalid; only valid entries take part in the draw."""
    entry = await get_entry(session, entry_id)
    if not entry or entry.giveaway_id != giveaway_id:
        raise EntryNotFound("Entry not found")

    entry.is_valid = is_valid
    entry.invalidation_reason = None if is_valid else (reason or "").strip() or None
    await log_action(
        session,
        actor=actor,
        action="entry_validated" if is_valid else "entry_invalidated",
        payload={
            "giveaway_id": giveaway_id,
            "entry_id": entry.id,
            "reason": entry.invalidation_reason,
        },
    )
    await session.flush()
    logger.info("Entry %s marked %s", entry.id, "valid" if is_valid else "invalid")
    return entry
