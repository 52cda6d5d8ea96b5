import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from fastapi import APIRouter, Depends, Header, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from sweepstakes.core.config import settings
from sweepstakes.db.session import get_session
from sweepstakes.models.entry import Entry
from sweepstakes.models.enums import WinnerType
from sweepstakes.models.winner import Winner
from sweepstakes.services.bonus_service import claim_bonus
from sweepstakes.services.entry_service import get_entry, set_entry_validity
from sweepstakes.services.errors import translate_store_errors
from sweepstakes.services.giveaway_service import close_giveaway
from sweepstakes.services.intake_service import submit_entry
from sweepstakes.services.lookup_service import lookup_entry
from sweepstakes.services.winner_service import (
    add_manual_alternate,
    list_winners,
    select_winners,
    update_winner_status,
)
from sweepstakes.web.schemas import (
    ClaimBonusRequest,
    ClaimBonusResponse,
    EnterGiveawayRequest,
    EnterGiveawayResponse,
    EntryValidityRequest,
    EntryValidityResponse,
    EntryView,
    GiveawayStatusResponse,
    LookupFound,
    LookupNotFound,
    LookupRequest,
    ManualAlternateRequest,
    SelectWinnersResponse,
    WinnerActionRequest,
    WinnerActionResponse,
    WinnerListResponse,
    WinnerView,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for", "")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return get_remote_address(request) or "unknown"


limiter = Limiter(key_func=client_ip, enabled=settings.rate_limit_enabled)

router = APIRouter(prefix="/giveaways", tags=["giveaways"])


async def bounded(operation: str, work: Awaitable[T]) -> T:
    async with translate_store_errors(operation):
        return await asyncio.wait_for(work, timeout=settings.store_timeout_seconds)


async def in_transaction(session: AsyncSession, operation: str, work: Awaitable[T]) -> T:
    async def run() -> T:
        result = await work
        await session.commit()
        return result

    return await bounded(operation, run())


def winner_view(winner: Winner, entry: Entry) -> WinnerView:
    return WinnerView(
        id=winner.id,
        entry_id=winner.entry_id,
        winner_type=winner.winner_type,
        rank=winner.rank,
        status=winner.status,
        selection_method=winner.selection_method,
        first_name=entry.first_name,
        last_name=entry.last_name,
        state=entry.state,
        claim_deadline=winner.claim_deadline,
    )


@router.post("/enter", status_code=201, response_model=EnterGiveawayResponse)
@limiter.limit(settings.entry_rate_limit)
async def enter_giveaway(
    request: Request,
    payload: EnterGiveawayRequest,
    session: AsyncSession = Depends(get_session),
):
    receipt = await in_transaction(
        session,
        "enter_giveaway",
        submit_entry(
            session,
            giveaway_id=payload.giveaway_id,
            phone=payload.phone,
            email=payload.email,
            first_name=payload.first_name,
            last_name=payload.last_name,
            state=payload.state,
            zip_code=payload.zip_code,
            agreed_to_rules=payload.agreed_to_rules,
            secondary_contact=payload.secondary_contact,
            referral_code=payload.referral_code,
            source_ip=client_ip(request),
            user_agent=request.headers.get("user-agent"),
            entry_source=payload.entry_source,
            sms_opt_in=payload.sms_opt_in,
        ),
    )
    return EnterGiveawayResponse(
        entry_id=receipt.entry_id,
        referral_code=receipt.referral_code,
        entry_count=receipt.entry_count,
        bonus_claimed=receipt.bonus_claimed,
        can_claim_bonus=receipt.can_claim_bonus,
    )


@router.post("/lookup", response_model=LookupFound | LookupNotFound)
async def lookup(payload: LookupRequest, session: AsyncSession = Depends(get_session)):
    result = await bounded(
        "lookup_entry",
        lookup_entry(
            session,
            giveaway_id=payload.giveaway_id,
            phone=payload.phone,
            email=payload.email,
        ),
    )
    if not result.found:
        return LookupNotFound()
    entry = result.entry
    return LookupFound(
        entry=EntryView(
            id=entry.id,
            first_name=entry.first_name,
            entry_count=entry.entry_count,
            base_entries=entry.base_entries,
            bonus_entries=entry.bonus_entries,
            referral_entries=entry.referral_entries,
            bonus_claimed=entry.bonus_claimed,
            has_secondary_contact=entry.secondary_contact is not None,
            referral_code=entry.referral_code,
            created_at=entry.created_at,
        ),
        can_claim_bonus=result.can_claim_bonus,
        referral_enabled=result.referral_enabled,
        referral_count=result.referral_count,
        referral_entries_remaining=result.referral_entries_remaining,
    )


@router.post("/bonus", response_model=ClaimBonusResponse)
async def bonus(payload: ClaimBonusRequest, session: AsyncSession = Depends(get_session)):
    entry = await in_transaction(
        session,
        "claim_bonus",
        claim_bonus(
            session,
            entry_id=payload.entry_id,
            giveaway_id=payload.giveaway_id,
            secondary_contact=payload.secondary_contact,
            secondary_contact_type=payload.secondary_contact_type,
        ),
    )
    return ClaimBonusResponse(entry_count=entry.entry_count, bonus_claimed=entry.bonus_claimed)


@router.post("/{giveaway_id}/winners", response_model=SelectWinnersResponse)
async def winners_draw(
    giveaway_id: int,
    actor: str = Header("admin", alias="X-Actor"),
    session: AsyncSession = Depends(get_session),
):
    await in_transaction(
        session, "select_winners", select_winners(session, giveaway_id=giveaway_id, actor=actor)
    )
    rows = await bounded("list_winners", list_winners(session, giveaway_id=giveaway_id))
    return SelectWinnersResponse(
        primary_winners=[
            winner_view(winner, entry)
            for winner, entry in rows
            if winner.winner_type == WinnerType.primary
        ],
        alternate_winners=[
            winner_view(winner, entry)
            for winner, entry in rows
            if winner.winner_type == WinnerType.alternate
        ],
    )


@router.get("/{giveaway_id}/winners", response_model=WinnerListResponse)
async def winners_view(giveaway_id: int, session: AsyncSession = Depends(get_session)):
    rows = await bounded("list_winners", list_winners(session, giveaway_id=giveaway_id))
    return WinnerListResponse(winners=[winner_view(winner, entry) for winner, entry in rows])


@router.put("/{giveaway_id}/winners", response_model=WinnerActionResponse)
async def winners_update(
    giveaway_id: int,
    payload: WinnerActionRequest,
    actor: str = Header("admin", alias="X-Actor"),
    session: AsyncSession = Depends(get_session),
):
    winner = await in_transaction(
        session,
        "update_winner_status",
        update_winner_status(
            session,
            giveaway_id=giveaway_id,
            winner_id=payload.winner_id,
            action=payload.action,
            actor=actor,
        ),
    )
    entry = await bounded("get_entry", get_entry(session, winner.entry_id))
    return WinnerActionResponse(winner=winner_view(winner, entry))


@router.post(
    "/{giveaway_id}/winners/alternates", status_code=201, response_model=WinnerActionResponse
)
async def winners_add_alternate(
    giveaway_id: int,
    payload: ManualAlternateRequest,
    actor: str = Header("admin", alias="X-Actor"),
    session: AsyncSession = Depends(get_session),
):
    winner = await in_transaction(
        session,
        "add_manual_alternate",
        add_manual_alternate(
            session, giveaway_id=giveaway_id, entry_id=payload.entry_id, actor=actor
        ),
    )
    entry = await bounded("get_entry", get_entry(session, winner.entry_id))
    return WinnerActionResponse(winner=winner_view(winner, entry))


@router.put("/{giveaway_id}/entries", response_model=EntryValidityResponse)
async def entries_update(
    giveaway_id: int,
    payload: EntryValidityRequest,
    actor: str = Header("admin", alias="X-Actor"),
    session: AsyncSession = Depends(get_session),
):
    entry = await in_transaction(
        session,
        "set_entry_validity",
        set_entry_validity(
            session,
            giveaway_id=giveaway_id,
            entry_id=payload.entry_id,
            is_valid=payload.is_valid,
            reason=payload.invalidation_reason,
            actor=actor,
        ),
    )
    return EntryValidityResponse(
        id=entry.id, is_valid=entry.is_valid, invalidation_reason=entry.invalidation_reason
    )


@router.post("/{giveaway_id}/close", response_model=GiveawayStatusResponse)
async def giveaway_close(giveaway_id: int, session: AsyncSession = Depends(get_session)):
    giveaway = await in_transaction(
        session, "close_giveaway", close_giveaway(session, giveaway_id=giveaway_id)
    )
    logger.info("Giveaway %s closed", giveaway_id)
    return GiveawayStatusResponse(giveaway_id=giveaway.id, status=giveaway.status.value)
