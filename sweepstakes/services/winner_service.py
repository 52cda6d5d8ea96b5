import logging
import random
import secrets
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TypeVar

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sweepstakes.core.config import settings
from sweepstakes.core.time import utcnow
from sweepstakes.models.entry import Entry
from sweepstakes.models.enums import (
    AlternateSelection,
    GiveawayStatus,
    SelectionMethod,
    WinnerAction,
    WinnerStatus,
    WinnerType,
)
from sweepstakes.models.giveaway import Giveaway
from sweepstakes.models.winner import Winner
from sweepstakes.services.audit_service import log_action
from sweepstakes.services.entry_service import get_entry
from sweepstakes.services.errors import (
    AlreadySelected,
    EntryNotFound,
    GiveawayNotFound,
    InvalidWinnerAction,
    NoEntries,
    WinnerNotFound,
)
from sweepstakes.services.giveaway_service import get_giveaway

logger = logging.getLogger(__name__)

T = TypeVar("T")

REMOVED_STATUSES = (WinnerStatus.forfeited, WinnerStatus.disqualified)


@dataclass
class DrawResult:
    giveaway_id: int
    primary: list[Winner] = field(default_factory=list)
    alternates: list[Winner] = field(default_factory=list)


def draw_rng() -> random.Random:
    """OS-entropy generator, or a seeded one when running the test environment."""
    if settings.environment == "test" and settings.draw_seed is not None:
        logger.warning("Using seeded winner draw (seed=%s)", settings.draw_seed)
        return random.Random(settings.draw_seed)
    return random.SystemRandom()


def weighted_draw(pool: Sequence[tuple[T, int]], count: int, rng: random.Random) -> list[T]:
    """Pick up to `count` items without replacement, each with odds proportional to its weight."""
    remaining = [(item, weight) for item, weight in pool if weight > 0]
    total = sum(weight for _, weight in remaining)
    picks: list[T] = []
    while remaining and len(picks) < count:
        ticket = rng.randrange(total)
        for index, (item, weight) in enumerate(remaining):
            if ticket < weight:
                break
            ticket -= weight
        picks.append(item)
        total -= weight
        del remaining[index]
    return picks


def generate_claim_token() -> str:
    return secrets.token_hex(32)


def _new_winner(
    *,
    giveaway_id: int,
    entry_id: int,
    winner_type: WinnerType,
    rank: int,
    method: SelectionMethod,
    now: datetime,
) -> Winner:
    return Winner(
        giveaway_id=giveaway_id,
        entry_id=entry_id,
        winner_type=winner_type,
        rank=rank,
        selection_method=method,
        status=WinnerStatus.pending,
        claim_token=generate_claim_token(),
        claim_deadline=now + timedelta(days=settings.claim_window_days),
        selected_at=now,
    )


async def select_winners(
    session: AsyncSession,
    *,
    giveaway_id: int,
    actor: str = "system",
    rng: random.Random | None = None,
) -> DrawResult:
    """Draw primary winners, and alternates when the giveaway picks them automatically.

    The draw flag and every winner record are written in the caller's
    transaction; nothing is visible until it commits.
    """
    giveaway = await get_giveaway(session, giveaway_id)
    if giveaway.winner_selected:
        raise AlreadySelected("Winners have already been selected for this giveaway")

    entries = (
        await session.execute(
            select(Entry)
            .where(Entry.giveaway_id == giveaway.id, Entry.is_valid.is_(True))
            .order_by(Entry.id)
            .execution_options(populate_existing=True)
        )
    ).scalars().all()
    if not entries:
        raise NoEntries("No valid entries to select from")

    wanted_alternates = (
        giveaway.alternate_winners
        if giveaway.alternate_selection == AlternateSelection.auto
        else 0
    )
    pool = [(entry, entry.entry_count) for entry in entries]
    drawn = weighted_draw(pool, giveaway.num_winners + wanted_alternates, rng or draw_rng())
    primaries = drawn[: giveaway.num_winners]
    alternates = drawn[giveaway.num_winners :]
    if len(primaries) < giveaway.num_winners:
        logger.warning(
            "Giveaway %s wants %s winners but only %s entries exist",
            giveaway.id,
            giveaway.num_winners,
            len(entries),
        )

    now = utcnow()
    flagged = await session.execute(
        update(Giveaway)
        .where(Giveaway.id == giveaway.id, Giveaway.winner_selected.is_(False))
        .values(
            winner_selected=True,
            winner_selected_at=now,
            status=GiveawayStatus.ended,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if flagged.rowcount != 1:
        raise AlreadySelected("Winners have already been selected for this giveaway")

    result = DrawResult(giveaway_id=giveaway.id)
    for rank, entry in enumerate(primaries, start=1):
        result.primary.append(
            _new_winner(
                giveaway_id=giveaway.id,
                entry_id=entry.id,
                winner_type=WinnerType.primary,
                rank=rank,
                method=SelectionMethod.weighted_random,
                now=now,
            )
        )
    for rank, entry in enumerate(alternates, start=1):
        result.alternates.append(
            _new_winner(
                giveaway_id=giveaway.id,
                entry_id=entry.id,
                winner_type=WinnerType.alternate,
                rank=rank,
                method=SelectionMethod.weighted_random,
                now=now,
            )
        )
    session.add_all(result.primary + result.alternates)
    await log_action(
        session,
        actor=actor,
        action="select_winners",
        payload={
            "giveaway_id": giveaway.id,
            "entries": len(entries),
            "tickets": sum(weight for _, weight in pool),
            "primary_entry_ids": [entry.id for entry in primaries],
            "alternate_entry_ids": [entry.id for entry in alternates],
        },
    )
    await session.flush()
    await session.refresh(giveaway)
    logger.info(
        "Selected %s primary and %s alternate winners for giveaway %s",
        len(result.primary),
        len(result.alternates),
        giveaway.id,
    )
    return result


async def list_winners(
    session: AsyncSession, *, giveaway_id: int
) -> list[tuple[Winner, Entry]]:
    rows = (
        await session.execute(
            select(Winner, Entry)
            .join(Entry, Entry.id == Winner.entry_id)
            .where(Winner.giveaway_id == giveaway_id)
        )
    ).all()
    return sorted(
        ((row[0], row[1]) for row in rows),
        key=lambda pair: (pair[0].winner_type != WinnerType.primary, pair[0].rank),
    )


async def _next_primary_rank(session: AsyncSession, giveaway_id: int) -> int:
    ranks = (
        await session.execute(
            select(Winner.rank).where(
                Winner.giveaway_id == giveaway_id,
                Winner.winner_type == WinnerType.primary,
            )
        )
    ).scalars().all()
    return max(ranks, default=0) + 1


async def _make_primary(session: AsyncSession, winner: Winner, now: datetime) -> None:
    winner.rank = await _next_primary_rank(session, winner.giveaway_id)
    winner.winner_type = WinnerType.primary
    winner.updated_at = now


async def _promote_next_alternate(
    session: AsyncSession, *, giveaway_id: int, now: datetime
) -> Winner | None:
    alternate = (
        await session.execute(
            select(Winner)
            .where(
                Winner.giveaway_id == giveaway_id,
                Winner.winner_type == WinnerType.alternate,
                Winner.status == WinnerStatus.pending,
            )
            .order_by(Winner.rank)
            .limit(1)
        )
    ).scalar_one_or_none()
    if alternate:
        await _make_primary(session, alternate, now)
    return alternate


async def update_winner_status(
    session: AsyncSession,
    *,
    giveaway_id: int,
    winner_id: int,
    action: WinnerAction | str,
    actor: str = "system",
) -> Winner:
    winner = await session.get(Winner, winner_id)
    if not winner or winner.giveaway_id != giveaway_id:
        raise WinnerNotFound("Winner not found")
    giveaway = await get_giveaway(session, giveaway_id)
    try:
        action = WinnerAction(action)
    except ValueError as exc:
        raise InvalidWinnerAction(f"Invalid action: {action}") from exc

    now = utcnow()
    promoted = None
    if action == WinnerAction.notify:
        if winner.status in REMOVED_STATUSES:
            raise InvalidWinnerAction("Cannot notify a removed winner")
        winner.status = WinnerStatus.notified
        winner.notified_at = now
        winner.updated_at = now
    elif action in (WinnerAction.forfeit, WinnerAction.disqualify):
        if winner.status in REMOVED_STATUSES:
            raise InvalidWinnerAction("Winner has already been removed")
        was_primary = winner.winner_type == WinnerType.primary
        winner.status = (
            WinnerStatus.forfeited
            if action == WinnerAction.forfeit
            else WinnerStatus.disqualified
        )
        winner.updated_at = now
        if was_primary and giveaway.alternate_selection == AlternateSelection.auto:
            promoted = await _promote_next_alternate(session, giveaway_id=giveaway_id, now=now)
    else:
        if winner.winner_type != WinnerType.alternate:
            raise InvalidWinnerAction("Only alternates can be promoted")
        if winner.status in REMOVED_STATUSES:
            raise InvalidWinnerAction("Cannot promote a removed alternate")
        await _make_primary(session, winner, now)

    await log_action(
        session,
        actor=actor,
        action=f"winner_{action.value}",
        payload={
            "giveaway_id": giveaway_id,
            "winner_id": winner.id,
            "entry_id": winner.entry_id,
            "promoted_winner_id": promoted.id if promoted else None,
        },
    )
    await session.flush()
    return winner


async def add_manual_alternate(
    session: AsyncSession,
    *,
    giveaway_id: int,
    entry_id: int,
    actor: str = "system",
) -> Winner:
    giveaway = (
        await session.execute(
            select(Giveaway).where(Giveaway.id == giveaway_id).with_for_update()
        )
    ).scalar_one_or_none()
    if not giveaway:
        raise GiveawayNotFound("Giveaway not found")
    if not giveaway.winner_selected:
        raise InvalidWinnerAction("Winners have not been selected yet")
    if giveaway.alternate_selection != AlternateSelection.manual:
        raise InvalidWinnerAction("Alternates are selected automatically for this giveaway")

    entry = await get_entry(session, entry_id)
    if not entry or entry.giveaway_id != giveaway.id:
        raise EntryNotFound("Entry not found")
    if not entry.is_valid:
        raise InvalidWinnerAction("Entry has been invalidated")

    winners = (
        await session.execute(select(Winner).where(Winner.giveaway_id == giveaway.id))
    ).scalars().all()
    if any(winner.entry_id == entry.id for winner in winners):
        raise InvalidWinnerAction("Entry has already been selected as a winner")
    alternate_ranks = [w.rank for w in winners if w.winner_type == WinnerType.alternate]
    # Promoted and removed records keep their slot.
    if (
        len(alternate_ranks) >= giveaway.alternate_winners
        or len(winners) >= giveaway.num_winners + giveaway.alternate_winners
    ):
        raise InvalidWinnerAction("All alternate slots are filled")

    winner = _new_winner(
        giveaway_id=giveaway.id,
        entry_id=entry.id,
        winner_type=WinnerType.alternate,
        rank=max(alternate_ranks, default=0) + 1,
        method=SelectionMethod.manual,
        now=utcnow(),
    )
    session.add(winner)
    await log_action(
        session,
        actor=actor,
        action="add_manual_alternate",
        payload={"giveaway_id": giveaway.id, "entry_id": entry.id, "rank": winner.rank},
    )
    await session.flush()
    return winner
