#!/usr/bin/env python
import argparse
import asyncio
import logging
import random

from sweepstakes.core.config import settings
from sweepstakes.core.logging import setup_logging
from sweepstakes.db.session import SessionLocal
from sweepstakes.services.errors import ServiceError
from sweepstakes.services.winner_service import list_winners, select_winners

logger = logging.getLogger("draw_winners")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Select winners for a giveaway")
    parser.add_argument("--giveaway-id", type=int, required=True)
    parser.add_argument("--actor", default="cli")
    parser.add_argument(
        "--seed",
        type=int,
        help="Deterministic draw; only accepted when ENVIRONMENT=test",
    )
    return parser.parse_args()


async def main() -> None:
    args = parse_args()
    setup_logging()
    rng = None
    if args.seed is not None:
        if settings.environment != "test":
            raise SystemExit("--seed is only allowed in the test environment")
        rng = random.Random(args.seed)

    async with SessionLocal() as session:
        try:
            await select_winners(
                session, giveaway_id=args.giveaway_id, actor=args.actor, rng=rng
            )
            await session.commit()
        except ServiceError as exc:
            await session.rollback()
            raise SystemExit(f"{exc.code}: {exc}") from exc
        rows = await list_winners(session, giveaway_id=args.giveaway_id)

    for winner, entry in rows:
        print(
            f"{winner.winner_type.value:<9} #{winner.rank:<3} entry={entry.id} "
            f"{entry.first_name} {entry.last_name} ({entry.state}) "
            f"tickets={entry.entry_count}"
        )


if __name__ == "__main__":
    asyncio.run(main())
