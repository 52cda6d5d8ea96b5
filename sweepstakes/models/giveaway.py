from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sweepstakes.db.base import Base, JSONType
from sweepstakes.models.enums import AlternateSelection, EntryType, GiveawayStatus


class Giveaway(Base):
    __tablename__ = "giveaways"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slug: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    prize_title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[GiveawayStatus] = mapped_column(
        Enum(GiveawayStatus, name="giveaway_status"), nullable=False
    )
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    drawing_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    restricted_states: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    entry_type: Mapped[EntryType] = mapped_column(
        Enum(EntryType, name="giveaway_entry_type"), nullable=False, default=EntryType.both
    )

    bonus_entries_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    bonus_entry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    referral_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    referral_bonus_entries: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_referral_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    max_referrals_per_ip: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    num_winners: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    alternate_winners: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    alternate_selection: Mapped[AlternateSelection] = mapped_column(
        Enum(AlternateSelection, name="alternate_selection"),
        nullable=False,
        default=AlternateSelection.auto,
    )

    winner_selected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    winner_selected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
