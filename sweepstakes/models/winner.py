from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sweepstakes.db.base import Base
from sweepstakes.models.enums import SelectionMethod, WinnerStatus, WinnerType


class Winner(Base):
    __tablename__ = "winners"
    __table_args__ = (
        UniqueConstraint("giveaway_id", "entry_id", name="uq_winners_giveaway_entry"),
        UniqueConstraint("claim_token", name="uq_winners_claim_token"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    giveaway_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("giveaways.id", ondelete="CASCADE"), nullable=False
    )
    entry_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("entries.id", ondelete="CASCADE"), nullable=False
    )
    winner_type: Mapped[WinnerType] = mapped_column(
        Enum(WinnerType, name="winner_type"), nullable=False
    )
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    selection_method: Mapped[SelectionMethod] = mapped_column(
        Enum(SelectionMethod, name="winner_selection_method"), nullable=False
    )
    status: Mapped[WinnerStatus] = mapped_column(
        Enum(WinnerStatus, name="winner_status"), nullable=False
    )
    claim_token: Mapped[str] = mapped_column(String(64), nullable=False)
    claim_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    notified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    selected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
