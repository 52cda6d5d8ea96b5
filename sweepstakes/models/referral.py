from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from sweepstakes.db.base import Base


class ReferralEdge(Base):
    __tablename__ = "referral_edges"
    __table_args__ = (
        UniqueConstraint("referee_entry_id", name="uq_referral_edges_referee"),
        CheckConstraint(
            "referrer_entry_id <> referee_entry_id", name="ck_referral_edges_not_self"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    giveaway_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("giveaways.id", ondelete="CASCADE"), nullable=False
    )
    referrer_entry_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("entries.id", ondelete="CASCADE"), nullable=False
    )
    referee_entry_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("entries.id", ondelete="CASCADE"), nullable=False
    )
    source_ip: Mapped[str] = mapped_column(String(64), nullable=False)
    bonus_entries_awarded: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


Index(
    "ix_referral_edges_referrer_ip",
    ReferralEdge.referrer_entry_id,
    ReferralEdge.source_ip,
)
