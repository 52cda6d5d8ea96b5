from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column

from sweepstakes.db.base import Base


class Entry(Base):
    __tablename__ = "entries"
    __table_args__ = (
        UniqueConstraint("giveaway_id", "phone", name="uq_entries_giveaway_phone"),
        UniqueConstraint("giveaway_id", "email", name="uq_entries_giveaway_email"),
        UniqueConstraint("referral_code", name="uq_entries_referral_code"),
        CheckConstraint(
            "base_entries >= 1 AND bonus_entries >= 0 AND referral_entries >= 0",
            name="ck_entries_counters",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    giveaway_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("giveaways.id", ondelete="CASCADE"), nullable=False
    )
    phone: Mapped[str | None] = mapped_column(String(16))
    email: Mapped[str | None] = mapped_column(String(320))
    first_name: Mapped[str] = mapped_column(Text, nullable=False)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[str] = mapped_column(String(2), nullable=False)
    zip_code: Mapped[str | None] = mapped_column(String(10))
    sms_opt_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    agreed_to_rules: Mapped[bool] = mapped_column(Boolean, nullable=False)
    source_ip: Mapped[str] = mapped_column(String(64), nullable=False)
    user_agent: Mapped[str | None] = mapped_column(Text)
    entry_source: Mapped[str] = mapped_column(String(32), nullable=False, default="website")
    # Invalid entries stay in the ledger but never reach the draw pool.
    is_valid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    invalidation_reason: Mapped[str | None] = mapped_column(Text)

    base_entries: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    bonus_entries: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bonus_claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    secondary_contact: Mapped[str | None] = mapped_column(String(320))
    referral_code: Mapped[str] = mapped_column(String(16), nullable=False)
    referred_by_entry_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("entries.id", ondelete="SET NULL")
    )
    referral_entries: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Bumped by every counter update; conditional updates compare against it.
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @hybrid_property
    def entry_count(self) -> int:
        return self.base_entries + self.bonus_entries + self.referral_entries


Index("ix_entries_giveaway_id", Entry.giveaway_id)
Index("ix_entries_created_at", Entry.created_at)
Index("ix_entries_giveaway_valid", Entry.giveaway_id, Entry.is_valid)
