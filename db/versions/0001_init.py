"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    giveaway_status = postgresql.ENUM(
        "draft", "active", "closed", "ended", name="giveaway_status", create_type=False
    )
    giveaway_entry_type = postgresql.ENUM(
        "phone", "email", "both", name="giveaway_entry_type", create_type=False
    )
    alternate_selection = postgresql.ENUM(
        "auto", "manual", name="alternate_selection", create_type=False
    )
    winner_type = postgresql.ENUM("primary", "alternate", name="winner_type", create_type=False)
    winner_selection_method = postgresql.ENUM(
        "weighted_random", "manual", name="winner_selection_method", create_type=False
    )
    winner_status = postgresql.ENUM(
        "pending",
        "notified",
        "forfeited",
        "disqualified",
        name="winner_status",
        create_type=False,
    )

    giveaway_status.create(op.get_bind(), checkfirst=True)
    giveaway_entry_type.create(op.get_bind(), checkfirst=True)
    alternate_selection.create(op.get_bind(), checkfirst=True)
    winner_type.create(op.get_bind(), checkfirst=True)
    winner_selection_method.create(op.get_bind(), checkfirst=True)
    winner_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "giveaways",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("slug", sa.String(length=128), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("prize_title", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", giveaway_status, nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("drawing_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "restricted_states",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("entry_type", giveaway_entry_type, nullable=False),
        sa.Column(
            "bonus_entries_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column("bonus_entry_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column(
            "referral_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column(
            "referral_bonus_entries", sa.Integer(), nullable=False, server_default=sa.text("1")
        ),
        sa.Column("max_referral_bonus", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column(
            "max_referrals_per_ip", sa.Integer(), nullable=False, server_default=sa.text("3")
        ),
        sa.Column("num_winners", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("alternate_winners", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("alternate_selection", alternate_selection, nullable=False),
        sa.Column(
            "winner_selected", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column("winner_selected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("slug", name="uq_giveaways_slug"),
    )

    op.create_table(
        "entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "giveaway_id",
            sa.Integer(),
            sa.ForeignKey("giveaways.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("phone", sa.String(length=16), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("state", sa.String(length=2), nullable=False),
        sa.Column("zip_code", sa.String(length=10), nullable=True),
        sa.Column("sms_opt_in", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("agreed_to_rules", sa.Boolean(), nullable=False),
        sa.Column("source_ip", sa.String(length=64), nullable=False),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("entry_source", sa.String(length=32), nullable=False, server_default="website"),
        sa.Column("base_entries", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("bonus_entries", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("bonus_claimed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("secondary_contact", sa.String(length=320), nullable=True),
        sa.Column("referral_code", sa.String(length=16), nullable=False),
        sa.Column(
            "referred_by_entry_id",
            sa.Integer(),
            sa.ForeignKey("entries.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("referral_entries", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("giveaway_id", "phone", name="uq_entries_giveaway_phone"),
        sa.UniqueConstraint("giveaway_id", "email", name="uq_entries_giveaway_email"),
        sa.UniqueConstraint("referral_code", name="uq_entries_referral_code"),
        sa.CheckConstraint(
            "base_entries >= 1 AND bonus_entries >= 0 AND referral_entries >= 0",
            name="ck_entries_counters",
        ),
    )
    op.create_index("ix_entries_giveaway_id", "entries", ["giveaway_id"], unique=False)
    op.create_index("ix_entries_created_at", "entries", ["created_at"], unique=False)

    op.create_table(
        "referral_edges",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "giveaway_id",
            sa.Integer(),
            sa.ForeignKey("giveaways.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "referrer_entry_id",
            sa.Integer(),
            sa.ForeignKey("entries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "referee_entry_id",
            sa.Integer(),
            sa.ForeignKey("entries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("source_ip", sa.String(length=64), nullable=False),
        sa.Column("bonus_entries_awarded", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("referee_entry_id", name="uq_referral_edges_referee"),
        sa.CheckConstraint(
            "referrer_entry_id <> referee_entry_id", name="ck_referral_edges_not_self"
        ),
    )
    op.create_index(
        "ix_referral_edges_referrer_ip",
        "referral_edges",
        ["referrer_entry_id", "source_ip"],
        unique=False,
    )

    op.create_table(
        "winners",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "giveaway_id",
            sa.Integer(),
            sa.ForeignKey("giveaways.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "entry_id",
            sa.Integer(),
            sa.ForeignKey("entries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("winner_type", winner_type, nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("selection_method", winner_selection_method, nullable=False),
        sa.Column("status", winner_status, nullable=False),
        sa.Column("claim_token", sa.String(length=64), nullable=False),
        sa.Column("claim_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("selected_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("giveaway_id", "entry_id", name="uq_winners_giveaway_entry"),
        sa.UniqueConstraint("claim_token", name="uq_winners_claim_token"),
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor", sa.Text(), nullable=False),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("winners")
    op.drop_index("ix_referral_edges_referrer_ip", table_name="referral_edges")
    op.drop_table("referral_edges")
    op.drop_index("ix_entries_created_at", table_name="entries")
    op.drop_index("ix_entries_giveaway_id", table_name="entries")
    op.drop_table("entries")
    op.drop_table("giveaways")

    op.execute("DROP TYPE IF EXISTS winner_status")
    op.execute("DROP TYPE IF EXISTS winner_selection_method")
    op.execute("DROP TYPE IF EXISTS winner_type")
    op.execute("DROP TYPE IF EXISTS alternate_selection")
    op.execute("DROP TYPE IF EXISTS giveaway_entry_type")
    op.execute("DROP TYPE IF EXISTS giveaway_status")
