"""entry validity

Revision ID: 0002_entry_validity
Revises: 0001_init
Create Date: 2026-10-20 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0002_entry_validity"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "entries",
        sa.Column("is_valid", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.add_column("entries", sa.Column("invalidation_reason", sa.Text(), nullable=True))
    op.create_index(
        "ix_entries_giveaway_valid", "entries", ["giveaway_id", "is_valid"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_entries_giveaway_valid", table_name="entries")
    op.drop_column("entries", "invalidation_reason")
    op.drop_column("entries", "is_valid")
