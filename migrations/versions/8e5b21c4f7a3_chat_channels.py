"""chat channels

Revision ID: 8e5b21c4f7a3
Revises: 3c1f9a7d2b40
Create Date: 2026-10-19 16:40:02.551870

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "8e5b21c4f7a3"
down_revision: Union[str, Sequence[str], None] = "3c1f9a7d2b40"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add per-channel chat settings."""
    op.create_table(
        "chat_channel",
        sa.Column("channel_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("channel_type", sa.String(length=20), nullable=False),
        sa.Column("max_message_length", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("channel_id"),
    )


def downgrade() -> None:
    op.drop_table("chat_channel")
