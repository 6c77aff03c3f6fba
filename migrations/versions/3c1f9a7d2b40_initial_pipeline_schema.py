"""initial pipeline schema

Revision ID: 3c1f9a7d2b40
Revises:
Create Date: 2026-10-19 09:12:44.318204

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c1f9a7d2b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BIGINT_ID = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    """Create items, tallies, ballots, audit trail, accounts and escalations."""
    op.create_table(
        "account",
        sa.Column("actor_ref", sa.String(length=64), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("warning_count", sa.Integer(), nullable=False),
        sa.Column("is_suspended", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("actor_ref"),
    )
    op.create_table(
        "moderation_item",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("author_ref", sa.String(length=64), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=40), nullable=False),
        sa.Column("severity", sa.String(length=10), nullable=False),
        sa.Column("urgent", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("channel_id", sa.String(length=64), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("protocol_hash", sa.CHAR(length=64), nullable=True),
        sa.Column("response_message", sa.Text(), nullable=True),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("scoring_action", sa.String(length=20), nullable=True),
        sa.Column("scoring_reasons", sa.JSON(), nullable=True),
        sa.Column("scored_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scoring_failed", sa.Boolean(), nullable=False),
        sa.Column("resolved_by", sa.String(length=20), nullable=True),
        sa.Column("authority_reviewer", sa.String(length=64), nullable=True),
        sa.Column("authority_decision", sa.String(length=10), nullable=True),
        sa.Column("authority_reason", sa.Text(), nullable=True),
        sa.Column("authority_decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("protocol_hash"),
    )
    op.create_index("ix_moderation_item_kind_status", "moderation_item", ["kind", "status"])
    op.create_index("ix_moderation_item_channel", "moderation_item", ["channel_id"])

    op.create_table(
        "consensus_tally",
        sa.Column("item_id", sa.String(length=32), nullable=False),
        sa.Column("upvotes", sa.Integer(), nullable=False),
        sa.Column("downvotes", sa.Integer(), nullable=False),
        sa.Column("report_count", sa.Integer(), nullable=False),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["item_id"], ["moderation_item.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("item_id"),
    )
    op.create_table(
        "consensus_ballot",
        sa.Column("item_id", sa.String(length=32), nullable=False),
        sa.Column("voter_ref", sa.String(length=64), nullable=False),
        sa.Column("ballot", sa.String(length=10), nullable=False),
        sa.Column("direction", sa.SmallInteger(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.CheckConstraint("ballot IN ('vote', 'report')", name="ck_consensus_ballot_kind"),
        sa.CheckConstraint(
            "direction IS NULL OR direction IN (1, -1)",
            name="ck_consensus_ballot_direction",
        ),
        sa.ForeignKeyConstraint(["item_id"], ["moderation_item.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("item_id", "voter_ref", "ballot"),
    )
    op.create_index("ix_consensus_ballot_item_id", "consensus_ballot", ["item_id"])

    op.create_table(
        "audit_log_entry",
        sa.Column("id", BIGINT_ID, autoincrement=True, nullable=False),
        sa.Column("item_id", sa.String(length=32), nullable=False),
        sa.Column("source", sa.String(length=20), nullable=False),
        sa.Column("decision", sa.String(length=30), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=True),
        sa.Column("reasons", sa.JSON(), nullable=False),
        sa.Column("from_status", sa.String(length=20), nullable=True),
        sa.Column("to_status", sa.String(length=20), nullable=True),
        sa.Column("at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_log_entry_item_id", "audit_log_entry", ["item_id"])

    op.create_table(
        "escalation_outbound",
        sa.Column("id", BIGINT_ID, autoincrement=True, nullable=False),
        sa.Column("item_id", sa.String(length=32), nullable=False),
        sa.Column("event_kind", sa.Text(), nullable=False),
        sa.Column("severity", sa.VARCHAR(length=10), nullable=False),
        sa.Column("reasons", sa.JSON(), nullable=False),
        sa.Column("target_roles", sa.JSON(), nullable=False),
        sa.Column("status", sa.VARCHAR(length=20), nullable=False),
        sa.Column("retry_count", sa.SmallInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    """Drop every pipeline table."""
    op.drop_table("escalation_outbound")
    op.drop_index("ix_audit_log_entry_item_id", table_name="audit_log_entry")
    op.drop_table("audit_log_entry")
    op.drop_index("ix_consensus_ballot_item_id", table_name="consensus_ballot")
    op.drop_table("consensus_ballot")
    op.drop_table("consensus_tally")
    op.drop_index("ix_moderation_item_channel", table_name="moderation_item")
    op.drop_index("ix_moderation_item_kind_status", table_name="moderation_item")
    op.drop_table("moderation_item")
    op.drop_table("account")
