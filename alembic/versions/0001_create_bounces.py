"""create bounces and subscribers

Revision ID: 0001_create_bounces
Revises:
Create Date: 2026-10-16 00:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_create_bounces"
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade():
    op.create_table(
        "subscribers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("uuid", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="enabled"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_subscribers_uuid", "subscribers", ["uuid"], unique=True)
    op.create_index("ix_subscribers_email", "subscribers", ["email"], unique=True)

    op.create_table(
        "bounces",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("subscriber_uuid", sa.String(length=36), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("campaign_id", sa.Integer(), nullable=True),
        sa.Column("source", sa.String(length=64), nullable=False),
        sa.Column("meta", JSONType, nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_bounces_subscriber_uuid", "bounces", ["subscriber_uuid"], unique=False)
    op.create_index("ix_bounces_email", "bounces", ["email"], unique=False)
    op.create_index("ix_bounces_campaign_id", "bounces", ["campaign_id"], unique=False)
    op.create_index("ix_bounces_created_at", "bounces", ["created_at"], unique=False)


def downgrade():
    op.drop_index("ix_bounces_created_at", table_name="bounces")
    op.drop_index("ix_bounces_campaign_id", table_name="bounces")
    op.drop_index("ix_bounces_email", table_name="bounces")
    op.drop_index("ix_bounces_subscriber_uuid", table_name="bounces")
    op.drop_table("bounces")

    op.drop_index("ix_subscribers_email", table_name="subscribers")
    op.drop_index("ix_subscribers_uuid", table_name="subscribers")
    op.drop_table("subscribers")
