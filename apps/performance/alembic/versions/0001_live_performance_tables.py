"""create live performance tables

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "products",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("price", sa.Numeric(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    )

    op.create_table(
        "campaigns",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="DRAFT"),
        sa.Column("daily_budget", sa.Numeric(), nullable=True),
        sa.Column("total_budget", sa.Numeric(), nullable=True),
        sa.Column("currency", sa.Text(), nullable=False, server_default="USD"),
        sa.Column(
            "platforms",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("product_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
    )
    op.create_index("ix_campaigns_status", "campaigns", ["status"])

    op.create_table(
        "performance_snapshots",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("campaign_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("platform", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("hour", sa.Integer(), nullable=False),
        sa.Column("spend", sa.Numeric(), nullable=False, server_default="0"),
        sa.Column("budget", sa.Numeric(), nullable=False, server_default="0"),
        sa.Column("impressions", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("clicks", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("conversions", sa.Numeric(), nullable=False, server_default="0"),
        sa.Column("revenue", sa.Numeric(), nullable=False, server_default="0"),
        sa.Column("reach", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("profit", sa.Numeric(), nullable=False, server_default="0"),
        sa.Column("ctr", sa.Float(), nullable=False, server_default="0"),
        sa.Column("cpc", sa.Float(), nullable=False, server_default="0"),
        sa.Column("cpm", sa.Float(), nullable=False, server_default="0"),
        sa.Column("roas", sa.Float(), nullable=False, server_default="0"),
        sa.Column("conversion_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("cpa", sa.Float(), nullable=False, server_default="0"),
        sa.Column("budget_utilization", sa.Float(), nullable=False, server_default="0"),
        sa.Column("profit_margin", sa.Float(), nullable=False, server_default="0"),
        sa.Column("data_source", sa.Text(), nullable=False, server_default="SIMULATED"),
        sa.Column("is_live", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_performance_snapshots_campaign_timestamp",
        "performance_snapshots",
        ["campaign_id", "timestamp"],
    )
    op.create_index(
        "ix_performance_snapshots_campaign_platform_timestamp",
        "performance_snapshots",
        ["campaign_id", "platform", "timestamp"],
    )

    op.create_table(
        "snapshot_alerts",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("snapshot_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("kind", sa.Text(), nullable=False),
        sa.Column("severity", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("triggered", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["snapshot_id"], ["performance_snapshots.id"], ondelete="CASCADE"
        ),
    )
    op.create_index(
        "ix_snapshot_alerts_kind_acknowledged",
        "snapshot_alerts",
        ["kind", "acknowledged_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_snapshot_alerts_kind_acknowledged", table_name="snapshot_alerts")
    op.drop_table("snapshot_alerts")
    op.drop_index(
        "ix_performance_snapshots_campaign_platform_timestamp",
        table_name="performance_snapshots",
    )
    op.drop_index(
        "ix_performance_snapshots_campaign_timestamp", table_name="performance_snapshots"
    )
    op.drop_table("performance_snapshots")
    op.drop_index("ix_campaigns_status", table_name="campaigns")
    op.drop_table("campaigns")
    op.drop_table("products")
