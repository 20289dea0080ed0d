"""Initial dues schema: zones, households, users, tariffs, bills, audit logs.

Revision ID: 0001_initial
Revises:
Create Date: 2025-01-06
"""

import sqlalchemy as sa
from alembic import op

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "sub_zones",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("number", sa.String(), nullable=False, unique=True),
    )
    op.create_index("ix_sub_zones_id", "sub_zones", ["id"])

    op.create_table(
        "streets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("sub_zone_id", sa.Integer(), sa.ForeignKey("sub_zones.id"), nullable=True),
    )
    op.create_index("ix_streets_id", "streets", ["id"])

    op.create_table(
        "zones",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
    )
    op.create_index("ix_zones_id", "zones", ["id"])

    op.create_table(
        "residents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("full_name", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_residents_id", "residents", ["id"])

    op.create_table(
        "households",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("street_id", sa.Integer(), sa.ForeignKey("streets.id"), nullable=False),
        sa.Column("house_number", sa.String(), nullable=False),
        sa.Column("sub_zone_id", sa.Integer(), sa.ForeignKey("sub_zones.id"), nullable=True),
        sa.Column("zone_id", sa.Integer(), sa.ForeignKey("zones.id"), nullable=True),
        sa.Column("is_occupied", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("head_resident_id", sa.Integer(), sa.ForeignKey("residents.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("street_id", "house_number", name="uq_households_street_number"),
    )
    op.create_index("ix_households_id", "households", ["id"])
    op.create_index("ix_households_sub_zone_id", "households", ["sub_zone_id"])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False, server_default="warga"),
        sa.Column("household_id", sa.Integer(), sa.ForeignKey("households.id"), nullable=True),
        sa.Column("sub_zone_id", sa.Integer(), sa.ForeignKey("sub_zones.id"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("target_entity_type", sa.String(), nullable=True),
        sa.Column("target_entity_id", sa.String(), nullable=True),
        sa.Column("before", sa.Text(), nullable=True),
        sa.Column("after", sa.Text(), nullable=True),
    )
    op.create_index("ix_audit_logs_id", "audit_logs", ["id"])
    op.create_index("ix_audit_logs_timestamp", "audit_logs", ["timestamp"])

    op.create_table(
        "tariff_rules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("zone_id", sa.Integer(), sa.ForeignKey("zones.id"), nullable=True),
        sa.Column("occupied_rate", sa.Numeric(14, 2), nullable=False),
        sa.Column("unoccupied_rate", sa.Numeric(14, 2), nullable=True),
        sa.Column("effective_start", sa.Date(), nullable=False),
        sa.Column("effective_end", sa.Date(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("occupied_rate > 0", name="ck_tariff_rules_occupied_positive"),
        sa.CheckConstraint(
            "effective_end IS NULL OR effective_end >= effective_start",
            name="ck_tariff_rules_window",
        ),
    )
    op.create_index("ix_tariff_rules_id", "tariff_rules", ["id"])
    op.create_index("ix_tariff_rules_effective_start", "tariff_rules", ["effective_start"])

    op.create_table(
        "bills",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "household_id",
            sa.Integer(),
            sa.ForeignKey("households.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("period", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="unpaid"),
        sa.Column("amount_paid", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("household_id", "period", name="uq_bills_household_period"),
    )
    op.create_index("ix_bills_id", "bills", ["id"])
    op.create_index("ix_bills_household_id", "bills", ["household_id"])
    op.create_index("ix_bills_period", "bills", ["period"])


def downgrade() -> None:
    op.drop_table("bills")
    op.drop_table("tariff_rules")
    op.drop_table("audit_logs")
    op.drop_table("users")
    op.drop_table("households")
    op.drop_table("residents")
    op.drop_table("zones")
    op.drop_table("streets")
    op.drop_table("sub_zones")
