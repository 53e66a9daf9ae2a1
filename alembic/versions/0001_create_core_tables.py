"""create core tables

Revision ID: 0001_create_core_tables
Revises:
Create Date: 2025-08-04 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_create_core_tables"
down_revision = None
branch_labels = None
depends_on = None


def _pinned_columns():
    return [
        sa.Column("tenant_id", sa.String(length=32), nullable=False, index=True),
        sa.Column("tenant_version", sa.Integer, nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=True),
        sa.ForeignKeyConstraint(
            ["tenant_id", "tenant_version"],
            ["tenant.tenant_id", "tenant.tenant_version"],
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "owner",
        sa.Column("owner_id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("mobile", sa.String(length=32)),
        sa.Column("email", sa.String(length=255)),
        sa.Column("organization_id", sa.Integer, nullable=True, index=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )

    op.create_table(
        "tenant",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.String(length=32), nullable=False, index=True),
        sa.Column("tenant_version", sa.Integer, nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("mobile", sa.String(length=32)),
        sa.Column("email", sa.String(length=255)),
        sa.Column("unit_no", sa.String(length=64)),
        sa.Column("remark", sa.Text),
        sa.Column("owner_id", sa.Integer, sa.ForeignKey("owner.owner_id"), nullable=True),
        sa.Column("power_meter_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("rent_portion_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("water_required", sa.Boolean, nullable=False, server_default=sa.text("0")),
        sa.Column("maintenance_required", sa.Boolean, nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=True),
        sa.UniqueConstraint("tenant_id", "tenant_version", name="uq_tenant_version"),
    )
    # at most one active version per tenant
    op.create_index(
        "uq_tenant_active",
        "tenant",
        ["tenant_id"],
        unique=True,
        sqlite_where=sa.text("status = 'active'"),
        postgresql_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "powermeter",
        sa.Column("meter_id", sa.Integer, primary_key=True),
        sa.Column("meter_number", sa.String(length=64)),
        sa.Column("initial_reading", sa.Numeric(18, 4), nullable=False),
        *_pinned_columns(),
    )

    for table, pk in (
        ("renthistory", "rent_id"),
        ("waterhistory", "water_id"),
        ("maintenancehistory", "maintenance_id"),
    ):
        op.create_table(
            table,
            sa.Column(pk, sa.Integer, primary_key=True),
            sa.Column("amount", sa.Numeric(18, 4), nullable=True),
            sa.Column("remark", sa.Text),
            *_pinned_columns(),
        )

    op.create_table(
        "monthlyreading",
        sa.Column("reading_id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.String(length=32), nullable=False, index=True),
        sa.Column("tenant_version", sa.Integer, nullable=False),
        sa.Column("meter_id", sa.Integer, sa.ForeignKey("powermeter.meter_id"), nullable=False, index=True),
        sa.Column("month", sa.Date, nullable=False, index=True),
        sa.Column("previous_reading", sa.Numeric(18, 4), nullable=False),
        sa.Column("current_reading", sa.Numeric(18, 4), nullable=False),
        sa.Column("rate_per_unit", sa.Numeric(18, 4), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=True),
        sa.ForeignKeyConstraint(
            ["tenant_id", "tenant_version"],
            ["tenant.tenant_id", "tenant.tenant_version"],
        ),
    )


def downgrade() -> None:
    op.drop_table("monthlyreading")
    op.drop_table("maintenancehistory")
    op.drop_table("waterhistory")
    op.drop_table("renthistory")
    op.drop_table("powermeter")
    op.drop_index("uq_tenant_active", table_name="tenant")
    op.drop_table("tenant")
    op.drop_table("owner")
