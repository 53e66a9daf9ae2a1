"""add unique index on monthlyreading (meter_id, month)

Revision ID: 0002_add_reading_unique
Revises: 0001_create_core_tables
Create Date: 2025-08-19 00:00:00.000000
"""

from alembic import op

# revision identifiers, used by Alembic.
revision = "0002_add_reading_unique"
down_revision = "0001_create_core_tables"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # one reading per meter per month; run scripts/check_reading_chain.py first
    # on databases that may already hold duplicates
    op.create_index(
        "uq_reading_meter_month",
        "monthlyreading",
        ["meter_id", "month"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("uq_reading_meter_month", table_name="monthlyreading")
