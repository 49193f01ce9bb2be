"""Daily market rates

Revision ID: 20261008_market_rates
Revises: 20261001_initial
Create Date: 2026-10-08
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261008_market_rates"
down_revision = "20261001_initial"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "daily_market_rates",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("rate_type", sa.String(length=16), nullable=False),
        sa.Column("rate_date", sa.Date(), nullable=False),
        sa.Column("hourly_rate", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("rate_type", "rate_date", name="uq_daily_market_rates_type_date"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("daily_market_rates", schema=None) as batch_op:
        batch_op.create_index("ix_daily_market_rates_rate_date", ["rate_date"], unique=False)


def downgrade():
    with op.batch_alter_table("daily_market_rates", schema=None) as batch_op:
        batch_op.drop_index("ix_daily_market_rates_rate_date")
    op.drop_table("daily_market_rates")
