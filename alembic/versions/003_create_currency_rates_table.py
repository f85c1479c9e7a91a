"""create currency_rates table

Revision ID: 003
Revises: 002
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic
revision = "003"
down_revision = "002"
branch_labels = None
depends_on = None

RATE_COLUMNS = ("bpc", "btt", "bdd", "bcn", "ncn_combo", "scn", "spc")


def upgrade() -> None:
    op.create_table(
        "currency_rates",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("currency_code", sa.String(3), nullable=False),
        sa.Column("city", sa.String(3), index=True, nullable=False),
        sa.Column("live_rate", sa.Numeric(precision=12, scale=4), nullable=False),
        *[sa.Column(name, sa.Numeric(precision=12, scale=4), nullable=True) for name in RATE_COLUMNS],
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("currency_code", "city", name="uq_currency_rates_currency_city"),
    )


def downgrade() -> None:
    op.drop_table("currency_rates")
