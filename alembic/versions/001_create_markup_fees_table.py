"""create markup_fees table

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    transactiontype = sa.Enum(
        "CASH", "CARD", "TT", "SELLCASH", "SELLCARD",
        name="transactiontype",
    )
    transactiontype.create(op.get_bind(), checkfirst=True)

    markuptype = sa.Enum("percentage", "fixed", name="markuptype")
    markuptype.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "markup_fees",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("currency_code", sa.String(3), index=True, nullable=False),
        sa.Column("city_code", sa.String(3), index=True, nullable=False),
        sa.Column(
            "transaction_type",
            sa.Enum(name="transactiontype", create_type=False),
            nullable=False,
        ),
        sa.Column(
            "markup_type",
            sa.Enum(name="markuptype", create_type=False),
            nullable=False,
        ),
        sa.Column("description", sa.String(100), nullable=False),
        sa.Column("display_order", sa.Integer(), server_default="0", nullable=False),
        sa.Column("image", sa.String(500), nullable=True),
        sa.Column(
            "markup_value",
            sa.Numeric(precision=10, scale=4),
            server_default="0",
            nullable=False,
        ),
        sa.Column("markup_value_sell", sa.Numeric(precision=10, scale=4), nullable=True),
        sa.Column(
            "gst_percentage",
            sa.Numeric(precision=5, scale=2),
            server_default="18.00",
            nullable=False,
        ),
        sa.Column(
            "quantity",
            sa.Numeric(precision=15, scale=4),
            server_default="0",
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint(
            "currency_code", "city_code", "transaction_type", "markup_type",
            name="uq_markup_fees_identity",
        ),
        sa.UniqueConstraint("city_code", "display_order", name="uq_markup_fees_city_order"),
        sa.CheckConstraint("quantity >= 0", name="ck_markup_fees_quantity_non_negative"),
    )


def downgrade() -> None:
    op.drop_table("markup_fees")

    sa.Enum(name="markuptype").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="transactiontype").drop(op.get_bind(), checkfirst=True)
