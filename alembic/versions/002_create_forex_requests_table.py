"""create forex_requests table

Revision ID: 002
Revises: 001
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

# revision identifiers, used by Alembic
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None

DOCUMENT_COLUMNS = (
    "pan_card_image", "passport_front_image", "passport_back_image",
    "air_ticket", "visa_image", "college_letter", "medical_certificate",
    "emigration_certificate", "employment_certificate", "cancelled_cheque",
    "company_address_proof", "signatories_list",
)


def upgrade() -> None:
    ordertype = sa.Enum("Buy", "Sell", name="ordertype")
    ordertype.create(op.get_bind(), checkfirst=True)

    forexrequeststatus = sa.Enum(
        "Pending", "Approved", "Rejected", "Documents Requested",
        name="forexrequeststatus",
    )
    forexrequeststatus.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "forex_requests",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), index=True, nullable=True),
        sa.Column(
            "order_type",
            sa.Enum(name="ordertype", create_type=False),
            nullable=False,
        ),
        sa.Column("order_details", JSONB, server_default="[]", nullable=False),
        # Legacy single-line fields
        sa.Column("currency", sa.String(3), nullable=True),
        sa.Column("product", sa.String(50), nullable=True),
        sa.Column("currency_amount", sa.Numeric(precision=15, scale=4), nullable=True),
        sa.Column("amount_in_inr", sa.Numeric(precision=15, scale=2), nullable=True),
        # Traveler / KYC
        sa.Column("traveler_name", sa.String(100), nullable=False),
        sa.Column("phone_number", sa.String(20), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("pan_number", sa.String(10), nullable=False),
        sa.Column("indian_resident", sa.Boolean(), nullable=False),
        # Travel
        sa.Column("traveling_countries", JSONB, server_default="[]", nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("purpose", sa.String(50), nullable=True),
        # Business Visit
        sa.Column("business_reason", sa.Text(), nullable=True),
        sa.Column("business_name", sa.String(200), nullable=True),
        sa.Column("business_type", sa.String(100), nullable=True),
        # Documents
        *[sa.Column(name, sa.String(500), nullable=True) for name in DOCUMENT_COLUMNS],
        # Delivery
        sa.Column("delivery_address", sa.Text(), nullable=True),
        sa.Column("pincode", sa.String(6), nullable=True),
        sa.Column("city", sa.String(3), index=True, nullable=False),
        sa.Column("state", sa.String(100), nullable=True),
        # Status
        sa.Column(
            "status",
            sa.Enum(name="forexrequeststatus", create_type=False),
            server_default="Pending",
            index=True,
            nullable=False,
        ),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("stock_deducted", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
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
        sa.CheckConstraint(
            "status <> 'Rejected' OR rejection_reason IS NOT NULL",
            name="ck_forex_requests_rejection_reason",
        ),
    )


def downgrade() -> None:
    op.drop_table("forex_requests")

    sa.Enum(name="forexrequeststatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="ordertype").drop(op.get_bind(), checkfirst=True)
