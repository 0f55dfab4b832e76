"""Initial schema for the RentFlow back office

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates all tables for:
- Property Management (properties, units)
- Tenant Management (tenants)
- Payment Management (payments, billing_charges, notifications)
"""
from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables."""

    # =====================
    # PROPERTY MANAGEMENT
    # =====================

    # properties - aggregates are a cache over units
    op.create_table(
        "properties",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("property_type", sa.String(50), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image", sa.String(500), nullable=True),
        sa.Column("paybill", sa.String(20), nullable=False),
        sa.Column("account_prefix", sa.String(50), nullable=False),
        sa.Column("unit_types", sa.JSON(), nullable=False),
        sa.Column("total_units", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("occupied_units", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("available_units", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("monthly_revenue", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "occupied_units + available_units = total_units",
            name="ck_properties_occupancy_totals",
        ),
    )
    op.create_index("ix_properties_owner_id", "properties", ["owner_id"])
    op.create_index("ix_properties_owner_name", "properties", ["owner_id", "name"])

    # units - one row per rentable unit
    op.create_table(
        "units",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("unit_number", sa.String(50), nullable=False),
        sa.Column("unit_type", sa.String(50), nullable=False),
        sa.Column("rent_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("billing_reference", sa.String(120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_occupied", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("tenant_id", sa.Integer(), nullable=True),
        sa.Column("occupied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("vacated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["property_id"], ["properties.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "(is_occupied AND tenant_id IS NOT NULL) "
            "OR (NOT is_occupied AND tenant_id IS NULL)",
            name="ck_units_occupancy_binding",
        ),
        sa.CheckConstraint("rent_amount >= 0", name="ck_units_rent_non_negative"),
    )
    op.create_index("ix_units_number", "units", ["property_id", "unit_number"], unique=True)
    op.create_index("ix_units_billing_reference", "units", ["billing_reference"], unique=True)
    op.create_index("ix_units_vacancy", "units", ["property_id", "unit_type", "is_occupied"])
    op.create_index("ix_units_tenant", "units", ["tenant_id"])

    # =====================
    # TENANT MANAGEMENT
    # =====================

    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("id_number", sa.String(50), nullable=True),
        sa.Column("occupation", sa.String(120), nullable=True),
        sa.Column("emergency_contact", sa.String(255), nullable=True),
        sa.Column("emergency_phone", sa.String(30), nullable=True),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("unit_number", sa.String(50), nullable=False),
        sa.Column("unit_type", sa.String(50), nullable=False),
        sa.Column("rent_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("billing_reference", sa.String(120), nullable=False),
        sa.Column("move_in_date", sa.Date(), nullable=True),
        sa.Column("move_out_date", sa.Date(), nullable=True),
        sa.Column("transfer_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column(
            "payment_status",
            sa.Enum("pending", "partial", "paid", "overdue", "moved_out", name="paymentstatus"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("account_balance", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("last_payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_payment_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("payment_history", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tenants_owner_id", "tenants", ["owner_id"])
    op.create_index("ix_tenants_owner_property", "tenants", ["owner_id", "property_id"])
    op.create_index("ix_tenants_billing_reference", "tenants", ["billing_reference", "is_active"])
    op.create_index("ix_tenants_owner_active", "tenants", ["owner_id", "is_active"])

    # =====================
    # PAYMENT MANAGEMENT
    # =====================

    # payments - append-only
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("billing_reference", sa.String(120), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("expected_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("previous_balance", sa.Numeric(14, 2), nullable=False),
        sa.Column("resulting_balance", sa.Numeric(14, 2), nullable=False),
        sa.Column(
            "payment_type",
            sa.Enum("overpayment", "underpayment", "exact", name="paymenttype"),
            nullable=False,
        ),
        sa.Column("overpayment_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("shortfall_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("carry_forward", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("billing_month", sa.String(7), nullable=False),
        sa.Column(
            "channel",
            sa.Enum("simulated", "gateway_callback", name="paymentchannel"),
            nullable=False,
        ),
        sa.Column("receipt_number", sa.String(50), nullable=False),
        sa.Column("phone_number", sa.String(30), nullable=True),
        sa.Column("checkout_request_id", sa.String(100), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("receipt_number", name="uq_payments_receipt_number"),
    )
    op.create_index("ix_payments_owner_id", "payments", ["owner_id"])
    op.create_index("ix_payments_tenant_id", "payments", ["tenant_id"])
    op.create_index("ix_payments_owner_month", "payments", ["owner_id", "billing_month"])

    # billing_charges - append-only, one per tenant and month
    op.create_table(
        "billing_charges",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("billing_month", sa.String(7), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("resulting_balance", sa.Numeric(14, 2), nullable=False),
        sa.Column("billed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "billing_month", name="uq_billing_charges_tenant_month"),
    )
    op.create_index("ix_billing_charges_owner_id", "billing_charges", ["owner_id"])

    # notifications
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=True),
        sa.Column(
            "notification_type",
            sa.Enum("success", "info", "warning", "reminder", name="notificationtype"),
            nullable=False,
        ),
        sa.Column("title", sa.String(120), nullable=False),
        sa.Column(
            "severity",
            sa.Enum("low", "medium", "high", name="notificationseverity"),
            nullable=False,
        ),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_owner_id", "notifications", ["owner_id"])
    op.create_index("ix_notifications_owner_read", "notifications", ["owner_id", "is_read"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("notifications")
    op.drop_table("billing_charges")
    op.drop_table("payments")
    op.drop_table("tenants")
    op.drop_table("units")
    op.drop_table("properties")
