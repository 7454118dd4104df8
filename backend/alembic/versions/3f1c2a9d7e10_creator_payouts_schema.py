"""creator commission and payout schema

Revision ID: 3f1c2a9d7e10
Revises:
Create Date: 2026-10-18
"""

import uuid

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "3f1c2a9d7e10"
down_revision = None
branch_labels = None
depends_on = None

UUID = postgresql.UUID(as_uuid=True)
MONEY = sa.Numeric(12, 2)
PERCENT = sa.Numeric(5, 2)


def _id() -> sa.Column:
    return sa.Column("id", UUID, primary_key=True, nullable=False)


def _ts(name: str, nullable: bool = False, server_default: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=sa.text("now()") if server_default else None,
    )


def upgrade() -> None:
    # -----------------------------------------------------
    # 1) Identity and platform configuration
    # -----------------------------------------------------
    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _ts("created_at", server_default=True),
        _ts("updated_at", server_default=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "platform_memberships",
        _id(),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _ts("created_at", server_default=True),
    )
    op.create_index("ix_platform_memberships_user_id", "platform_memberships", ["user_id"], unique=True)

    op.create_table(
        "platform_settings",
        _id(),
        sa.Column("setting_key", sa.String(length=64), nullable=False),
        sa.Column("setting_value", sa.JSON(), nullable=False),
        sa.Column("updated_by", UUID, sa.ForeignKey("users.id"), nullable=True),
        _ts("updated_at", server_default=True),
    )
    op.create_index("ix_platform_settings_setting_key", "platform_settings", ["setting_key"], unique=True)

    # -----------------------------------------------------
    # 2) Creator program
    # -----------------------------------------------------
    op.create_table(
        "cmo_profiles",
        _id(),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("display_name", sa.String(length=200), nullable=True),
        sa.Column("referral_code", sa.String(length=6), nullable=True, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_head_ops", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _ts("created_at", server_default=True),
    )
    op.create_index("ix_cmo_profiles_user_id", "cmo_profiles", ["user_id"], unique=True)

    op.create_table(
        "creator_profiles",
        _id(),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("display_name", sa.String(length=200), nullable=True),
        sa.Column("referral_code", sa.String(length=6), nullable=False),
        sa.Column("cmo_id", UUID, sa.ForeignKey("cmo_profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("lifetime_paid_users", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("available_balance", MONEY, nullable=False, server_default="0.00"),
        sa.Column("reserved_balance", MONEY, nullable=False, server_default="0.00"),
        sa.Column("total_withdrawn", MONEY, nullable=False, server_default="0.00"),
        sa.Column("current_tier_level", sa.Integer(), nullable=False, server_default="1"),
        _ts("tier_protection_until", nullable=True),
        _ts("created_at", server_default=True),
        sa.CheckConstraint("available_balance >= 0", name="ck_creator_available_nonneg"),
        sa.CheckConstraint("reserved_balance >= 0", name="ck_creator_reserved_nonneg"),
        sa.CheckConstraint("total_withdrawn >= 0", name="ck_creator_withdrawn_nonneg"),
        sa.CheckConstraint("lifetime_paid_users >= 0", name="ck_creator_lifetime_nonneg"),
    )
    op.create_index("ix_creator_profiles_user_id", "creator_profiles", ["user_id"], unique=True)
    op.create_index("ix_creator_profiles_referral_code", "creator_profiles", ["referral_code"], unique=True)
    op.create_index("ix_creator_profiles_cmo_id", "creator_profiles", ["cmo_id"])

    tiers = op.create_table(
        "commission_tiers",
        _id(),
        sa.Column("tier_level", sa.Integer(), nullable=False),
        sa.Column("tier_name", sa.String(length=64), nullable=False),
        sa.Column("commission_rate", PERCENT, nullable=False),
        sa.Column("monthly_user_threshold", sa.Integer(), nullable=False),
        _ts("created_at", server_default=True),
        _ts("updated_at", server_default=True),
    )
    op.create_index("ix_commission_tiers_tier_level", "commission_tiers", ["tier_level"], unique=True)
    op.bulk_insert(
        tiers,
        [
            {"id": uuid.uuid4(), "tier_level": 1, "tier_name": "Base", "commission_rate": 8, "monthly_user_threshold": 0},
            {"id": uuid.uuid4(), "tier_level": 2, "tier_name": "Growth", "commission_rate": 12, "monthly_user_threshold": 100},
            {"id": uuid.uuid4(), "tier_level": 3, "tier_name": "Elite", "commission_rate": 16, "monthly_user_threshold": 250},
        ],
    )

    op.create_table(
        "discount_codes",
        _id(),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("creator_id", UUID, sa.ForeignKey("creator_profiles.id"), nullable=False),
        sa.Column("discount_percent", PERCENT, nullable=False),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("paid_conversions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_by_user_id", UUID, sa.ForeignKey("users.id"), nullable=True),
        _ts("created_at", server_default=True),
        sa.CheckConstraint("paid_conversions <= usage_count", name="ck_discount_conversions_le_usage"),
        sa.CheckConstraint("usage_count >= 0", name="ck_discount_usage_nonneg"),
    )
    op.create_index("ix_discount_codes_code", "discount_codes", ["code"], unique=True)
    op.create_index("ix_discount_codes_creator_id", "discount_codes", ["creator_id"])

    op.create_table(
        "user_attributions",
        _id(),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("creator_id", UUID, sa.ForeignKey("creator_profiles.id"), nullable=True),
        sa.Column("discount_code_id", UUID, sa.ForeignKey("discount_codes.id"), nullable=True),
        sa.Column("referral_source", sa.String(length=20), nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_user_attributions_user_id", "user_attributions", ["user_id"], unique=True)
    op.create_index("ix_user_attributions_creator_id", "user_attributions", ["creator_id"])

    op.create_table(
        "cmo_payouts",
        _id(),
        sa.Column("cmo_id", UUID, sa.ForeignKey("cmo_profiles.id"), nullable=False),
        sa.Column("payout_month", sa.Date(), nullable=False),
        sa.Column("total_paid_users", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_commission", MONEY, nullable=False, server_default="0.00"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        _ts("created_at", server_default=True),
        sa.UniqueConstraint("cmo_id", "payout_month", name="uq_cmo_payouts_cmo_month"),
    )
    op.create_index("ix_cmo_payouts_cmo_id", "cmo_payouts", ["cmo_id"])

    # -----------------------------------------------------
    # 3) Money: attributions (credits), ledger, withdrawals (debits)
    # -----------------------------------------------------
    op.create_table(
        "payment_attributions",
        _id(),
        sa.Column("order_id", sa.String(length=128), nullable=False),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("creator_id", UUID, sa.ForeignKey("creator_profiles.id"), nullable=True),
        sa.Column("original_amount", MONEY, nullable=False),
        sa.Column("discount_applied", MONEY, nullable=False),
        sa.Column("final_amount", MONEY, nullable=False),
        sa.Column("commission_rate", PERCENT, nullable=False),
        sa.Column("tier_level", sa.Integer(), nullable=True),
        sa.Column("rate_protected", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("creator_commission_amount", MONEY, nullable=False),
        sa.Column("discount_code", sa.String(length=20), nullable=True),
        sa.Column("discount_code_id", UUID, sa.ForeignKey("discount_codes.id"), nullable=True),
        sa.Column("access_tier", sa.String(length=40), nullable=True),
        sa.Column("payment_month", sa.Date(), nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_payment_attributions_order_id", "payment_attributions", ["order_id"], unique=True)
    op.create_index("ix_payment_attributions_user_id", "payment_attributions", ["user_id"])
    op.create_index("ix_payment_attr_creator_created", "payment_attributions", ["creator_id", "created_at"])
    op.create_index("ix_payment_attr_month", "payment_attributions", ["payment_month"])

    op.create_table(
        "creator_ledger_entries",
        _id(),
        sa.Column("creator_id", UUID, sa.ForeignKey("creator_profiles.id"), nullable=False),
        sa.Column("entry_type", sa.String(length=40), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("reference_id", UUID, nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_creator_ledger_entries_creator_id", "creator_ledger_entries", ["creator_id"])
    op.create_index("ix_creator_ledger_entries_reference_id", "creator_ledger_entries", ["reference_id"])
    op.create_index("ix_creator_ledger_creator_created", "creator_ledger_entries", ["creator_id", "created_at"])
    op.create_index("ix_creator_ledger_type", "creator_ledger_entries", ["entry_type"])

    op.create_table(
        "withdrawal_methods",
        _id(),
        sa.Column("creator_id", UUID, sa.ForeignKey("creator_profiles.id"), nullable=False),
        sa.Column("method_type", sa.String(length=16), nullable=False),
        sa.Column("bank_name", sa.String(length=120), nullable=True),
        sa.Column("branch_name", sa.String(length=120), nullable=True),
        sa.Column("account_number", sa.String(length=64), nullable=True),
        sa.Column("account_holder_name", sa.String(length=200), nullable=True),
        sa.Column("crypto_type", sa.String(length=32), nullable=True),
        sa.Column("wallet_address", sa.String(length=128), nullable=True),
        sa.Column("network", sa.String(length=32), nullable=True),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _ts("created_at", server_default=True),
    )
    op.create_index("ix_withdrawal_methods_creator_id", "withdrawal_methods", ["creator_id"])

    op.create_table(
        "withdrawal_requests",
        _id(),
        sa.Column("creator_id", UUID, sa.ForeignKey("creator_profiles.id"), nullable=False),
        sa.Column(
            "withdrawal_method_id",
            UUID,
            sa.ForeignKey("withdrawal_methods.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("fee_percent", PERCENT, nullable=False),
        sa.Column("fee_amount", MONEY, nullable=False),
        sa.Column("net_amount", MONEY, nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("receipt_url", sa.Text(), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("payment_notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.String(length=64), nullable=True),
        sa.Column("reviewed_by", UUID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("paid_by", UUID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("receipt_attached_by", UUID, sa.ForeignKey("users.id"), nullable=True),
        _ts("created_at"),
        _ts("reviewed_at", nullable=True),
        _ts("paid_at", nullable=True),
        _ts("receipt_attached_at", nullable=True),
    )
    op.create_index("ix_withdrawal_requests_creator_id", "withdrawal_requests", ["creator_id"])
    op.create_index("ix_withdrawal_requests_status_created", "withdrawal_requests", ["status", "created_at"])

    # -----------------------------------------------------
    # 4) Personnel requests
    # -----------------------------------------------------
    op.create_table(
        "head_ops_requests",
        _id(),
        sa.Column("requester_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("request_type", sa.String(length=32), nullable=False),
        sa.Column("target_id", UUID, nullable=True),
        sa.Column("target_type", sa.String(length=16), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("reviewed_by", UUID, sa.ForeignKey("users.id"), nullable=True),
        _ts("created_at"),
        _ts("reviewed_at", nullable=True),
    )
    op.create_index("ix_head_ops_requests_requester_id", "head_ops_requests", ["requester_id"])
    op.create_index("ix_head_ops_requests_status", "head_ops_requests", ["status"])


def downgrade() -> None:
    for table in (
        "head_ops_requests",
        "withdrawal_requests",
        "withdrawal_methods",
        "creator_ledger_entries",
        "payment_attributions",
        "cmo_payouts",
        "user_attributions",
        "discount_codes",
        "commission_tiers",
        "creator_profiles",
        "cmo_profiles",
        "platform_settings",
        "platform_memberships",
        "users",
    ):
        op.drop_table(table)
