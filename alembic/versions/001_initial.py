"""Initial tables: users, bins, inventory ledger, insets, audit log

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
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
    ]


def upgrade() -> None:
    # Users (identity only; credentials live in the auth provider)
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"], unique=False)

    # Bins (registry is read-only to this service)
    op.create_table(
        "bins",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_bins"),
    )
    op.create_index("ix_bins_name", "bins", ["name"], unique=True)
    op.create_index("ix_bins_is_active", "bins", ["is_active"], unique=False)

    # Inventory ledger: one row per (sku_id, bin)
    op.create_table(
        "inventory",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("sku_id", sa.String(100), nullable=False),
        sa.Column("bin", sa.String(100), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_inventory"),
        sa.UniqueConstraint("sku_id", "bin", name="uq_inventory_sku_id_bin"),
        sa.CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
    )
    op.create_index("ix_inventory_sku_id", "inventory", ["sku_id"], unique=False)
    op.create_index("ix_inventory_bin", "inventory", ["bin"], unique=False)

    # Inbound movements
    op.create_table(
        "insets",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("sku_id", sa.String(100), nullable=False),
        sa.Column("bin", sa.String(100), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("user_name", sa.String(200), nullable=False),
        sa.Column("batch_id", sa.String(64), nullable=True),
        sa.Column("source", sa.String(20), nullable=False, server_default="manual"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_insets"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_insets_user_id_users"),
        sa.CheckConstraint("quantity > 0", name="ck_insets_quantity_positive"),
    )
    op.create_index("ix_insets_sku_id", "insets", ["sku_id"], unique=False)
    op.create_index("ix_insets_bin", "insets", ["bin"], unique=False)
    op.create_index("ix_insets_user_id", "insets", ["user_id"], unique=False)
    op.create_index("ix_insets_batch_id", "insets", ["batch_id"], unique=False)
    op.create_index("ix_insets_created_at", "insets", ["created_at"], unique=False)

    # Audit log (append-only, best-effort)
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("user_name", sa.String(200), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", sa.BigInteger(), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_audit_logs"),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"], unique=False)
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("insets")
    op.drop_table("inventory")
    op.drop_table("bins")
    op.drop_table("users")
