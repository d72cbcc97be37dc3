"""Création des tables du ledger de trading.

Rôle (fonctionnel) :
- members / stock_items : référentiels externes (lus par le moteur).
- member_points : solde de points (CHECK points >= 0).
- stock_holdings : détentions, soft-delete via deleted_at
  (CHECK quantity >= 0, une ligne retirée a quantity = 0, unicité partielle des lignes actives).
- stock_transactions : journal append-only (CHECK quantity > 0, type buy/sell,
  unicité (member_id, idempotency_key)).

Revision ID: a41c2e7d9b10
Revises:
Create Date: 2026-09-28 10:12:44.118203
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Identifiants Alembic
revision: str = "a41c2e7d9b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Application des changements de schéma."""
    op.create_table(
        "members",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("internal_sender_id", sa.String(length=120), nullable=False),
        sa.Column("nickname", sa.String(length=120), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_members"),
        sa.UniqueConstraint("internal_sender_id", name="uq_members_internal_sender_id"),
    )

    op.create_table(
        "stock_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("initial_price", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_stock_items"),
        sa.UniqueConstraint("code", name="uq_stock_items_code"),
    )

    op.create_table(
        "member_points",
        sa.Column("member_id", sa.Uuid(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("points >= 0", name="ck_member_points_points_non_negative"),
        sa.ForeignKeyConstraint(
            ["member_id"], ["members.id"],
            name="fk_member_points_member_id_members",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("member_id", name="pk_member_points"),
    )

    op.create_table(
        "stock_holdings",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("member_id", sa.Uuid(), nullable=False),
        sa.Column("stock_item_id", sa.Uuid(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("quantity >= 0", name="ck_stock_holdings_quantity_non_negative"),
        sa.CheckConstraint("deleted_at IS NULL OR quantity = 0", name="ck_stock_holdings_removed_is_empty"),
        sa.ForeignKeyConstraint(
            ["member_id"], ["members.id"],
            name="fk_stock_holdings_member_id_members",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["stock_item_id"], ["stock_items.id"],
            name="fk_stock_holdings_stock_item_id_stock_items",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_stock_holdings"),
    )
    op.create_index("ix_stock_holdings_member_id", "stock_holdings", ["member_id"], unique=False)
    op.create_index(
        "uq_stock_holdings_active_member_item",
        "stock_holdings",
        ["member_id", "stock_item_id"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
    )

    op.create_table(
        "stock_transactions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("member_id", sa.Uuid(), nullable=False),
        sa.Column("stock_item_id", sa.Uuid(), nullable=False),
        sa.Column("transaction_type", sa.String(length=4), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price_per_unit", sa.Integer(), nullable=False),
        sa.Column("transaction_fee", sa.Integer(), nullable=False),
        sa.Column("total_price", sa.Integer(), nullable=False),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_stock_transactions_quantity_positive"),
        sa.CheckConstraint(
            "transaction_type IN ('buy', 'sell')",
            name="ck_stock_transactions_transaction_type_known",
        ),
        sa.ForeignKeyConstraint(
            ["member_id"], ["members.id"],
            name="fk_stock_transactions_member_id_members",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["stock_item_id"], ["stock_items.id"],
            name="fk_stock_transactions_stock_item_id_stock_items",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_stock_transactions"),
    )
    op.create_index("ix_stock_transactions_stock_item_id", "stock_transactions", ["stock_item_id"], unique=False)
    op.create_index("ix_stock_transactions_member_date", "stock_transactions", ["member_id", "created_at"], unique=False)
    op.create_index(
        "uq_stock_transactions_member_idempotency",
        "stock_transactions",
        ["member_id", "idempotency_key"],
        unique=True,
    )


def downgrade() -> None:
    """Retour arrière des changements de schéma."""
    op.drop_index("uq_stock_transactions_member_idempotency", table_name="stock_transactions")
    op.drop_index("ix_stock_transactions_member_date", table_name="stock_transactions")
    op.drop_index("ix_stock_transactions_stock_item_id", table_name="stock_transactions")
    op.drop_table("stock_transactions")
    op.drop_index("uq_stock_holdings_active_member_item", table_name="stock_holdings")
    op.drop_index("ix_stock_holdings_member_id", table_name="stock_holdings")
    op.drop_table("stock_holdings")
    op.drop_table("member_points")
    op.drop_table("stock_items")
    op.drop_table("members")
