from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from stockbot.db.base import Base

"""
Model StockTransaction (Transaction Log).

Rôle (fonctionnel) :
- Journal append-only des trades commités (achat / vente).
- Une ligne n’est jamais modifiée ni supprimée : c’est la piste d’audit.

Champs principaux :
- transaction_type : "buy" | "sell"
- quantity > 0, price_per_unit / transaction_fee / total_price en points (copiés tels quels de la requête)
- idempotency_key : clé client optionnelle (rejeu sans double exécution)
- request_id : corrélation avec les logs / l’API

Index :
- (member_id, created_at) : historique d’un membre
- (member_id, idempotency_key) unique : dédoublonnage des rejeux
"""


class StockTransaction(Base):
    __tablename__ = "stock_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("members.id", ondelete="RESTRICT"),
        nullable=False,
    )
    stock_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("stock_items.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    transaction_type: Mapped[str] = mapped_column(String(4), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    price_per_unit: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_fee: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_price: Mapped[int] = mapped_column(Integer, nullable=False)

    idempotency_key: Mapped[str | None] = mapped_column(String(128), nullable=True)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="quantity_positive"),
        CheckConstraint("transaction_type IN ('buy', 'sell')", name="transaction_type_known"),
        Index("ix_stock_transactions_member_date", "member_id", "created_at"),
        Index(
            "uq_stock_transactions_member_idempotency",
            "member_id",
            "idempotency_key",
            unique=True,
        ),
    )
