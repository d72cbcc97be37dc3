from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from stockbot.db.base import Base

"""
Model StockHolding (Holding Store).

Rôle (fonctionnel) :
- Quantité détenue par un membre pour un item du catalogue.
- Cycle de vie :
  - active  : deleted_at IS NULL
  - retirée : deleted_at renseigné, quantity == 0 (la ligne est conservée pour l’historique)
- Créée au premier achat, retirée quand une vente ramène la quantité à 0.
  Un rachat ultérieur crée une nouvelle ligne active.

Contraintes :
- quantity >= 0
- une ligne retirée a quantity == 0
- au plus une ligne active par (member_id, stock_item_id) : index unique partiel
"""


class StockHolding(Base):
    __tablename__ = "stock_holdings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    stock_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("stock_items.id", ondelete="RESTRICT"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # Soft-delete : renseigné quand la détention est entièrement liquidée
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="quantity_non_negative"),
        CheckConstraint("deleted_at IS NULL OR quantity = 0", name="removed_is_empty"),
        Index(
            "uq_stock_holdings_active_member_item",
            "member_id",
            "stock_item_id",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )
