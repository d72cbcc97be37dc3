from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

"""
Schemas Trades (Pydantic).

Rôle (fonctionnel) :
- StockTransactionCreate : corps de POST /members/{member_id}/stock-transactions.
  - champs inconnus refusés (extra="forbid")
  - stock_item_id / quantity / transaction_type / prix / idempotency_key volontairement
    typés Any : le moteur les valide après les contrôles d’autorisation et d’existence
    (NotFoundError pour un item mal formé, ValidationError dédiée pour le reste)
- StockTransactionOut : enregistrement du journal renvoyé au client.
- PortfolioOut : solde + détentions actives d’un membre.
"""


class StockTransactionCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    stock_item_id: Any = None
    transaction_type: Any = None
    quantity: Any = None
    price_per_unit: Any = None
    transaction_fee: Any = 0
    total_price: Any = None

    # Clé de rejeu choisie par le client (optionnelle, aussi acceptée en header Idempotency-Key)
    idempotency_key: Any = None

    @field_validator("idempotency_key", mode="before")
    @classmethod
    def _strip_key(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip() or None
        return v


class StockTransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    member_id: UUID
    stock_item_id: UUID
    transaction_type: str
    quantity: int
    price_per_unit: int
    transaction_fee: int
    total_price: int
    idempotency_key: Optional[str] = None
    created_at: datetime


class HoldingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stock_item_id: UUID
    quantity: int
    updated_at: datetime


class PortfolioOut(BaseModel):
    member_id: UUID
    points: int
    holdings: List[HoldingOut]
