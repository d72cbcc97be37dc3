from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from stockbot.core.errors import ValidationError

"""
Trade Validation.

Rôle (fonctionnel) :
- Vérifie la forme d’une demande de trade en une seule passe, avant toute logique métier.
- Produit un résultat étiqueté :
  - ValidTrade      : demande normalisée, prête pour le moteur
  - TradeRejection  : premier champ invalide + raison
- Ordre des contrôles (le premier échec gagne) :
  quantity, kind (transaction_type), price_per_unit, transaction_fee, total_price, idempotency_key.

Règles :
- quantity : entier strictement positif (bool, float et str refusés).
- kind : exactement "buy" ou "sell" (sensible à la casse).
- prix / frais / total : entiers >= 0 (les points sont entiers). total_price est
  recopié tel quel : il n’est pas recalculé à partir de quantity * price_per_unit + fee.
- quantité et montants bornés à MAX_AMOUNT (colonnes INTEGER 32 bits).
- idempotency_key : chaîne de 128 caractères maximum.
"""


# Plafond des colonnes INTEGER (points, quantités, montants)
MAX_AMOUNT = 2**31 - 1


class TradeKind(str, Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class ValidTrade:
    stock_item_id: uuid.UUID
    kind: TradeKind
    quantity: int
    price_per_unit: int
    transaction_fee: int
    total_price: int
    idempotency_key: Optional[str] = None


@dataclass(frozen=True)
class TradeRejection:
    field: str
    reason: str

    def to_error(self) -> ValidationError:
        return ValidationError(self.field, self.reason)


ValidationOutcome = Union[ValidTrade, TradeRejection]


def _is_int(value: Any) -> bool:
    # bool est une sous-classe d’int : on l’exclut explicitement
    return isinstance(value, int) and not isinstance(value, bool)


def validate_trade(
    *,
    stock_item_id: uuid.UUID,
    transaction_type: Any,
    quantity: Any,
    price_per_unit: Any,
    transaction_fee: Any,
    total_price: Any,
    idempotency_key: Any = None,
) -> ValidationOutcome:
    if not _is_int(quantity) or quantity <= 0:
        return TradeRejection("quantity", "doit être un entier strictement positif")
    if quantity > MAX_AMOUNT:
        return TradeRejection("quantity", f"doit être <= {MAX_AMOUNT}")

    try:
        kind = TradeKind(transaction_type)
    except ValueError:
        return TradeRejection("kind", "doit valoir 'buy' ou 'sell'")

    amounts = (
        ("price_per_unit", price_per_unit),
        ("transaction_fee", transaction_fee),
        ("total_price", total_price),
    )
    for name, value in amounts:
        if not _is_int(value) or value < 0:
            return TradeRejection(name, "doit être un entier positif ou nul")
        if value > MAX_AMOUNT:
            return TradeRejection(name, f"doit être <= {MAX_AMOUNT}")

    if idempotency_key is not None and not isinstance(idempotency_key, str):
        return TradeRejection("idempotency_key", "doit être une chaîne")
    key = (idempotency_key or "").strip() or None
    if key is not None and len(key) > 128:
        return TradeRejection("idempotency_key", "128 caractères maximum")

    return ValidTrade(
        stock_item_id=stock_item_id,
        kind=kind,
        quantity=quantity,
        price_per_unit=price_per_unit,
        transaction_fee=transaction_fee,
        total_price=total_price,
        idempotency_key=key,
    )
