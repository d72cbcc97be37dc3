"""
stockbot.models

Package ORM (SQLAlchemy) : entités persistées du ledger de trading.

- Member, StockItem : entités externes (lues seulement par le moteur).
- MemberPoints      : solde de points (1 ligne par membre, créée à la demande).
- StockHolding      : détention par (membre, item), cycle de vie actif / retiré.
- StockTransaction  : journal append-only des trades (audit trail).
"""

from stockbot.models.member import Member
from stockbot.models.stock_item import StockItem
from stockbot.models.member_points import MemberPoints
from stockbot.models.stock_holding import StockHolding
from stockbot.models.stock_transaction import StockTransaction

__all__ = ["Member", "StockItem", "MemberPoints", "StockHolding", "StockTransaction"]
