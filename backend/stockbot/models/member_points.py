from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from stockbot.db.base import Base

"""
Model MemberPoints (Balance Store).

Rôle (fonctionnel) :
- Solde de points dépensable d’un membre : 1 ligne max par membre (PK = member_id).
- Ligne créée à la demande : absence de ligne == 0 point.
- Modifiée uniquement par le moteur de trading.

Contrainte :
- points >= 0 (CHECK en base, en plus du contrôle applicatif).
"""


class MemberPoints(Base):
    __tablename__ = "member_points"

    member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("members.id", ondelete="CASCADE"),
        primary_key=True,
    )

    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (CheckConstraint("points >= 0", name="points_non_negative"),)
