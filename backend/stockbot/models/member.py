from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from stockbot.db.base import Base

"""
Model Member.

Rôle (fonctionnel) :
- Membre du chatbot (identité gérée par la passerelle de session).
- Le ledger ne fait que vérifier son existence avant un trade.
"""


class Member(Base):
    __tablename__ = "members"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Identifiant côté messagerie (unique) + pseudo affiché
    internal_sender_id: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    nickname: Mapped[str] = mapped_column(String(120), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
