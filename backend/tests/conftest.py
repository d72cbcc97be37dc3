from __future__ import annotations

import os

# Config de test : posée avant tout import de stockbot (settings lus à l’import)
os.environ["ENV"] = "test"
os.environ["API_KEY"] = ""
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["LOG_LEVEL"] = "WARNING"

import uuid
from typing import AsyncIterator, List, Optional

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine

from stockbot.db.base import Base
from stockbot.db.session import build_session_factory, get_db
from stockbot.models import Member, MemberPoints, StockHolding, StockItem, StockTransaction
from stockbot.services.stores import LedgerStorage

"""
Fixtures partagées.

- Base SQLite (aiosqlite) dans un fichier temporaire par test : plusieurs sessions
  concurrentes voient le même état, comme sur Postgres.
- `ledger` : helpers de seed (membre, item, solde) et de lecture de l’état persisté.
- `client` : client HTTPX branché en ASGI sur l’app, get_db() surchargé vers la base de test.
"""


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
async def storage(session_factory) -> AsyncIterator[LedgerStorage]:
    async with session_factory() as session:
        yield LedgerStorage(session)


class LedgerFixture:
    """Seed + inspection de la base de test (chaque appel utilise sa propre session)."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory
        self._seq = 0

    async def add_member(self, points: Optional[int] = None) -> uuid.UUID:
        self._seq += 1
        member_id = uuid.uuid4()
        async with self.session_factory() as s:
            s.add(Member(id=member_id, internal_sender_id=f"sender-{self._seq}", nickname=f"m{self._seq}"))
            await s.flush()
            if points is not None:
                s.add(MemberPoints(member_id=member_id, points=points))
            await s.commit()
        return member_id

    async def add_item(self, code: Optional[str] = None, initial_price: int = 100) -> uuid.UUID:
        self._seq += 1
        item_id = uuid.uuid4()
        async with self.session_factory() as s:
            s.add(StockItem(id=item_id, code=code or f"ITM{self._seq}", name=f"Item {self._seq}", initial_price=initial_price))
            await s.commit()
        return item_id

    async def points(self, member_id: uuid.UUID) -> Optional[int]:
        async with self.session_factory() as s:
            row = await s.get(MemberPoints, member_id)
            return row.points if row is not None else None

    async def holdings(self, member_id: uuid.UUID, item_id: uuid.UUID) -> List[StockHolding]:
        """Toutes les lignes (actives et retirées), de la plus ancienne à la plus récente."""
        async with self.session_factory() as s:
            stmt = (
                select(StockHolding)
                .where(StockHolding.member_id == member_id, StockHolding.stock_item_id == item_id)
                .order_by(StockHolding.created_at.asc())
            )
            return list((await s.execute(stmt)).scalars().all())

    async def active_quantity(self, member_id: uuid.UUID, item_id: uuid.UUID) -> Optional[int]:
        active = [h for h in await self.holdings(member_id, item_id) if h.deleted_at is None]
        return active[0].quantity if active else None

    async def transactions(self, member_id: uuid.UUID) -> List[StockTransaction]:
        async with self.session_factory() as s:
            stmt = (
                select(StockTransaction)
                .where(StockTransaction.member_id == member_id)
                .order_by(StockTransaction.created_at.asc())
            )
            return list((await s.execute(stmt)).scalars().all())


@pytest.fixture
def ledger(session_factory) -> LedgerFixture:
    return LedgerFixture(session_factory)


@pytest.fixture
async def client(session_factory) -> AsyncIterator[httpx.AsyncClient]:
    from stockbot.core.rate_limit import rate_limiter
    from stockbot.main import app

    async def _get_test_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_test_db
    rate_limiter.reset()

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
