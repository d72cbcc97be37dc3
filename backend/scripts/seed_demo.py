# backend/scripts/seed_demo.py
from __future__ import annotations

import argparse
import random
import sys
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.orm import sessionmaker

# Permet de lancer le script depuis backend/ sans souci d'import
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))

from stockbot.core.settings import settings
from stockbot.models.member import Member
from stockbot.models.member_points import MemberPoints
from stockbot.models.stock_holding import StockHolding
from stockbot.models.stock_item import StockItem
from stockbot.models.stock_transaction import StockTransaction


# ---- Catalogue de démo (code, libellé, prix d'introduction en points) ----
STOCK_ITEMS = [
    ("KAKA", "Kakao Coin", 120),
    ("NAVR", "Naver Leaf", 310),
    ("SMSG", "Samsung Chip", 560),
    ("HYDI", "Hyundai Wheel", 240),
    ("LGEN", "LG Energy Cell", 410),
    ("CPNG", "Coupang Box", 75),
    ("NCSF", "NCSoft Sword", 190),
    ("KRFT", "Krafton Drop", 330),
]

NICKNAMES = [
    "minji", "doyoon", "seoyeon", "jiho", "haeun", "junwoo", "yerin", "siwoo",
    "chaewon", "hajun", "sua", "yejun", "jiwoo", "eunwoo", "dahyun", "taeyang",
]


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def seed(reset: bool, members: int, start_points: int) -> None:
    engine = create_engine(settings.DATABASE_URL_SYNC, future=True)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    with SessionLocal() as db:
        if reset:
            # ordre inverse des FK
            db.execute(delete(StockTransaction))
            db.execute(delete(StockHolding))
            db.execute(delete(MemberPoints))
            db.execute(delete(StockItem))
            db.execute(delete(Member))
            db.commit()
            print("✅ Reset done (all demo data deleted).")

        existing_codes = set(db.execute(select(StockItem.code)).scalars().all())
        items_created = 0
        for code, name, price in STOCK_ITEMS:
            if code in existing_codes:
                continue
            db.add(StockItem(id=uuid4(), code=code, name=name, initial_price=price, created_at=now_utc()))
            items_created += 1

        for i in range(members):
            nickname = f"{random.choice(NICKNAMES)}{random.randint(10, 99)}"
            member = Member(
                id=uuid4(),
                internal_sender_id=f"demo-{uuid4().hex[:12]}",
                nickname=nickname,
                created_at=now_utc(),
            )
            db.add(member)
            db.flush()  # récupère member.id

            # Solde de départ : pas de ligne pour ~1 membre sur 10 (absence == 0 point)
            if random.random() >= 0.1:
                db.add(MemberPoints(member_id=member.id, points=start_points, updated_at=now_utc()))

        db.commit()

        total_members = db.execute(select(func.count()).select_from(Member)).scalar_one()
        print("✅ Seed terminé.")
        print(f"   - Items catalogue ajoutés: {items_created}")
        print(f"   - Membres ajoutés: {members} (total: {total_members})")
        print(f"   - Solde de départ: {start_points} points")


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--reset", action="store_true", help="Supprime les données demo avant de reseed")
    parser.add_argument("--members", type=int, default=20, help="Nombre de membres à générer")
    parser.add_argument("--points", type=int, default=10000, help="Solde de points initial par membre")
    parser.add_argument("--seed", type=int, default=42, help="Seed RNG pour reproductibilité")
    args = parser.parse_args()

    random.seed(args.seed)
    seed(reset=args.reset, members=args.members, start_points=args.points)


if __name__ == "__main__":
    main()
