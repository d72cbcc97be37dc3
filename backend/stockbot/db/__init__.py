"""
stockbot.db

Package base de données : base déclarative, engine async et sessions.

Contenu :
- base    : classe Base commune aux modèles ORM.
- session : engine async + factory de sessions + dépendance FastAPI get_db().
- migrations : Alembic (côté sync) via DATABASE_URL_SYNC, voir backend/alembic.
"""
