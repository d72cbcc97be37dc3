"""
stockbot

Backend du ledger de trading virtuel du chatbot (points, détentions, journal).

Organisation :
- stockbot.api      : routes FastAPI (contrats HTTP, dépendances)
- stockbot.core     : briques transverses (settings, errors, logs, sécurité, rate-limit)
- stockbot.db       : base SQLAlchemy + session async
- stockbot.models   : modèles ORM (tables Postgres)
- stockbot.schemas  : schémas Pydantic (entrées/sorties API)
- stockbot.services : moteur de trading, stores, lectures
"""
