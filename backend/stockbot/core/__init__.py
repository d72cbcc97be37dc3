"""
stockbot.core

Briques transverses du backend (cross-cutting concerns), indépendantes du domaine trading :

- settings   : configuration (env, DB, timeouts du moteur, rate-limit…).
- errors     : payload d’erreur uniforme + taxonomie des erreurs métier (TradeError…).
- logging    : logs JSON + request_id.
- request_id : identifiant de corrélation (ContextVar).
- security   : API key optionnelle + contexte du membre authentifié.
- rate_limit : limitation de débit en mémoire sur les routes de trading.
"""
