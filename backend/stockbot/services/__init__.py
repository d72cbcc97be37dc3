"""
stockbot.services

Logique applicative du ledger, indépendante des endpoints HTTP.

- stores           : accès DB (solde, détentions, journal, existence membre / item)
- trade_validation : contrôle de forme d’une demande de trade (résultat étiqueté)
- member_locks     : sérialisation des trades d’un même membre
- trading_engine   : exécution atomique achat / vente
- ledger_queries   : lectures (détail transaction, portefeuille)

Principe :
- stockbot.api = transport HTTP (routes, dépendances, sérialisation)
- stockbot.services = orchestration métier (réutilisable, testable sans HTTP)
"""
